from typing import List
from pydantic import BaseModel, Field

from .engine import price_for, best_packs


class PriceQuote(BaseModel):
    """Devis affiché dans le panier: montant officiel + décomposition en packs."""

    photo_count: int = Field(ge=0)
    amount_cents: int = Field(ge=0)
    currency: str
    packs: List[int] = Field(default_factory=list)


def quote(photo_count: int, currency: str = "eur") -> PriceQuote:
    return PriceQuote(
        photo_count=photo_count,
        amount_cents=price_for(photo_count),
        currency=currency,
        packs=best_packs(photo_count),
    )
