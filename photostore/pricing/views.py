from fastapi import APIRouter, Query

from photostore import config
from .schemas import PriceQuote, quote

router = APIRouter(prefix="/api/v1/pricing", tags=["Pricing API"])

# module photostore.pricing.views
@router.get("", response_model=PriceQuote)
def get_price_quote(photo_count: int = Query(ge=0, le=10_000)) -> PriceQuote:
    """
    Prix officiel d'un panier (affichage côté client).
    - Calcul pur: disponible même si Supabase/Stripe ne sont pas configurés.
    - Le checkout recalcule toujours le prix côté serveur: ce devis n'engage pas la commande.
    """
    return quote(photo_count, currency=config.SHOP_CURRENCY)
