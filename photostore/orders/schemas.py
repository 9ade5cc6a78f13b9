"""
Schémas d'entrée/sortie HTTP de la feature 'orders' (pydantic v2).
La validation métier (quantités > 0, jeton, taille du panier) reste dans orders.checkout.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .models import Order


class CartLineIn(BaseModel):
    product_id: str = Field(validation_alias=AliasChoices("id", "product_id"))
    quantity: int = Field(strict=True, validation_alias=AliasChoices("qty", "quantity"))


class CheckoutRequest(BaseModel):
    idempotency_key: Optional[str] = None
    items: List[CartLineIn] = Field(default_factory=list)


class CheckoutResponse(BaseModel):
    order_id: str
    url: str
    reused: bool = False


class LineItemOut(BaseModel):
    product_id: str
    quantity: int


class OrderOut(BaseModel):
    id: str
    status: str
    total_amount_cents: int
    currency: str
    line_items: List[LineItemOut] = Field(default_factory=list)
    photo_count: int = 0
    email: Optional[str] = None
    stripe_session_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderOut":
        return cls(
            id=order.id,
            status=order.status.value,
            total_amount_cents=order.total_amount_cents,
            currency=order.currency,
            line_items=[LineItemOut(product_id=it.product_id, quantity=it.quantity) for it in order.line_items],
            photo_count=order.photo_count,
            email=order.email,
            stripe_session_id=order.stripe_session_id,
            sent_at=order.sent_at,
            created_at=order.created_at,
        )


class StatusUpdateIn(BaseModel):
    status: str = ""


class DeliveryUploadIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(default="", alias="fileName")
    content_type: str = Field(default="", alias="contentType")
