import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from photostore.context import ShopContext, get_context
from photostore.orders.fulfillment import handle_payment_event

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

# module photostore.payments.views
@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(request: Request, ctx: ShopContext = Depends(get_context)) -> Dict[str, Any]:
    """
    Webhook Stripe (Checkout): checkout.session.completed / async_payment_succeeded -> PAID.
    - Signature: vérifiée sur le corps brut (Stripe-Signature + STRIPE_WEBHOOK_SECRET), 400 sinon
    - Livraison au moins une fois: un rejeu répond 200 sans rien écrire
    - Réponse: {"received": true, "outcome": "paid" | "already_applied" | "ignored" | "unknown_order"}
    - 503 si Supabase est injoignable: Stripe relivrera l'événement
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    outcome = await run_in_threadpool(handle_payment_event, ctx, payload, signature)
    logger.info("payments.webhook outcome=%s", outcome)
    return {"received": True, "outcome": outcome}
