"""
Lecture des événements Stripe (webhook) utiles à la machine à états.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

CHECKOUT_COMPLETED = "checkout.session.completed"
ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
PAID_STATUSES = ("paid", "no_payment_required")


@dataclass(frozen=True)
class CompletionEvent:
    event_id: str
    event_type: str
    session_id: str
    order_id: Optional[str]
    payer_email: Optional[str]
    payment_status: Optional[str]

    @property
    def confirms_payment(self) -> bool:
        """
        Vrai si l'événement atteste un paiement encaissé.
        - completed + payment_status paid/no_payment_required
        - async_payment_succeeded (moyens de paiement différés)
        """
        if self.event_type == ASYNC_PAYMENT_SUCCEEDED:
            return True
        return self.event_type == CHECKOUT_COMPLETED and self.payment_status in PAID_STATUSES


# module photostore.payments.metadata
def extract_completion(event: Dict[str, Any]) -> Optional[CompletionEvent]:
    """
    Extrait (session, order_id, email) depuis un event Stripe.
    - Attend event.data.object = session Checkout; order_id dans metadata (ou client_reference_id).
    - N'utilise jamais les montants de l'événement: le prix est figé sur la commande.
    - Retourne None pour les événements qui ne concernent pas une session Checkout.
    """
    event_type = str((event or {}).get("type") or "")
    if event_type not in (CHECKOUT_COMPLETED, ASYNC_PAYMENT_SUCCEEDED):
        return None
    session = ((event or {}).get("data") or {}).get("object") or {}
    session_id = str(session.get("id") or "")
    if not session_id:
        return None
    meta = session.get("metadata") or {}
    order_id = meta.get("order_id") or session.get("client_reference_id") or None
    details = session.get("customer_details") or {}
    email = (details.get("email") or session.get("customer_email") or "").strip() or None
    return CompletionEvent(
        event_id=str(event.get("id") or ""),
        event_type=event_type,
        session_id=session_id,
        order_id=order_id,
        payer_email=email,
        payment_status=session.get("payment_status"),
    )
