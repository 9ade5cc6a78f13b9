"""
Adaptateur Stripe: sessions Checkout, relecture de session et vérification des webhooks.
- La clé API est passée à chaque appel (pas de stripe.api_key global).
- Les erreurs Stripe sont traduites dans la taxonomie de la boutique:
  réseau/limite/5xx -> UpstreamUnavailable, clé en cours (409) -> GatewayBusy, refus -> GatewayRejected.
"""
import json
import logging
from typing import Any, Dict, Optional

import stripe

from photostore.errors import GatewayBusy, GatewayRejected, InvalidRequest, SignatureInvalid, UpstreamUnavailable

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)
# Stripe répond 409 tant que la première requête portant la même clé d'idempotence n'est pas terminée
IN_FLIGHT_STATUS = 409


def _translate(e: "stripe.StripeError", action: str) -> Exception:
    if isinstance(e, stripe.IdempotencyError) and getattr(e, "http_status", None) == IN_FLIGHT_STATUS:
        logger.info("payments.stripe.%s idempotent request in flight", action)
        return GatewayBusy(f"Requête Stripe déjà en cours ({action})")
    if isinstance(e, _TRANSIENT_ERRORS):
        logger.warning("payments.stripe.%s transient error=%s", action, e.__class__.__name__)
        return UpstreamUnavailable(f"Stripe indisponible ({action})")
    logger.error("payments.stripe.%s rejected error=%s message=%s", action, e.__class__.__name__, getattr(e, "user_message", None) or str(e))
    return GatewayRejected(f"Stripe a refusé la requête ({action})")


def _as_dict(obj: Any) -> Dict[str, Any]:
    # stripe retourne un objet; on le traite comme dict-compatible
    return dict(obj) if obj is not None else {}


# module photostore.payments.stripe_client
class StripeGateway:
    """Passerelle de paiement hébergée (Stripe Checkout)."""

    def __init__(self, api_key: str, webhook_secret: str):
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def create_checkout_session(
        self,
        *,
        amount_cents: int,
        currency: str,
        idempotency_key: str,
        metadata: Dict[str, str],
        description: str,
        success_url: str,
        cancel_url: str,
        client_reference_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Crée une session Checkout pour un montant global (une seule ligne: le lot de photos).
        - idempotency_key: transmis à Stripe (dédoublonnage côté passerelle)
        - metadata: ex {"order_id": "..."} pour corréler l'événement de complétion
        Retour: {"id": "cs_test_...", "url": "https://checkout.stripe.com/..."}
        """
        params: Dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": description},
                        "unit_amount": amount_cents,
                    },
                    "quantity": 1,
                }
            ],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        if client_reference_id:
            params["client_reference_id"] = client_reference_id
        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                idempotency_key=idempotency_key,
                **params,
            )
        except stripe.StripeError as e:
            raise _translate(e, "create_session") from e
        data = _as_dict(session)
        return {"id": data.get("id"), "url": data.get("url")}

    def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        """
        Relit une session Checkout.
        Retour: {"id", "url", "status"} avec status in {"open", "complete", "expired"}.
        """
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.StripeError as e:
            raise _translate(e, "retrieve_session") from e
        data = _as_dict(session)
        return {
            "id": data.get("id"),
            "url": data.get("url"),
            "status": data.get("status"),
            "payment_status": data.get("payment_status"),
        }

    def verify_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Valide un événement signé (webhook) avant tout traitement.
        - Signature absente, secret absent ou signature invalide -> SignatureInvalid
        - Corps illisible -> InvalidRequest
        Retour: l'événement sous forme de dict (JSON brut, signature vérifiée).
        """
        if not self.webhook_secret:
            raise SignatureInvalid("STRIPE_WEBHOOK_SECRET manquant: événement refusé")
        if not signature:
            raise SignatureInvalid("En-tête Stripe-Signature manquant")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise SignatureInvalid("Signature Stripe invalide") from e
        except ValueError as e:
            raise InvalidRequest("Payload webhook invalide") from e
        return json.loads(payload)
