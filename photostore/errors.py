"""
Taxonomie des erreurs de la boutique.
- Chaque type porte un code stable (exposé au client) et un statut HTTP.
- Les adaptateurs (Supabase, Stripe, Resend) convertissent leurs exceptions en l'un de ces types.
- Le handler enregistré par la factory (app_setup.exceptions) sérialise {"detail", "code"}.
"""


class ShopError(Exception):
    status_code = 500
    default_code = "error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class InvalidRequest(ShopError):
    status_code = 400
    default_code = "invalid_request"


class IdempotencyConflict(InvalidRequest):
    """Même jeton d'idempotence rejoué avec un panier différent."""
    status_code = 409
    default_code = "idempotency_conflict"


class InvalidStatus(ShopError):
    status_code = 400
    default_code = "invalid_status"


class InvalidState(ShopError):
    status_code = 409
    default_code = "invalid_state"


class EmptyCart(ShopError):
    status_code = 400
    default_code = "empty_cart"


class MissingRecipient(ShopError):
    status_code = 422
    default_code = "missing_recipient"


class OrderNotFound(ShopError):
    status_code = 404
    default_code = "order_not_found"


class UpstreamUnavailable(ShopError):
    """Échec transitoire d'un collaborateur externe: l'appelant peut réessayer."""
    status_code = 503
    default_code = "upstream_unavailable"


class GatewayRejected(ShopError):
    status_code = 502
    default_code = "gateway_rejected"


class SignatureInvalid(ShopError):
    status_code = 400
    default_code = "signature_invalid"


class GatewayBusy(UpstreamUnavailable):
    """Requête concurrente encore en cours chez Stripe pour la même clé d'idempotence (409)."""
    default_code = "gateway_busy"
