"""
Cas d'usage 'checkout': crée (ou retrouve) la commande PENDING d'un jeton d'idempotence
puis la session de paiement Stripe associée.

Protocole d'idempotence:
- la commande a pour clé primaire le jeton client; les soumissions concurrentes se
  départagent à l'insertion (un seul gagnant, les autres relisent sa ligne)
- la session Stripe est créée avec idempotency_key = jeton: deux appels simultanés
  obtiennent la même session
- une commande déjà payée renvoie vers la page de succès, sans nouvelle session
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from photostore.context import ShopContext
from photostore.errors import EmptyCart, GatewayBusy, GatewayRejected, IdempotencyConflict, InvalidRequest, InvalidState
from photostore.orders.models import COMPLETED, PAYABLE, CartLine, Order, OrderStatus
from photostore.pricing import price_for

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
OPEN_SESSION = "open"
COMPLETE_SESSION = "complete"

# Retries sur 409 "requête en cours" (même clé d'idempotence): max, base et plafond du backoff en secondes
MINT_RETRY_MAX = 3
MINT_RETRY_BACKOFF = 0.15
MINT_RETRY_MAX_SLEEP = 0.5


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    redirect_url: str
    # True si la commande existait déjà pour ce jeton
    reused: bool = False


def _line_from(raw: Union[CartLine, Dict[str, Any]]) -> Tuple[str, Any]:
    if isinstance(raw, CartLine):
        return raw.product_id, raw.quantity
    if isinstance(raw, dict):
        return str(raw.get("product_id") or raw.get("id") or "").strip(), raw.get("quantity", raw.get("qty"))
    raise InvalidRequest("Ligne de panier invalide")


def aggregate_lines(cart_lines: Iterable[Union[CartLine, Dict[str, Any]]]) -> List[CartLine]:
    """
    Valide et fusionne les lignes du panier (ordre de première apparition conservé).
    - product_id non vide, quantité entière > 0, sinon InvalidRequest
    - un même produit présent deux fois est cumulé
    """
    quantities: Dict[str, int] = {}
    for raw in cart_lines or []:
        product_id, qty = _line_from(raw)
        if not product_id:
            raise InvalidRequest("Identifiant de produit manquant")
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise InvalidRequest(f"Quantité invalide pour {product_id}")
        quantities[product_id] = quantities.get(product_id, 0) + qty
    return [CartLine(product_id=pid, quantity=q) for pid, q in quantities.items()]


def _same_cart(order: Order, lines: List[CartLine]) -> bool:
    def key(items):
        return sorted((it.product_id, it.quantity) for it in items)

    return key(order.line_items) == key(lines)


def _session_description(order: Order, shop_name: str) -> str:
    return f"{order.photo_count} photo(s) {shop_name}"


def _completed(ctx: ShopContext, order: Order) -> CheckoutResult:
    return CheckoutResult(order_id=order.id, redirect_url=ctx.success_url(order.id), reused=True)


def _mint_session(ctx: ShopContext, order: Order, gateway_key: str) -> Dict[str, Any]:
    """
    Crée la session Stripe pour la commande.
    Une soumission concurrente avec la même clé reçoit GatewayBusy tant que la première est en cours:
    on réessaie avec un backoff exponentiel, Stripe rejouant alors la réponse de la première requête.
    """
    tries = 0
    while True:
        try:
            session = ctx.gateway.create_checkout_session(
                amount_cents=order.total_amount_cents,
                currency=order.currency,
                idempotency_key=gateway_key,
                metadata={"order_id": order.id},
                description=_session_description(order, ctx.shop_name),
                success_url=ctx.success_url(order.id),
                cancel_url=ctx.cancel_url(),
                client_reference_id=order.id,
            )
            break
        except GatewayBusy:
            tries += 1
            if tries > MINT_RETRY_MAX:
                raise
            delay = min(MINT_RETRY_BACKOFF * (2 ** (tries - 1)), MINT_RETRY_MAX_SLEEP)
            logger.info("orders.checkout.mint_session in flight order_id=%s try=%s sleep=%s", order.id, tries, delay)
            ctx.sleep(delay)
    if not session.get("id") or not session.get("url"):
        logger.error("orders.checkout.mint_session incomplete order_id=%s", order.id)
        raise GatewayRejected("Session de paiement incomplète")
    return session


def _session_of_winner(ctx: ShopContext, order: Order) -> Optional[CheckoutResult]:
    """Après GatewayBusy persistant: la requête concurrente a-t-elle déjà rattaché une session ouverte?"""
    current = ctx.orders.get(order.id)
    if current is None:
        return None
    if current.status in COMPLETED:
        return _completed(ctx, current)
    if not current.stripe_session_id or current.stripe_session_id == order.stripe_session_id:
        return None
    session = ctx.gateway.retrieve_session(current.stripe_session_id)
    if session.get("status") == OPEN_SESSION and session.get("url"):
        return CheckoutResult(order_id=current.id, redirect_url=session["url"], reused=True)
    return None


def initiate_checkout(ctx: ShopContext, token: str, cart_lines: Iterable[Union[CartLine, Dict[str, Any]]]) -> CheckoutResult:
    """
    Retourne l'URL de redirection vers le paiement pour ce jeton.
    Rejouer le même jeton avec le même panier ne crée ni commande ni session supplémentaire.
    - Au-delà de ctx.max_photos (CHECKOUT_MAX_PHOTOS, 500 par défaut) le panier est refusé
      (InvalidRequest); price_for, lui, n'a pas de limite.
    - Soumissions concurrentes: un seul insert gagne, la session Stripe converge par la clé d'idempotence.
    """
    token = (token or "").strip()
    if not token:
        raise InvalidRequest("Jeton d'idempotence manquant")
    if not TOKEN_PATTERN.match(token):
        raise InvalidRequest("Jeton d'idempotence invalide (A-Z, a-z, 0-9, _ et -; 128 max)")

    lines = aggregate_lines(cart_lines)
    if not lines:
        raise InvalidRequest("Panier vide")
    photo_count = sum(line.quantity for line in lines)
    if photo_count == 0:
        raise EmptyCart("Aucune photo dans le panier")
    if photo_count > ctx.max_photos:
        raise InvalidRequest(f"Trop de photos dans le panier (max {ctx.max_photos})")

    record = {
        "id": token,
        "status": OrderStatus.PENDING.value,
        "total_amount_cents": price_for(photo_count),
        "currency": ctx.currency,
        "line_items": [line.to_dict() for line in lines],
        "photo_count": photo_count,
        "created_at": ctx.clock().isoformat(),
    }
    created, order = ctx.orders.insert_if_absent(record)
    logger.info("orders.checkout.initiate order_id=%s created=%s status=%s", order.id, created, order.status.value)

    gateway_key = token
    if not created:
        if not _same_cart(order, lines):
            logger.warning("orders.checkout.initiate conflict order_id=%s", order.id)
            raise IdempotencyConflict("Ce jeton a déjà servi pour un autre panier")
        if order.status in COMPLETED:
            return _completed(ctx, order)
        if order.status == OrderStatus.CANCELED:
            raise InvalidState("Commande annulée: utilisez un nouveau jeton")
        if order.stripe_session_id:
            session = ctx.gateway.retrieve_session(order.stripe_session_id)
            if session.get("status") == OPEN_SESSION and session.get("url"):
                return CheckoutResult(order_id=order.id, redirect_url=session["url"], reused=True)
            if session.get("status") == COMPLETE_SESSION:
                # paiement effectué, l'événement de complétion n'est pas encore traité
                return _completed(ctx, order)
            # session expirée: une nouvelle clé, dérivée de l'ancienne session
            gateway_key = f"{token}:{order.stripe_session_id}"
            logger.info("orders.checkout.initiate replacing session order_id=%s old=%s", order.id, order.stripe_session_id)

    try:
        session = _mint_session(ctx, order, gateway_key)
    except GatewayBusy:
        winner = _session_of_winner(ctx, order)
        if winner is None:
            raise
        logger.info("orders.checkout.initiate reusing concurrent session order_id=%s", order.id)
        return winner
    updated = ctx.orders.update_where(order.id, {"stripe_session_id": session["id"]}, expected_statuses=PAYABLE)
    if updated is None:
        current = ctx.orders.get(order.id)
        if current is not None and current.status in COMPLETED:
            return _completed(ctx, current)
        raise InvalidState("La commande n'est plus en attente de paiement")
    return CheckoutResult(order_id=order.id, redirect_url=session["url"], reused=not created)
