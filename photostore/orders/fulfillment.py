"""
Machine à états d'exécution des commandes (PENDING -> PAID -> SENT, CANCELED).

Trois déclencheurs:
- l'événement de paiement Stripe (webhook), rejouable: PENDING -> PAID conditionnel
- l'override admin (set_order_status), inconditionnel et journalisé
- l'envoi manuel des fichiers (send_order_files): SENT seulement après l'email parti
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from photostore.context import ShopContext
from photostore.errors import InvalidRequest, InvalidState, InvalidStatus, MissingRecipient, OrderNotFound
from photostore.mail.templates import default_subject, render_delivery_email
from photostore.orders.delivery import build_delivery_path, build_upload_path, sanitize_filename
from photostore.orders.models import PAYABLE, SENDABLE, Order, OrderStatus
from photostore.payments.metadata import CompletionEvent, extract_completion

logger = logging.getLogger(__name__)

# Issues possibles du traitement d'un événement de paiement
OUTCOME_IGNORED = "ignored"
OUTCOME_PAID = "paid"
OUTCOME_ALREADY_APPLIED = "already_applied"
OUTCOME_UNKNOWN_ORDER = "unknown_order"

DEFAULT_CONTENT_TYPE = "application/octet-stream"
MAX_LIST_LIMIT = 500


@dataclass
class DeliveryFile:
    """Fichier reçu de l'admin (nom d'origine, contenu, type MIME)."""

    filename: str
    data: bytes
    content_type: Optional[str] = None


@dataclass(frozen=True)
class DeliveredFile:
    name: str
    path: str
    url: str


@dataclass
class DeliveryResult:
    order: Order
    files: List[DeliveredFile] = field(default_factory=list)


def _require_order(ctx: ShopContext, order_id: str) -> Order:
    order = ctx.orders.get(order_id) if order_id else None
    if order is None:
        raise OrderNotFound(f"Commande introuvable: {order_id}")
    return order


# --- événement de paiement -------------------------------------------------

def handle_payment_event(ctx: ShopContext, payload: bytes, signature: Optional[str]) -> str:
    """
    Point d'entrée du webhook: vérifie la signature AVANT toute lecture, puis applique.
    Retourne l'issue (OUTCOME_*); un rejeu n'est jamais une erreur.
    """
    event = ctx.gateway.verify_event(payload, signature)
    completion = extract_completion(event)
    if completion is None:
        logger.info("orders.fulfillment.payment_event ignored type=%s id=%s", event.get("type"), event.get("id"))
        return OUTCOME_IGNORED
    return handle_payment_completion(ctx, completion)


def handle_payment_completion(ctx: ShopContext, completion: CompletionEvent) -> str:
    """
    PENDING -> PAID, une seule fois, quel que soit le nombre de livraisons de l'événement.
    - commande retrouvée par session, sinon par metadata.order_id
    - update conditionnel `status = PENDING`: le rejeu ne trouve aucune ligne et n'écrit rien
    - seuls le statut, l'email du payeur et la référence de session sont écrits
    """
    if not completion.confirms_payment:
        logger.info(
            "orders.fulfillment.payment_completion not paid session=%s payment_status=%s",
            completion.session_id,
            completion.payment_status,
        )
        return OUTCOME_IGNORED

    order = ctx.orders.find_by_session(completion.session_id)
    if order is None and completion.order_id:
        order = ctx.orders.get(completion.order_id)
    if order is None:
        logger.warning(
            "orders.fulfillment.payment_completion unknown order session=%s order_id=%s event=%s",
            completion.session_id,
            completion.order_id,
            completion.event_id,
        )
        return OUTCOME_UNKNOWN_ORDER

    patch = {"status": OrderStatus.PAID.value, "stripe_session_id": completion.session_id}
    if completion.payer_email:
        patch["email"] = completion.payer_email

    updated = ctx.orders.update_where(order.id, patch, expected_statuses=PAYABLE)
    if updated is None:
        if order.status == OrderStatus.CANCELED:
            logger.warning("orders.fulfillment.payment_completion paid after cancel order_id=%s event=%s", order.id, completion.event_id)
        else:
            logger.info("orders.fulfillment.payment_completion replay order_id=%s event=%s", order.id, completion.event_id)
        return OUTCOME_ALREADY_APPLIED

    logger.info("orders.fulfillment.payment_completion paid order_id=%s event=%s", updated.id, completion.event_id)
    return OUTCOME_PAID


# --- override admin --------------------------------------------------------

def set_order_status(ctx: ShopContext, order_id: str, status, actor: Optional[str] = None) -> Order:
    """
    Override administratif inconditionnel.
    - statut hors {PENDING, PAID, SENT, CANCELED} -> InvalidStatus
    - SENT horodate sent_at; tout autre statut l'efface
    """
    target = status if isinstance(status, OrderStatus) else OrderStatus.parse(status)
    if target is None:
        raise InvalidStatus(f"Statut invalide: {status}")

    previous = _require_order(ctx, order_id)
    patch = {
        "status": target.value,
        "sent_at": ctx.clock().isoformat() if target == OrderStatus.SENT else None,
    }
    updated = ctx.orders.update_where(order_id, patch)
    if updated is None:
        raise OrderNotFound(f"Commande introuvable: {order_id}")

    logger.warning(
        "orders.fulfillment.set_status audit order_id=%s from=%s to=%s actor=%s",
        order_id,
        previous.status.value,
        target.value,
        actor or "unknown",
    )
    return updated


# --- envoi manuel des fichiers ---------------------------------------------

def send_order_files(
    ctx: ShopContext,
    order_id: str,
    files: Sequence[DeliveryFile],
    subject: Optional[str] = None,
    message: Optional[str] = None,
) -> DeliveryResult:
    """
    Dépose les fichiers, envoie un email avec un lien signé par fichier, puis passe la commande à SENT.
    - préconditions: statut PAID ou SENT (renvoi permis), email du payeur connu
    - un échec d'upload ou d'email laisse le statut inchangé (les fichiers déjà déposés restent)
    - la transition finale est conditionnelle: un changement de statut concurrent -> InvalidState
    """
    order = _require_order(ctx, order_id)
    if order.status not in SENDABLE:
        raise InvalidState(f"Envoi impossible pour une commande {order.status.value}")
    recipient = (order.email or "").strip()
    if not recipient:
        raise MissingRecipient("Cette commande n'a pas d'email.")

    payloads = [f for f in (files or []) if f is not None and f.data]
    if not payloads:
        raise InvalidRequest("Aucun fichier reçu. Ajoute au moins une photo.")

    delivered: List[DeliveredFile] = []
    for item in payloads:
        safe_name = sanitize_filename(item.filename)
        path = build_delivery_path(order.id, safe_name, ctx.clock())
        content_type = item.content_type if item.content_type and "/" in item.content_type else DEFAULT_CONTENT_TYPE
        ctx.blobs.upload(ctx.delivery_bucket, path, item.data, content_type)
        url = ctx.blobs.create_signed_url(ctx.delivery_bucket, path, ctx.signed_url_expires)
        delivered.append(DeliveredFile(name=safe_name, path=path, url=url))
    logger.info("orders.fulfillment.send_files uploaded order_id=%s count=%s", order.id, len(delivered))

    text, html = render_delivery_email(
        [(d.name, d.url) for d in delivered],
        message=message or "",
        shop_name=ctx.shop_name,
    )
    ctx.mailer.send(recipient, (subject or "").strip() or default_subject(ctx.shop_name, order.id), text, html)

    patch = {"status": OrderStatus.SENT.value, "sent_at": ctx.clock().isoformat()}
    updated = ctx.orders.update_where(order.id, patch, expected_statuses=SENDABLE)
    if updated is None:
        logger.error("orders.fulfillment.send_files status changed during send order_id=%s", order.id)
        raise InvalidState("Le statut de la commande a changé pendant l'envoi")
    logger.info("orders.fulfillment.send_files sent order_id=%s to=%s", order.id, recipient)
    return DeliveryResult(order=updated, files=delivered)


def create_delivery_upload_url(ctx: ShopContext, order_id: str, file_name: str, content_type: Optional[str] = None) -> dict:
    """URL d'upload signée pour déposer un fichier de livraison directement depuis le navigateur."""
    name = (file_name or "").strip()
    if not name:
        raise InvalidRequest("fileName manquant")
    order = _require_order(ctx, order_id)
    path = build_upload_path(order.id, name, ctx.clock())
    signed = ctx.blobs.create_signed_upload_url(ctx.delivery_bucket, path)
    return {
        "signed_url": signed.get("signed_url"),
        "token": signed.get("token"),
        "path": path,
        "content_type": (content_type or "").strip() or DEFAULT_CONTENT_TYPE,
    }


# --- lecture admin ---------------------------------------------------------

def list_orders(ctx: ShopContext, status=None, limit: int = 100) -> List[Order]:
    wanted = None
    if status:
        wanted = status if isinstance(status, OrderStatus) else OrderStatus.parse(status)
        if wanted is None:
            raise InvalidStatus(f"Statut invalide: {status}")
    return ctx.orders.list(status=wanted, limit=max(1, min(int(limit), MAX_LIST_LIMIT)))


def get_order(ctx: ShopContext, order_id: str) -> Order:
    return _require_order(ctx, order_id)
