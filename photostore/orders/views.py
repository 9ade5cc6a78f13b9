import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, Header, Query, UploadFile
from starlette.concurrency import run_in_threadpool

from photostore.auth.security import require_admin
from photostore.context import ShopContext, get_context
from photostore.errors import InvalidRequest
from photostore.utils.rate_limit import optional_rate_limit
from .checkout import initiate_checkout
from .fulfillment import (
    DeliveryFile,
    create_delivery_upload_url,
    get_order,
    list_orders,
    send_order_files,
    set_order_status,
)
from .schemas import CheckoutRequest, CheckoutResponse, DeliveryUploadIn, OrderOut, StatusUpdateIn

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout API"])
admin_router = APIRouter(prefix="/api/v1/admin/orders", tags=["Admin Orders"])

# module photostore.orders.views
@router.post("", response_model=CheckoutResponse, dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_checkout(
    body: CheckoutRequest,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    ctx: ShopContext = Depends(get_context),
) -> CheckoutResponse:
    """
    Démarre (ou reprend) le paiement d'un panier.
    - Entrée JSON: { "idempotency_key": "<jeton>", "items": [ { "id": "<produit>", "qty": 2 }, ... ] }
      (le jeton peut aussi venir de l'en-tête Idempotency-Key)
    - Rejouer le même jeton renvoie la même commande et la même session
    - Erreurs: 400 panier/jeton invalide, 409 jeton réutilisé pour un autre panier, 502/503 Stripe/Supabase
    """
    header_key = (idempotency_key or "").strip()
    body_key = (body.idempotency_key or "").strip()
    if header_key and body_key and header_key != body_key:
        raise InvalidRequest("Idempotency-Key et idempotency_key diffèrent")
    token = header_key or body_key

    lines = [{"product_id": it.product_id, "quantity": it.quantity} for it in body.items]
    result = initiate_checkout(ctx, token, lines)
    return CheckoutResponse(order_id=result.order_id, url=result.redirect_url, reused=result.reused)


@admin_router.get("")
def admin_list_orders(
    status: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    ctx: ShopContext = Depends(get_context),
    admin: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    orders = list_orders(ctx, status=status, limit=limit)
    return {"orders": [OrderOut.from_order(o).model_dump(mode="json") for o in orders]}


@admin_router.get("/{order_id}", response_model=OrderOut)
def admin_get_order(
    order_id: str,
    ctx: ShopContext = Depends(get_context),
    admin: Dict[str, Any] = Depends(require_admin),
) -> OrderOut:
    return OrderOut.from_order(get_order(ctx, order_id))


@admin_router.post("/{order_id}/status")
def admin_set_status(
    order_id: str,
    body: StatusUpdateIn,
    ctx: ShopContext = Depends(get_context),
    admin: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    """
    Override admin du statut (PENDING, PAID, SENT, CANCELED), sans précondition.
    SENT horodate sent_at; tout autre statut l'efface.
    """
    order = set_order_status(ctx, order_id, body.status, actor=admin.get("email"))
    return {"ok": True, "order": OrderOut.from_order(order).model_dump(mode="json")}


@admin_router.post("/{order_id}/send")
async def admin_send_files(
    order_id: str,
    files: Optional[List[UploadFile]] = File(default=None),
    subject: str = Form(default=""),
    message: str = Form(default=""),
    ctx: ShopContext = Depends(get_context),
    admin: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    """
    Envoi manuel des photos: upload (bucket privé) + email avec liens signés, puis SENT.
    - Form multipart: files (1..n), subject, message (optionnels)
    - Erreurs: 409 si la commande n'est ni PAID ni SENT, 422 sans email, 503 si upload/email échoue
    """
    payloads: List[DeliveryFile] = []
    for upload in files or []:
        data = await upload.read()
        payloads.append(DeliveryFile(filename=upload.filename or "", data=data, content_type=upload.content_type))

    result = await run_in_threadpool(
        send_order_files, ctx, order_id, payloads, subject=subject, message=message
    )
    logger.info("orders.views.send_files order_id=%s count=%s admin=%s", order_id, len(result.files), admin.get("email"))
    return {
        "ok": True,
        "order": OrderOut.from_order(result.order).model_dump(mode="json"),
        "uploaded": [{"name": f.name, "url": f.url} for f in result.files],
    }


@admin_router.post("/{order_id}/delivery-upload")
def admin_delivery_upload(
    order_id: str,
    body: DeliveryUploadIn,
    ctx: ShopContext = Depends(get_context),
    admin: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    """URL d'upload signée: le navigateur admin dépose le fichier sans transiter par l'API."""
    return create_delivery_upload_url(ctx, order_id, body.file_name, body.content_type)
