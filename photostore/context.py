"""
Contexte applicatif: collaborateurs injectés + réglages de la boutique.
- Construit une seule fois au démarrage (lifespan) via build_context().
- Les tests passent leur propre ShopContext à create_app(context=...).
- Les routes l'obtiennent via la dépendance get_context (aucun client global).
"""
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from fastapi import Request

from photostore import config
from photostore.errors import UpstreamUnavailable
from photostore.ports import BlobStorePort, MailerPort, OrderRepositoryPort, PaymentGatewayPort


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ShopContext:
    orders: OrderRepositoryPort
    gateway: PaymentGatewayPort
    blobs: BlobStorePort
    mailer: MailerPort
    # Client Supabase service-role (auth admin); None dans les tests
    supabase: Optional[Any] = None
    currency: str = "eur"
    site_url: str = "http://localhost:8000"
    success_path: str = "/success"
    cancel_path: str = "/cart"
    delivery_bucket: str = "deliveries"
    signed_url_expires: int = 60 * 60 * 24
    max_photos: int = 500
    shop_name: str = "PhotographI.nes"
    admin_emails: List[str] = field(default_factory=list)
    clock: Callable[[], datetime] = utcnow
    sleep: Callable[[float], None] = time.sleep

    def success_url(self, order_id: str) -> str:
        sep = "&" if "?" in self.success_path else "?"
        return f"{self.site_url}{self.success_path}{sep}order_id={order_id}"

    def cancel_url(self) -> str:
        return f"{self.site_url}{self.cancel_path}"


def build_context() -> ShopContext:
    """
    Construit les adaptateurs réels à partir de photostore.config.
    - Supabase (orders + storage + auth) partage un seul client service-role.
    - Stripe et Resend reçoivent leurs clés explicitement.
    """
    from photostore.infra.supabase_client import create_service_client
    from photostore.orders.repository import SupabaseOrderRepository
    from photostore.payments.stripe_client import StripeGateway
    from photostore.storage.blob_store import SupabaseBlobStore
    from photostore.mail.mailer import ResendMailer

    client = create_service_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_KEY)
    return ShopContext(
        orders=SupabaseOrderRepository(client),
        gateway=StripeGateway(api_key=config.STRIPE_SECRET_KEY, webhook_secret=config.STRIPE_WEBHOOK_SECRET),
        blobs=SupabaseBlobStore(client),
        mailer=ResendMailer(api_key=config.RESEND_API_KEY, sender=config.EMAIL_FROM),
        supabase=client,
        currency=config.SHOP_CURRENCY,
        site_url=config.SITE_URL,
        success_path=config.CHECKOUT_SUCCESS_PATH,
        cancel_path=config.CHECKOUT_CANCEL_PATH,
        delivery_bucket=config.DELIVERY_BUCKET,
        signed_url_expires=config.SIGNED_URL_EXPIRES,
        max_photos=config.CHECKOUT_MAX_PHOTOS,
        shop_name=config.SHOP_NAME,
        admin_emails=list(config.ADMIN_EMAILS),
    )


def get_context(request: Request) -> ShopContext:
    """Dépendance FastAPI: retourne le contexte attaché à app.state par le lifespan/la factory."""
    ctx = getattr(request.app.state, "context", None)
    if ctx is None:
        raise UpstreamUnavailable("Service indisponible: contexte non initialisé")
    return ctx
