"""Ports (protocoles) des collaborateurs externes.

Le cœur (checkout, machine à états) ne dépend que de ces interfaces; les
implémentations concrètes vivent dans `orders.repository` (Supabase),
`payments.stripe_client` (Stripe), `storage.blob_store` (Supabase Storage)
et `mail.mailer` (Resend). Les tests injectent des doublures.
"""

from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from photostore.orders.models import Order, OrderStatus


class OrderRepositoryPort(Protocol):
    """Magasin d'enregistrements pour la table des commandes.

    La contrainte d'unicité sur `id` (jeton d'idempotence) et la mise à jour
    conditionnelle sont les deux primitives de concurrence du cœur.
    """

    def insert_if_absent(self, record: Dict[str, Any]) -> Tuple[bool, Order]:
        """Insère la commande si l'id est libre.

        Returns:
            (created, order): created vaut False si une commande existait
            déjà pour cet id; order est alors la commande existante.
        """
        raise NotImplementedError()

    def update_where(
        self,
        order_id: str,
        patch: Dict[str, Any],
        expected_statuses: Optional[Iterable[OrderStatus]] = None,
    ) -> Optional[Order]:
        """Compare-and-update: applique `patch` si le statut courant est attendu.

        Returns:
            La commande mise à jour, ou None si aucune ligne ne correspondait.
        """
        raise NotImplementedError()

    def get(self, order_id: str) -> Optional[Order]:
        raise NotImplementedError()

    def find_by_session(self, session_id: str) -> Optional[Order]:
        raise NotImplementedError()

    def list(self, status: Optional[OrderStatus] = None, limit: int = 100) -> List[Order]:
        raise NotImplementedError()


class PaymentGatewayPort(Protocol):
    """Fournisseur de sessions de paiement hébergées (Stripe Checkout)."""

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
        """Retourne {"id": ..., "url": ...}."""
        raise NotImplementedError()

    def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        """Retourne {"id": ..., "url": ..., "status": "open"|"complete"|"expired"}."""
        raise NotImplementedError()

    def verify_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Vérifie la signature et retourne l'événement; lève SignatureInvalid sinon."""
        raise NotImplementedError()


class BlobStorePort(Protocol):
    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError()

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        raise NotImplementedError()

    def create_signed_upload_url(self, bucket: str, path: str) -> Dict[str, str]:
        raise NotImplementedError()


class MailerPort(Protocol):
    def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> str:
        """Envoie un email; retourne l'identifiant du message."""
        raise NotImplementedError()
