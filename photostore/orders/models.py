"""Modèle de domaine des commandes.

Ce module contient l'énumération des statuts, les DTO (ligne de panier,
commande) et la table des transitions gardées de la machine à états.
Les lignes de la table `orders` (Supabase) sont converties via
`Order.from_row` / `Order.to_row`.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


class OrderStatus(str, Enum):
    """Statuts possibles d'une commande.

    PENDING est l'état initial, SENT le terminal « succès » et CANCELED le
    terminal « abandon ». SENT -> PAID n'existe que comme correction admin.
    """

    PENDING = "PENDING"
    PAID = "PAID"
    SENT = "SENT"
    CANCELED = "CANCELED"

    @classmethod
    def parse(cls, value: Any) -> Optional["OrderStatus"]:
        """Retourne le statut correspondant (insensible à la casse) ou None."""
        raw = str(value or "").strip().upper()
        try:
            return cls(raw)
        except ValueError:
            return None


# Transitions gardées par une mise à jour conditionnelle (l'override admin, inconditionnel, n'y figure pas)
TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELED}),
    OrderStatus.PAID: frozenset({OrderStatus.SENT, OrderStatus.CANCELED}),
    # renvoi des fichiers
    OrderStatus.SENT: frozenset({OrderStatus.SENT}),
    OrderStatus.CANCELED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def sources_for(target: OrderStatus) -> FrozenSet[OrderStatus]:
    """Statuts depuis lesquels `target` est atteignable: le WHERE status IN (...) de la transition."""
    return frozenset(s for s, targets in TRANSITIONS.items() if target in targets)


# Commande encore payable: seule une commande PENDING accepte une session ou un paiement
PAYABLE: FrozenSet[OrderStatus] = sources_for(OrderStatus.PAID)
# Statuts depuis lesquels l'envoi manuel des fichiers est permis (renvoi inclus)
SENDABLE: FrozenSet[OrderStatus] = sources_for(OrderStatus.SENT)
COMPLETED: FrozenSet[OrderStatus] = frozenset({OrderStatus.PAID, OrderStatus.SENT})


@dataclass(frozen=True)
class CartLine:
    """Une ligne de panier (instantané figé dans la commande)."""

    product_id: str
    quantity: int

    def to_dict(self) -> Dict[str, Any]:
        return {"product_id": self.product_id, "quantity": self.quantity}


@dataclass
class Order:
    """Commande persistée.

    Attributes:
        id: Jeton d'idempotence fourni par le client (clé primaire).
        status: OrderStatus courant.
        total_amount_cents: Montant figé à la création, jamais recalculé.
        currency: Devise figée à la création.
        line_items: Instantané du panier.
        photo_count: Somme des quantités.
        email: Email du payeur, renseigné par l'événement de paiement.
        stripe_session_id: Référence de la session Checkout.
        sent_at: Horodatage d'envoi; non nul si et seulement si status == SENT.
        created_at: Horodatage de création.
    """

    id: str
    status: OrderStatus
    total_amount_cents: int
    currency: str
    line_items: List[CartLine] = field(default_factory=list)
    photo_count: int = 0
    email: Optional[str] = None
    stripe_session_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        items = [
            CartLine(product_id=str(it.get("product_id") or ""), quantity=int(it.get("quantity") or 0))
            for it in (row.get("line_items") or [])
        ]
        return cls(
            id=str(row["id"]),
            status=OrderStatus(str(row.get("status") or OrderStatus.PENDING.value)),
            total_amount_cents=int(row.get("total_amount_cents") or 0),
            currency=str(row.get("currency") or ""),
            line_items=items,
            photo_count=int(row.get("photo_count") or 0),
            email=row.get("email") or None,
            stripe_session_id=row.get("stripe_session_id") or None,
            sent_at=_parse_ts(row.get("sent_at")),
            created_at=_parse_ts(row.get("created_at")),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "total_amount_cents": self.total_amount_cents,
            "currency": self.currency,
            "line_items": [it.to_dict() for it in self.line_items],
            "photo_count": self.photo_count,
            "email": self.email,
            "stripe_session_id": self.stripe_session_id,
            "sent_at": _format_ts(self.sent_at),
            "created_at": _format_ts(self.created_at),
        }


def _parse_ts(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    # Postgres renvoie de l'ISO 8601, parfois avec un suffixe "Z"
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _format_ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
