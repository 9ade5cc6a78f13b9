"""
Accès aux données pour la feature 'orders' (table Supabase `orders`).
- insert_if_absent s'appuie sur la contrainte d'unicité de la clé primaire (code Postgres 23505).
- update_where est un compare-and-update: `update ... where id = X and status in (...)`.
- Les erreurs Supabase/réseau sont journalisées puis propagées en UpstreamUnavailable.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

import httpx
from postgrest.exceptions import APIError

from photostore.errors import UpstreamUnavailable
from photostore.orders.models import Order, OrderStatus

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"
UNIQUE_VIOLATION = "23505"


def _error_code(e: APIError) -> Optional[str]:
    code = getattr(e, "code", None)
    if code:
        return str(code)
    if e.args and isinstance(e.args[0], dict):
        return e.args[0].get("code")
    return None


def _first(data: Any) -> Optional[Dict[str, Any]]:
    if isinstance(data, list):
        return data[0] if data else None
    if isinstance(data, dict):
        return data or None
    return None


# module photostore.orders.repository
class SupabaseOrderRepository:
    """Repository des commandes, client service-role injecté."""

    def __init__(self, client, table: str = ORDERS_TABLE):
        self.client = client
        self.table = table

    def _query(self):
        return self.client.table(self.table)

    def insert_if_absent(self, record: Dict[str, Any]) -> Tuple[bool, Order]:
        order_id = record["id"]
        try:
            res = self._query().insert(record).execute()
        except APIError as e:
            if _error_code(e) != UNIQUE_VIOLATION:
                logger.exception("orders.repository.insert_if_absent failed id=%s", order_id)
                raise UpstreamUnavailable("Enregistrement de la commande impossible") from e
            # Doublon: le gagnant a déjà inséré, on relit sa ligne
            existing = self.get(order_id)
            if existing is None:
                raise UpstreamUnavailable("Commande en conflit introuvable") from e
            return False, existing
        except httpx.HTTPError as e:
            logger.exception("orders.repository.insert_if_absent unreachable id=%s", order_id)
            raise UpstreamUnavailable("Base de données injoignable") from e

        row = _first(res.data) or record
        return True, Order.from_row(row)

    def update_where(
        self,
        order_id: str,
        patch: Dict[str, Any],
        expected_statuses: Optional[Iterable[OrderStatus]] = None,
    ) -> Optional[Order]:
        try:
            query = self._query().update(patch).eq("id", order_id)
            if expected_statuses is not None:
                query = query.in_("status", [OrderStatus(s).value for s in expected_statuses])
            res = query.execute()
        except (APIError, httpx.HTTPError) as e:
            logger.exception("orders.repository.update_where failed id=%s patch=%s", order_id, sorted(patch))
            raise UpstreamUnavailable("Mise à jour de la commande impossible") from e
        row = _first(res.data)
        return Order.from_row(row) if row else None

    def _select_one(self, column: str, value: str) -> Optional[Order]:
        try:
            res = self._query().select("*").eq(column, value).limit(1).execute()
        except (APIError, httpx.HTTPError) as e:
            logger.exception("orders.repository.select failed %s=%s", column, value)
            raise UpstreamUnavailable("Lecture de la commande impossible") from e
        row = _first(res.data)
        return Order.from_row(row) if row else None

    def get(self, order_id: str) -> Optional[Order]:
        return self._select_one("id", order_id)

    def find_by_session(self, session_id: str) -> Optional[Order]:
        return self._select_one("stripe_session_id", session_id)

    def list(self, status: Optional[OrderStatus] = None, limit: int = 100) -> List[Order]:
        """Commandes pour l'admin, les plus récentes d'abord."""
        try:
            query = self._query().select("*")
            if status is not None:
                query = query.eq("status", OrderStatus(status).value)
            res = query.order("created_at", desc=True).limit(limit).execute()
        except (APIError, httpx.HTTPError) as e:
            logger.exception("orders.repository.list failed status=%s", status)
            raise UpstreamUnavailable("Lecture des commandes impossible") from e
        return [Order.from_row(r) for r in (res.data or [])]
