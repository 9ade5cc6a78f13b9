import hashlib
import hmac
import json
import os
import threading
import time
from typing import Any, Dict, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient

# Pas de Redis pendant les tests: le limiter est neutralisé au démarrage
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

from photostore.app_setup.factory import create_app
from photostore.auth.security import require_admin
from photostore.context import ShopContext
from photostore.errors import GatewayBusy, UpstreamUnavailable
from photostore.orders.models import Order, OrderStatus
from photostore.payments.stripe_client import StripeGateway

WEBHOOK_SECRET = "whsec_test_secret"
ADMIN_USER = {"id": "admin-user-id", "email": "admin@example.com", "metadata": {}}


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "/load/" in nodeid:
            item.add_marker(pytest.mark.load)


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """En-tête Stripe-Signature valide (schéma v1: HMAC-SHA256 de "t.payload")."""
    ts = int(timestamp if timestamp is not None else time.time())
    signed = f"{ts}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def completion_event(
    session_id: str,
    order_id: Optional[str] = None,
    email: Optional[str] = "client@example.com",
    event_type: str = "checkout.session.completed",
    payment_status: str = "paid",
    event_id: str = "evt_test_1",
) -> Dict[str, Any]:
    session: Dict[str, Any] = {
        "id": session_id,
        "object": "checkout.session",
        "payment_status": payment_status,
        "metadata": {"order_id": order_id} if order_id else {},
        "customer_details": {"email": email} if email else None,
        "amount_total": 1,
    }
    return {"id": event_id, "object": "event", "type": event_type, "data": {"object": session}}


class InMemoryOrderRepository:
    """Table orders en mémoire: unicité de l'id et compare-and-update sous verrou."""

    def __init__(self):
        self._rows: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self.writes = 0
        self.error: Optional[Exception] = None

    def _check(self):
        if self.error is not None:
            raise self.error

    def insert_if_absent(self, record):
        with self._lock:
            self._check()
            existing = self._rows.get(record["id"])
            if existing is not None:
                return False, Order.from_row(dict(existing))
            row = {"email": None, "stripe_session_id": None, "sent_at": None, **record}
            self._rows[record["id"]] = row
            self.writes += 1
            return True, Order.from_row(dict(row))

    def update_where(self, order_id, patch, expected_statuses=None):
        with self._lock:
            self._check()
            row = self._rows.get(order_id)
            if row is None:
                return None
            if expected_statuses is not None:
                allowed = {OrderStatus(s).value for s in expected_statuses}
                if row["status"] not in allowed:
                    return None
            row.update(patch)
            self.writes += 1
            return Order.from_row(dict(row))

    def get(self, order_id):
        with self._lock:
            self._check()
            row = self._rows.get(order_id)
            return Order.from_row(dict(row)) if row else None

    def find_by_session(self, session_id):
        with self._lock:
            self._check()
            for row in self._rows.values():
                if row.get("stripe_session_id") == session_id:
                    return Order.from_row(dict(row))
            return None

    def list(self, status=None, limit=100):
        with self._lock:
            rows = [r for r in self._rows.values() if status is None or r["status"] == OrderStatus(status).value]
            rows.sort(key=lambda r: r.get("created_at") or "", reverse=True)
            return [Order.from_row(dict(r)) for r in rows[:limit]]

    def seed(self, order_id: str = "order-1", status: OrderStatus = OrderStatus.PAID, **fields) -> Order:
        row = {
            "id": order_id,
            "status": OrderStatus(status).value,
            "total_amount_cents": 2000,
            "currency": "eur",
            "line_items": [{"product_id": "p1", "quantity": 3}],
            "photo_count": 3,
            "email": "client@example.com",
            "stripe_session_id": None,
            "sent_at": None,
            "created_at": "2026-01-01T10:00:00+00:00",
        }
        row.update(fields)
        with self._lock:
            self._rows[order_id] = row
        return Order.from_row(dict(row))

    def raw(self, order_id: str) -> Dict[str, Any]:
        return dict(self._rows[order_id])

    def __len__(self):
        return len(self._rows)


class FakeGateway:
    """
    Stripe Checkout simulé: une session par clé d'idempotence; vérification de signature réelle.
    - busy_for[clé] = n: les n prochains appels avec cette clé reçoivent le 409 "requête en cours"
    - in_flight_delay > 0: la création dure ce délai hors verrou; un appel concurrent avec la
      même clé pendant ce temps reçoit GatewayBusy, comme chez Stripe
    """

    def __init__(self, webhook_secret: str = WEBHOOK_SECRET):
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.by_key: Dict[str, str] = {}
        self.create_calls: List[Dict[str, Any]] = []
        self.retrieve_calls: List[str] = []
        self.error: Optional[Exception] = None
        self.busy_for: Dict[str, int] = {}
        self.in_flight_delay = 0.0
        self.busy_rejections = 0
        self._in_flight: set = set()
        self._lock = threading.Lock()
        self._verifier = StripeGateway(api_key="sk_test_dummy", webhook_secret=webhook_secret)

    def _new_session(self, key: str, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        if key not in self.by_key:
            sid = f"cs_test_{len(self.sessions) + 1}"
            self.sessions[sid] = {"id": sid, "url": f"https://checkout.stripe.test/pay/{sid}", "status": "open", **kwargs}
            self.by_key[key] = sid
        s = self.sessions[self.by_key[key]]
        return {"id": s["id"], "url": s["url"]}

    def create_checkout_session(self, **kwargs):
        key = kwargs["idempotency_key"]
        with self._lock:
            self.create_calls.append(kwargs)
            if self.error is not None:
                raise self.error
            if self.busy_for.get(key, 0) > 0 or key in self._in_flight:
                if self.busy_for.get(key, 0) > 0:
                    self.busy_for[key] -= 1
                self.busy_rejections += 1
                raise GatewayBusy("Requête Stripe déjà en cours (create_session)")
            if key in self.by_key or not self.in_flight_delay:
                return self._new_session(key, kwargs)
            self._in_flight.add(key)
        time.sleep(self.in_flight_delay)
        with self._lock:
            self._in_flight.discard(key)
            return self._new_session(key, kwargs)

    def retrieve_session(self, session_id):
        self.retrieve_calls.append(session_id)
        if self.error is not None:
            raise self.error
        s = self.sessions[session_id]
        return {"id": s["id"], "url": s["url"], "status": s["status"]}

    def verify_event(self, payload, signature):
        return self._verifier.verify_event(payload, signature)

    def set_status(self, session_id: str, status: str):
        self.sessions[session_id]["status"] = status
        if status != "open":
            self.sessions[session_id]["url"] = None

    @property
    def distinct_sessions(self) -> int:
        return len(self.sessions)


class FakeBlobStore:
    def __init__(self):
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.error: Optional[Exception] = None

    def upload(self, bucket, path, data, content_type):
        if self.error is not None:
            raise self.error
        key = f"{bucket}/{path}"
        if key in self.objects:
            raise UpstreamUnavailable(f"Upload impossible: {path}")
        self.objects[key] = {"data": data, "content_type": content_type}

    def create_signed_url(self, bucket, path, expires_in):
        return f"https://storage.test/{bucket}/{path}?token=signed&expires={expires_in}"

    def create_signed_upload_url(self, bucket, path):
        return {"path": path, "token": "upload-token", "signed_url": f"https://storage.test/upload/{bucket}/{path}?token=upload-token"}


class FakeMailer:
    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None

    def send(self, to, subject, text, html=None):
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})
        return f"msg_{len(self.sent)}"


@pytest.fixture()
def orders() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def blobs() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture()
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture()
def ctx(orders, gateway, blobs, mailer) -> ShopContext:
    return ShopContext(
        orders=orders,
        gateway=gateway,
        blobs=blobs,
        mailer=mailer,
        site_url="https://shop.test",
        admin_emails=[ADMIN_USER["email"]],
    )


@pytest.fixture()
def app(ctx):
    return create_app(context=ctx)


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def admin_client(app, client):
    app.dependency_overrides[require_admin] = lambda: ADMIN_USER
    yield client
    app.dependency_overrides.clear()


@pytest.fixture()
def signed_event():
    """Retourne (payload, en-têtes) signés pour un événement donné."""
    def _make(event: Dict[str, Any], secret: str = WEBHOOK_SECRET):
        payload = json.dumps(event).encode("utf-8")
        return payload, {"stripe-signature": sign_payload(payload, secret), "content-type": "application/json"}
    return _make
