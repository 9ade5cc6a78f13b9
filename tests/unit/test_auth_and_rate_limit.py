from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi import Depends, FastAPI, HTTPException
from fastapi.testclient import TestClient

from photostore.auth.security import require_admin
from photostore.auth.service import get_user_from_token, is_admin
from photostore.context import ShopContext
from photostore.utils.rate_limit import _local_hit, optional_rate_limit


def _ctx_with_supabase(ctx: ShopContext, allowlisted=(), user_email="admin@example.com"):
    supabase = MagicMock()
    supabase.auth.get_user.return_value = SimpleNamespace(
        user=SimpleNamespace(id="u1", email=user_email, user_metadata={})
    )
    query = supabase.table.return_value
    query.select.return_value = query
    query.eq.return_value = query
    query.limit.return_value = query

    def _execute():
        email = query.eq.call_args.args[1]
        return MagicMock(data=[{"email": email}] if email in allowlisted else [])

    query.execute.side_effect = _execute
    ctx.supabase = supabase
    return ctx


def test_is_admin_uses_env_list_first(ctx):
    _ctx_with_supabase(ctx)
    assert is_admin(ctx, "Admin@Example.com") is True
    ctx.supabase.table.assert_not_called()


def test_is_admin_falls_back_to_allowlist_table(ctx):
    _ctx_with_supabase(ctx, allowlisted=("staff@example.com",))
    assert is_admin(ctx, "staff@example.com") is True
    assert is_admin(ctx, "random@example.com") is False
    ctx.supabase.table.assert_called_with("admin_allowlist")


def test_is_admin_without_email(ctx):
    assert is_admin(ctx, None) is False
    assert is_admin(ctx, "  ") is False


def test_get_user_from_token(ctx):
    _ctx_with_supabase(ctx, user_email="Someone@Example.com")
    user = get_user_from_token(ctx, "jwt")
    assert user == {"id": "u1", "email": "someone@example.com", "metadata": {}}
    ctx.supabase.auth.get_user.assert_called_once_with("jwt")


def _admin_app(ctx):
    app = FastAPI()
    app.state.context = ctx

    @app.get("/admin-only")
    def admin_only(user=Depends(require_admin)):
        return {"email": user["email"]}

    return app


def test_require_admin_needs_token(ctx):
    client = TestClient(_admin_app(_ctx_with_supabase(ctx)))
    assert client.get("/admin-only").status_code == 401


def test_require_admin_accepts_bearer_or_cookie(ctx):
    client = TestClient(_admin_app(_ctx_with_supabase(ctx)))
    r = client.get("/admin-only", headers={"Authorization": "Bearer jwt"})
    assert r.status_code == 200
    assert r.json() == {"email": "admin@example.com"}

    client.cookies.set("sb_access", "jwt")
    assert client.get("/admin-only").status_code == 200


def test_require_admin_rejects_non_admin(ctx):
    client = TestClient(_admin_app(_ctx_with_supabase(ctx, user_email="customer@example.com")))
    assert client.get("/admin-only", headers={"Authorization": "Bearer jwt"}).status_code == 403


def test_require_admin_rejects_expired_token(ctx):
    _ctx_with_supabase(ctx)
    ctx.supabase.auth.get_user.side_effect = RuntimeError("invalid JWT")
    client = TestClient(_admin_app(ctx))
    assert client.get("/admin-only", headers={"Authorization": "Bearer jwt"}).status_code == 401


def _limited_app(times=2, seconds=60):
    app = FastAPI()

    @app.get("/limited", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def limited():
        return {"ok": True}

    return app


def test_rate_limit_fallback_blocks_after_limit(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_limited_app(times=2))
    assert client.get("/limited").status_code == 200
    assert client.get("/limited").status_code == 200
    assert client.get("/limited").status_code == 429


def test_rate_limit_disabled_flag_bypasses_limit(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _limited_app(times=1)
    app.state.rate_limit_enabled = False
    client = TestClient(app)
    assert all(client.get("/limited").status_code == 200 for _ in range(3))


def _request_from(ip, app_state):
    return SimpleNamespace(
        cookies={},
        url=SimpleNamespace(path="/limited"),
        client=SimpleNamespace(host=ip),
        app=SimpleNamespace(state=app_state),
    )


def test_local_rate_limit_store_drops_expired_clients():
    state = SimpleNamespace()
    for i in range(50):
        _local_hit(_request_from(f"10.0.0.{i}", state), times=2, seconds=60, now=1000.0)
    assert len(state._rl_store[60]) == 50

    # une minute plus tard, seul le client qui revient reste en mémoire
    _local_hit(_request_from("10.0.0.1", state), times=2, seconds=60, now=1061.0)
    assert state._rl_store[60] == {"ip:10.0.0.1:/limited": [1061.0]}


def test_local_rate_limit_window_slides():
    state = SimpleNamespace()
    request = _request_from("10.0.0.9", state)
    _local_hit(request, times=1, seconds=60, now=1000.0)
    with pytest.raises(HTTPException) as exc:
        _local_hit(request, times=1, seconds=60, now=1030.0)
    assert exc.value.status_code == 429
    _local_hit(request, times=1, seconds=60, now=1060.5)
