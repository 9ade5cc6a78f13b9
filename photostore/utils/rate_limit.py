from typing import Dict, Any, Optional
from fastapi import Request, Response, HTTPException
import os
import time
import hashlib
import logging

from photostore.auth.security import COOKIE_NAME

logger = logging.getLogger(__name__)


def _client_key(request: Request) -> str:
    # Priorité: session cookie (hashé) puis IP
    token = request.cookies.get(COOKIE_NAME)
    path = request.url.path
    if token:
        h = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{h}:{path}"
    ip = request.client.host if request.client else "local"
    return f"ip:{ip}:{path}"


def _local_hit(request: Request, times: int, seconds: int, now: Optional[float] = None) -> None:
    """Fenêtre glissante en mémoire (un seul process); les clés sans hit récent sont supprimées."""
    now = time.time() if now is None else now
    stores = getattr(request.app.state, "_rl_store", None)
    if stores is None:
        stores = request.app.state._rl_store = {}
    store = stores.setdefault(seconds, {})
    for stale in [k for k, hits in store.items() if not hits or now - hits[-1] >= seconds]:
        del store[stale]
    key = _client_key(request)
    hits = [t for t in store.get(key, []) if now - t < seconds]
    if len(hits) >= times:
        store[key] = hits
        raise HTTPException(status_code=429, detail="Too Many Requests")
    hits.append(now)
    store[key] = hits


def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request, response: Response):
        # Forcer le fallback mémoire en DEV si demandé
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            _local_hit(request, times, seconds)
            return

        # Respecter le flag global
        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return

        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return _client_key(req)

        try:
            return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
        except HTTPException:
            raise
        except Exception as e:
            # Redis indisponible: pas de 429 en prod (LOCAL_RATE_LIMIT_FALLBACK=1 en dev)
            logger.warning("utils.rate_limit degraded path=%s error=%s", request.url.path, e)
            return
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    from fastapi_limiter import FastAPILimiter
    limiter_ready = getattr(FastAPILimiter, "redis", None) is not None
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": limiter_ready,
        "backend": "redis" if limiter_ready else ("memory" if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1" else None),
    }
