from typing import Any, Dict

from fastapi import APIRouter, Request

from photostore.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root(request: Request) -> Dict[str, Any]:
    ready = getattr(request.app.state, "context", None) is not None
    return {"ok": True, "context_ready": ready, "rate_limit": rate_limit_health_info(request)}
