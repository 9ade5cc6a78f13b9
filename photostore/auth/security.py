from typing import Any, Dict

from fastapi import Depends, HTTPException, Request

from photostore.context import ShopContext, get_context

COOKIE_NAME = "sb_access"


def _token_from_request(request: Request) -> str:
    # Hybride: priorité au Bearer, fallback cookie
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(COOKIE_NAME) or ""


def get_current_user(request: Request, ctx: ShopContext = Depends(get_context)) -> Dict[str, Any]:
    token = _token_from_request(request)
    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")
    try:
        from photostore.auth.service import get_user_from_token
        user = get_user_from_token(ctx, token)
    except Exception:
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    if not user.get("id"):
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    return user


def require_admin(
    user: Dict[str, Any] = Depends(get_current_user),
    ctx: ShopContext = Depends(get_context),
) -> Dict[str, Any]:
    from photostore.auth.service import is_admin
    if not is_admin(ctx, user.get("email")):
        raise HTTPException(status_code=403, detail="Accès interdit")
    return user
