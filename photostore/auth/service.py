"""
Cas d'usage Auth: résolution du jeton d'accès et capacité admin.
- get_user_from_token: supabase.auth.get_user(jwt) -> {"id", "email", "metadata"}
- is_admin: ADMIN_EMAILS d'abord, puis table admin_allowlist
"""
import logging
from typing import Any, Dict, Optional

import httpx
from postgrest.exceptions import APIError

from photostore.context import ShopContext
from photostore.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

ADMIN_ALLOWLIST_TABLE = "admin_allowlist"


def get_user_from_token(ctx: ShopContext, token: str) -> Dict[str, Any]:
    """Retourne un dict utilisateur, vide si le jeton est inconnu/expiré."""
    if ctx.supabase is None or not token:
        return {}
    res = ctx.supabase.auth.get_user(token)
    user = getattr(res, "user", None)
    if not user:
        return {}
    return {
        "id": str(getattr(user, "id", "") or ""),
        "email": (getattr(user, "email", "") or "").strip().lower(),
        "metadata": getattr(user, "user_metadata", None) or {},
    }


def is_admin(ctx: ShopContext, email: Optional[str]) -> bool:
    email = (email or "").strip().lower()
    if not email:
        return False
    if email in ctx.admin_emails:
        return True
    if ctx.supabase is None:
        return False
    try:
        res = (
            ctx.supabase.table(ADMIN_ALLOWLIST_TABLE)
            .select("email")
            .eq("email", email)
            .limit(1)
            .execute()
        )
    except (APIError, httpx.HTTPError) as e:
        logger.exception("auth.is_admin allowlist read failed email=%s", email)
        raise UpstreamUnavailable("Vérification admin impossible") from e
    allowed = bool(res.data)
    logger.info("auth.is_admin allowlist email=%s allowed=%s", email, allowed)
    return allowed
