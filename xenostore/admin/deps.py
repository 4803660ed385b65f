"""Admin auth: X-Admin-Secret header (or admin_secret query) checked in constant time."""
import hmac
import logging

from fastapi import Header, HTTPException, Query, Request

from xenostore.core.config import settings
from xenostore.core.rate_limit import client_key

log = logging.getLogger("xenostore.admin")


def secrets_match(provided: str | None, expected: str | None) -> bool:
    p = (provided or "").encode("utf-8")
    e = (expected or "").encode("utf-8")
    if len(p) != len(e):
        # Same work as a real comparison so the length is not observable
        hmac.compare_digest(e, e)
        return False
    return hmac.compare_digest(p, e)


def require_admin(
    request: Request,
    x_admin_secret: str | None = Header(None, alias="X-Admin-Secret"),
    admin_secret: str | None = Query(None, description="Admin secret"),
) -> None:
    """Guards every /admin route: 503 without ADMIN_SECRET, 403 on a wrong secret."""
    expected = settings.admin_secret
    if not expected:
        raise HTTPException(status_code=503, detail="Admin API is not configured (ADMIN_SECRET missing).")
    if not secrets_match(x_admin_secret or admin_secret, expected):
        log.warning("admin auth rejected: ip=%s path=%s", client_key(request), request.url.path)
        raise HTTPException(status_code=403, detail="Unauthorized.")
