"""Per-client rate limits for the checkout endpoints (SlowAPI)."""
from fastapi import Request
from slowapi import Limiter

from .config import settings


def client_key(request: Request) -> str:
    """First X-Forwarded-For hop when behind the storefront proxy, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


def per_minute(count: int) -> str:
    return f"{max(1, count)}/minute"


# Guessing codes is the abuse case, so validation gets its own tighter budget
COUPON_VALIDATE_LIMIT = per_minute(settings.rate_limit_coupon_validate_per_minute)
CHECKOUT_WRITE_LIMIT = per_minute(settings.rate_limit_per_minute)

limiter = Limiter(key_func=client_key)
