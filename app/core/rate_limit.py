"""Rate limiting for the report endpoints using slowapi.

PDF rendering is the expensive path, so those routes are limited per
authenticated user (falling back to client IP).
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings


def get_client_ip(request: Request) -> str:
    """Extract client IP, respecting X-Forwarded-For behind a proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def get_user_id_or_ip(request: Request) -> str:
    """Use authenticated user ID if available, otherwise fall back to IP."""
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"
    return get_client_ip(request)


# In-memory storage; counters reset with the process.
limiter = Limiter(
    key_func=get_user_id_or_ip,
    default_limits=[],
    storage_uri="memory://",
    enabled=settings.rate_limit_enabled,
)
