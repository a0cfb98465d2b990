# PURPOSE: slowapi limiter guarding the auth endpoints (register, login, OTP).
# Task routes are not limited.

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address

from .config import settings


def get_storage_uri() -> str:
    """Shared Redis when configured, otherwise per-process memory."""
    return settings.REDIS_URL or settings.RATE_LIMIT_STORAGE_URI


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=get_storage_uri(),
    headers_enabled=True,
    enabled=settings.RATE_LIMIT_ENABLED,
)


def reset_limits() -> None:
    """Forget all counters (used between test cases)."""
    limiter.reset()


__all__ = ["limiter", "reset_limits", "_rate_limit_exceeded_handler"]
