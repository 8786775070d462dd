"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Rate limiting strategy:
- Token bucket per client network address.
- The limiter instance lives on ``app.state`` so each application (and each
  test client) owns its registry.
- Rejected requests never reach the route handler.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import HTTPException, Request, status

from crafting_api.adapters.rate_limit.base import AbstractRateLimiter
from crafting_api.adapters.rate_limit.in_memory import InMemoryTokenBucketRateLimiter
from crafting_api.core.config import AppSettings

logger = logging.getLogger(__name__)


def build_rate_limiter(app_settings: AppSettings) -> AbstractRateLimiter:
    """Create the process-wide limiter from configuration."""

    return InMemoryTokenBucketRateLimiter(
        rate=app_settings.rate_limit_rate,
        burst=app_settings.rate_limit_burst,
        idle_ttl_seconds=app_settings.rate_limit_idle_ttl_seconds,
    )


def _build_rate_limit_key(request: Request) -> str:
    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency enforcing per-client rate limits.

    Consumes one token from the caller's bucket. When the bucket is empty,
    raises HTTP 429 so the route handler is never executed.

    Raises:
        HTTPException: 429 Too Many Requests when the bucket is empty.
    """

    app_settings: AppSettings = request.app.state.settings.app
    if not app_settings.rate_limit_enabled:
        return

    limiter: AbstractRateLimiter = request.app.state.rate_limiter
    key = _build_rate_limit_key(request)

    result = limiter.consume(key)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": _hash_limiter_key(key),
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    retry_after = result.retry_after_seconds or 1
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": _hash_limiter_key(key),
            "limit": result.limit,
            "remaining": result.remaining,
            "retry_after_s": retry_after,
            "path": request.url.path,
        },
    )

    headers: dict[str, str] = {}
    if app_settings.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(result.reset_at)

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Too many requests. Try again later.",
        headers=headers or None,
    )
