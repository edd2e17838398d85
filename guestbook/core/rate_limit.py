"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: storage backend can be replaced behind an abstract interface.
- One limiter per application instance, kept on ``app.state``.

Rate limiting strategy:
- Token bucket per client host (X-Forwarded-For first hop when trusted).
- Applied to POST /register only.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import Request

from guestbook.adapters.rate_limit.base import AbstractRateLimiter
from guestbook.adapters.rate_limit.in_memory import InMemoryTokenBucketRateLimiter
from guestbook.core.client_ip import resolve_client_address
from guestbook.core.config import AppSettings
from guestbook.core.errors import RateLimitExceededError

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Try again later."


def build_rate_limiter(app_settings: AppSettings) -> AbstractRateLimiter:
    """Create the limiter described by the application settings."""
    return InMemoryTokenBucketRateLimiter(
        burst=app_settings.rate_limit_burst,
        replenish_seconds=app_settings.rate_limit_replenish_seconds,
        max_idle_buckets=app_settings.rate_limit_max_idle_buckets,
    )


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """Return the limiter owned by the application serving this request."""
    return request.app.state.rate_limiter


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing client addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency enforcing the per-client registration budget.

    Runs before the request body reaches the store. When the client's bucket
    is empty, the request is rejected without touching the database.

    Args:
        request: FastAPI request.

    Raises:
        RateLimitExceededError: When the client has no tokens left (HTTP 429).
    """

    app_settings: AppSettings = request.app.state.settings.app
    if not app_settings.rate_limit_enabled:
        return

    limiter = get_rate_limiter(request)
    client = resolve_client_address(
        request, trust_forwarded_for=app_settings.trust_forwarded_for
    )
    key = f"ip:{client.host}"
    key_hash = _hash_limiter_key(key)

    result = limiter.consume(key)
    if result.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_hash": key_hash,
                "forwarded": client.forwarded,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": key_hash,
            "forwarded": client.forwarded,
            "limit": result.limit,
            "remaining": result.remaining,
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if app_settings.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(result.reset_at)

    raise RateLimitExceededError(
        code="rate_limited",
        message=RATE_LIMIT_MESSAGE,
        details={
            "retry_after": retry_after,
            "limit": result.limit,
            "remaining": result.remaining,
            "reset_at": result.reset_at,
        },
        headers=headers,
    )
