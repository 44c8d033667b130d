"""Rate limiter wiring for FastAPI routes.

This module builds the process-wide limiter from settings and exposes it as a
dependency, plus the helper that renders quota headers.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: the counter store (Redis or in-memory) is chosen by settings
  behind an abstract interface.
- Testable: routes resolve the limiter through ``Depends`` so tests can
  override it with one built on a fake store.
"""

from __future__ import annotations

import logging

from ratelimit_api.adapters.rate_limit.factory import create_counter_store
from ratelimit_api.core.config import settings
from ratelimit_api.services.rate_limiter_service import (
    FixedWindowRateLimiter,
    RateLimitResult,
)

logger = logging.getLogger(__name__)


_limiter: FixedWindowRateLimiter | None = None
_limiter_config: tuple[int, int, str, str, int] | None = None


def get_rate_limiter() -> FixedWindowRateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module so the store connection pool is reused
    across requests. If configuration changes (primarily in tests), the
    limiter is rebuilt.

    Returns:
        FixedWindowRateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    config = (
        settings.app.rate_limit_requests,
        settings.app.rate_limit_window_seconds,
        settings.app.rate_limit_backend,
        settings.app.rate_limit_key_prefix,
        settings.app.max_client_id_length,
    )

    if _limiter is None or _limiter_config != config:
        _limiter = FixedWindowRateLimiter(
            create_counter_store(settings),
            limit=settings.app.rate_limit_requests,
            window_seconds=settings.app.rate_limit_window_seconds,
            key_prefix=settings.app.rate_limit_key_prefix,
            max_client_id_length=settings.app.max_client_id_length,
        )
        _limiter_config = config
        logger.info(
            "rate_limit.configured",
            extra={
                "limit": settings.app.rate_limit_requests,
                "window_s": settings.app.rate_limit_window_seconds,
                "backend": settings.app.rate_limit_backend,
            },
        )

    return _limiter


def build_rate_limit_headers(
    *, limit: int, remaining: int, reset_in_seconds: int | None, retry_after: int | None = None
) -> dict[str, str]:
    """Build X-RateLimit-* headers (and Retry-After when throttled).

    Returns an empty dict when headers are disabled via settings.
    """

    if not settings.app.rate_limit_include_headers:
        return {}

    headers = {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(remaining),
    }
    if reset_in_seconds is not None:
        headers["X-RateLimit-Reset"] = str(reset_in_seconds)
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return headers


def headers_for_result(result: RateLimitResult) -> dict[str, str]:
    """Render headers for a consume result."""
    return build_rate_limit_headers(
        limit=result.limit,
        remaining=result.remaining,
        reset_in_seconds=result.reset_in_seconds,
        retry_after=result.retry_after_seconds,
    )
