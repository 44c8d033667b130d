"""Factory for creating counter store instances."""

from __future__ import annotations

import logging

import redis

from ratelimit_api.adapters.rate_limit.base import AbstractCounterStore
from ratelimit_api.adapters.rate_limit.in_memory import InMemoryCounterStore
from ratelimit_api.adapters.rate_limit.redis_store import RedisCounterStore
from ratelimit_api.core.config import Settings, settings as default_settings
from ratelimit_api.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


def create_counter_store(config: Settings | None = None) -> AbstractCounterStore:
    """Instantiate the counter store selected by ``APP_RATE_LIMIT_BACKEND``.

    The Redis client connects lazily, so an unreachable server surfaces as
    ``StoreUnavailableError`` on the first call rather than at startup.

    Args:
        config: Settings to read; defaults to the process-wide settings.

    Returns:
        AbstractCounterStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend name is not supported.
    """
    cfg = config or default_settings
    backend = cfg.app.rate_limit_backend.lower()

    if backend == "redis":
        client = redis.Redis.from_url(
            cfg.redis.url,
            socket_timeout=cfg.redis.socket_timeout_seconds,
            socket_connect_timeout=cfg.redis.socket_connect_timeout_seconds,
        )
        logger.info("counter_store.configured", extra={"backend": "redis"})
        return RedisCounterStore(client)

    if backend == "memory":
        logger.info("counter_store.configured", extra={"backend": "memory"})
        return InMemoryCounterStore()

    raise ValidationAppError(
        code="unknown_rate_limit_backend",
        message=(
            f"Unknown rate limit backend: '{backend}'. Supported backends: redis, memory"
        ),
    )
