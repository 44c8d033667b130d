"""Counter store adapters.

This package provides a small abstraction layer so the rate limiter can run
against a shared Redis store in production and an in-memory store in tests or
local development without changing the engine or the API layer.
"""

from ratelimit_api.adapters.rate_limit.base import (
    NO_EXPIRY,
    AbstractCounterStore,
    IncrementOutcome,
)
from ratelimit_api.adapters.rate_limit.factory import create_counter_store
from ratelimit_api.adapters.rate_limit.in_memory import InMemoryCounterStore
from ratelimit_api.adapters.rate_limit.redis_store import RedisCounterStore

__all__ = [
    "NO_EXPIRY",
    "AbstractCounterStore",
    "IncrementOutcome",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "create_counter_store",
]
