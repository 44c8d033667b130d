"""Redis counter store adapter.

Counters are plain Redis strings with a millisecond TTL. The conditional
increment runs as a Lua script so check-and-update is a single atomic step on
the server, shared by every service instance.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Final, Iterator

from redis import Redis
from redis.exceptions import RedisError, ResponseError

from ratelimit_api.adapters.rate_limit.base import (
    NO_EXPIRY,
    AbstractCounterStore,
    IncrementOutcome,
)
from ratelimit_api.core.errors import CorruptStateError, StoreUnavailableError

logger = logging.getLogger(__name__)

# Status codes returned as the first element of the script reply.
_ADMITTED: Final[int] = 1
_CORRUPT: Final[int] = -1
_NO_EXPIRY: Final[int] = -3


class RedisCounterStore(AbstractCounterStore):
    """Shared counter store implemented with Redis strings and a Lua script."""

    _LUA_SCRIPT: Final[str] = """
    local key = KEYS[1]
    local limit = tonumber(ARGV[1])
    local ttl_ms = ARGV[2]

    local raw = redis.call('GET', key)
    local count = 0
    if raw then
        if not string.match(raw, '^%d+$') then
            return {-1, raw, -2}
        end
        count = tonumber(raw)
        if count > 0 and redis.call('PTTL', key) == -1 then
            return {-3, count, -1}
        end
    end

    if count >= limit then
        return {0, count, redis.call('PTTL', key)}
    end

    if count == 0 then
        redis.call('SET', key, '1', 'PX', ttl_ms)
        count = 1
    else
        count = redis.call('INCR', key)
    end
    return {1, count, redis.call('PTTL', key)}
    """

    def __init__(self, client: Redis) -> None:
        """Initialise the Redis client and the Lua script cache.

        Args:
            client: Connected (or lazily connecting) ``redis.Redis`` client.
                Socket timeouts configured on the client bound every call.
        """
        self._client = client
        self._script = client.register_script(self._LUA_SCRIPT)

    @contextmanager
    def _translate_errors(self, operation: str, key: str) -> Iterator[None]:
        """Map redis-py exceptions onto store error types."""
        try:
            yield
        except ResponseError as exc:
            message = str(exc)
            if "WRONGTYPE" in message or "not an integer" in message:
                logger.error(
                    "counter_store.corrupt",
                    extra={"operation": operation, "error_msg": message},
                )
                raise CorruptStateError(
                    code="corrupt_state",
                    message="Counter key holds a value that is not a counter",
                    details={"key": key, "error_type": type(exc).__name__},
                ) from exc
            logger.error(
                "counter_store.unavailable",
                extra={"operation": operation, "error_type": type(exc).__name__},
            )
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Counter store rejected the command",
                details={"error_type": type(exc).__name__},
            ) from exc
        except RedisError as exc:
            logger.error(
                "counter_store.unavailable",
                extra={"operation": operation, "error_type": type(exc).__name__},
            )
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Counter store is unreachable",
                details={"error_type": type(exc).__name__},
            ) from exc

    def ping(self) -> None:
        with self._translate_errors("ping", ""):
            self._client.ping()

    def get(self, key: str) -> str | None:
        with self._translate_errors("get", key):
            raw = self._client.get(key)
        if isinstance(raw, bytes):
            return raw.decode("utf-8", errors="replace")
        return raw

    def set_with_expiry(self, key: str, value: str | int, ttl_seconds: int) -> None:
        with self._translate_errors("set_with_expiry", key):
            self._client.set(key, value, ex=ttl_seconds)

    def increment(self, key: str) -> int:
        with self._translate_errors("increment", key):
            return int(self._client.incr(key))

    def time_to_live(self, key: str) -> float | None:
        with self._translate_errors("time_to_live", key):
            ttl_ms = int(self._client.pttl(key))
        return _ttl_from_pttl(ttl_ms)

    def snapshot(self, key: str) -> tuple[str | None, float | None]:
        with self._translate_errors("snapshot", key):
            pipe = self._client.pipeline(transaction=True)
            pipe.get(key)
            pipe.pttl(key)
            raw, ttl_ms = pipe.execute()
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        return raw, _ttl_from_pttl(int(ttl_ms))

    def increment_within_limit(
        self, key: str, *, limit: int, ttl_seconds: int
    ) -> IncrementOutcome:
        with self._translate_errors("increment_within_limit", key):
            status, value, ttl_ms = self._script(
                keys=[key], args=[limit, ttl_seconds * 1000]
            )

        if int(status) == _CORRUPT:
            raw = value.decode("utf-8", errors="replace") if isinstance(value, bytes) else str(value)
            raise CorruptStateError(
                code="corrupt_state",
                message="Stored counter is not a non-negative integer",
                details={"key": key, "raw_value": raw[:64]},
            )
        if int(status) == _NO_EXPIRY:
            raise CorruptStateError(
                code="corrupt_state",
                message="Counter record has no expiry",
                details={"key": key},
            )
        return IncrementOutcome(
            admitted=int(status) == _ADMITTED,
            count=int(value),
            ttl_seconds=_ttl_from_pttl(int(ttl_ms)),
        )


def _ttl_from_pttl(ttl_ms: int) -> float | None:
    """Convert a PTTL reply (-2 missing, -1 no expiry) into seconds."""
    if ttl_ms == -2:
        return None
    if ttl_ms == -1:
        return NO_EXPIRY
    return ttl_ms / 1000
