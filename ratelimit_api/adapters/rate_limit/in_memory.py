"""In-memory counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from ratelimit_api.adapters.rate_limit.base import (
    NO_EXPIRY,
    AbstractCounterStore,
    IncrementOutcome,
    parse_count,
)
from ratelimit_api.core.errors import CorruptStateError


@dataclass
class _Entry:
    value: str
    expires_at: float | None


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store backed by a dict with lazy TTL eviction.

    Mirrors the subset of Redis string semantics the engine relies on, so the
    engine behaves the same against either backend.

    Important:
        State lives in this process only. If the API runs with multiple
        workers, each worker enforces its own independent limits. Use the
        Redis store for shared quotas.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the store.

        Args:
            clock: Time source returning seconds; must be monotonic for TTLs.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}

    def _live_entry(self, key: str, now: float) -> _Entry | None:
        """Return the entry for key, evicting it first if its TTL elapsed."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= now:
            del self._entries[key]
            return None
        return entry

    def ping(self) -> None:
        return None

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live_entry(key, self._clock())
            return entry.value if entry else None

    def set_with_expiry(self, key: str, value: str | int, ttl_seconds: int) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")
        with self._lock:
            self._entries[key] = _Entry(
                value=str(value), expires_at=self._clock() + ttl_seconds
            )

    def increment(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry(key, self._clock())
            if entry is None:
                # Same as Redis INCR on a missing key: created with no TTL.
                entry = _Entry(value="0", expires_at=None)
                self._entries[key] = entry
            count = parse_count(entry.value, key=key) + 1
            entry.value = str(count)
            return count

    def time_to_live(self, key: str) -> float | None:
        with self._lock:
            now = self._clock()
            entry = self._live_entry(key, now)
            if entry is None:
                return None
            if entry.expires_at is None:
                return NO_EXPIRY
            return entry.expires_at - now

    def snapshot(self, key: str) -> tuple[str | None, float | None]:
        with self._lock:
            return self.get(key), self.time_to_live(key)

    def increment_within_limit(
        self, key: str, *, limit: int, ttl_seconds: int
    ) -> IncrementOutcome:
        with self._lock:
            count = parse_count(self.get(key), key=key)
            if count and self.time_to_live(key) == NO_EXPIRY:
                raise CorruptStateError(
                    code="corrupt_state",
                    message="Counter record has no expiry",
                    details={"key": key},
                )

            if count >= limit:
                return IncrementOutcome(
                    admitted=False,
                    count=count,
                    ttl_seconds=self.time_to_live(key),
                )

            if count == 0:
                self.set_with_expiry(key, 1, ttl_seconds)
                count = 1
            else:
                count = self.increment(key)

            return IncrementOutcome(
                admitted=True, count=count, ttl_seconds=self.time_to_live(key)
            )
