"""Counter store interfaces.

The engine depends on this abstraction (not the concrete driver) so the
shared store can be Redis in production and an in-process map in tests or
local development.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Final

from ratelimit_api.core.errors import CorruptStateError

# Returned by ``time_to_live`` for a live key that carries no expiry.
NO_EXPIRY: Final[float] = math.inf


def parse_count(raw: str | bytes | None, *, key: str) -> int:
    """Parse a stored counter value.

    Args:
        raw: Value as returned by the store (``None`` when absent).
        key: Counter key, used for error context only.

    Returns:
        The counter as a non-negative int; 0 for an absent key.

    Raises:
        CorruptStateError: If the value is not a non-negative integer.
    """
    if raw is None:
        return 0
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)
    if not text.isascii() or not text.isdigit():
        raise CorruptStateError(
            code="corrupt_state",
            message="Stored counter is not a non-negative integer",
            details={"key": key, "raw_value": text[:64]},
        )
    return int(text)


@dataclass(frozen=True)
class IncrementOutcome:
    """Result of an atomic conditional increment.

    Attributes:
        admitted: Whether the counter was incremented.
        count: Counter value after the operation (unchanged when not admitted).
        ttl_seconds: Seconds left on the record, ``None`` when the key is absent.
    """

    admitted: bool
    count: int
    ttl_seconds: float | None


class AbstractCounterStore(ABC):
    """Interface for shared counter stores."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the raw stored value, or ``None`` when the key is absent."""
        raise NotImplementedError

    @abstractmethod
    def set_with_expiry(self, key: str, value: str | int, ttl_seconds: int) -> None:
        """Unconditionally set ``key`` and give it a fresh TTL."""
        raise NotImplementedError

    @abstractmethod
    def increment(self, key: str) -> int:
        """Atomically increment an existing numeric value, leaving its TTL alone.

        Behaviour for an absent key is driver-defined and must not be relied
        upon to establish a TTL.
        """
        raise NotImplementedError

    @abstractmethod
    def time_to_live(self, key: str) -> float | None:
        """Return seconds remaining on ``key``.

        Returns:
            Remaining seconds, ``NO_EXPIRY`` for a key without TTL, or ``None``
            when the key does not exist.
        """
        raise NotImplementedError

    @abstractmethod
    def snapshot(self, key: str) -> tuple[str | None, float | None]:
        """Read the raw value and ``time_to_live`` of ``key`` as one consistent view."""
        raise NotImplementedError

    @abstractmethod
    def increment_within_limit(
        self, key: str, *, limit: int, ttl_seconds: int
    ) -> IncrementOutcome:
        """Atomically admit one unit against ``limit``.

        In a single store-side step: read the counter (absent means 0); if it
        has reached ``limit`` change nothing; a live record without TTL is
        corrupt and is left as is; if absent create it with value 1
        and ``ttl_seconds``; otherwise increment it without touching the TTL.

        Args:
            key: Namespaced counter key.
            limit: Maximum counter value.
            ttl_seconds: Window length applied when the record is created.

        Returns:
            IncrementOutcome describing the decision and resulting state.

        Raises:
            StoreUnavailableError: The store could not be reached.
            CorruptStateError: The stored value is not a non-negative integer,
                or the record carries no expiry.
        """
        raise NotImplementedError

    @abstractmethod
    def ping(self) -> None:
        """Check that the store is reachable.

        Raises:
            StoreUnavailableError: The store could not be reached.
        """
        raise NotImplementedError
