"""Fixed-window rate limiter engine.

The engine decides whether a client's request is admitted against a quota of
``limit`` requests per window. It keeps no mutable state of its own: the
counter lives in a shared counter store so every service instance sees the
same consumption. It handles:
- Client identifier validation before any store access
- Admission through a single atomic store operation (no check-then-act race)
- Remaining quota and time-until-reset reporting
- Structured logging of decisions without exposing raw client ids

The window is anchored at the first admitted request, not at wall-clock
boundaries. A client can therefore spend ``limit`` requests at the end of one
window and ``limit`` more right after it expires.
"""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass
from enum import Enum

from ratelimit_api.adapters.rate_limit.base import (
    NO_EXPIRY,
    AbstractCounterStore,
    parse_count,
)
from ratelimit_api.core.errors import CorruptStateError, InvalidClientIdError

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "rate_limit"


class Admission(str, Enum):
    """Outcome of a single admission decision."""

    ADMITTED = "admitted"
    DENIED = "denied"


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_in_seconds: Whole seconds until the window expires, ``None``
            when the client has no active window.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_in_seconds: int | None
    retry_after_seconds: int | None

    @property
    def admission(self) -> Admission:
        return Admission.ADMITTED if self.allowed else Admission.DENIED


@dataclass(frozen=True)
class RateLimitStatus:
    """Read-only snapshot of a client's quota."""

    limit: int
    remaining: int
    reset_in_seconds: int | None


def _hash_client_id(client_id: str) -> str:
    """Hash the client id for logging without exposing it."""
    return hashlib.sha256(client_id.encode()).hexdigest()[:16]


def _ceil_seconds(ttl_seconds: float | None) -> int | None:
    """Round a positive TTL up so a live window never reports 0 seconds."""
    if ttl_seconds is None:
        return None
    return max(1, math.ceil(ttl_seconds))


def _reset_seconds(ttl_seconds: float | None, *, key: str) -> int | None:
    if ttl_seconds == NO_EXPIRY:
        raise CorruptStateError(
            code="corrupt_state",
            message="Counter record has no expiry",
            details={"key": key},
        )
    return _ceil_seconds(ttl_seconds)


class FixedWindowRateLimiter:
    """Per-client fixed-window rate limiter over a shared counter store.

    Configuration is fixed at construction. All state changes go through
    ``AbstractCounterStore.increment_within_limit`` so concurrent callers,
    in this process or others, can never push a counter past ``limit``.
    """

    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        limit: int,
        window_seconds: int,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        max_client_id_length: int = 256,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Counter store shared by all instances.
            limit: Maximum number of admissions per window.
            window_seconds: Window length in seconds.
            key_prefix: Namespace for counter keys (``{prefix}:{client_id}``).
            max_client_id_length: Longest accepted client identifier.

        Raises:
            ValueError: If limit, window_seconds or max_client_id_length are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        if max_client_id_length < 1:
            raise ValueError("max_client_id_length must be >= 1")

        self._store = store
        self._limit = limit
        self._window_seconds = window_seconds
        self._key_prefix = key_prefix
        self._max_client_id_length = max_client_id_length

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def _validate_client_id(self, client_id: str) -> None:
        if not isinstance(client_id, str) or not client_id.strip():
            raise InvalidClientIdError(
                code="invalid_client_id",
                message="Client id must be a non-empty string",
            )
        if len(client_id) > self._max_client_id_length:
            raise InvalidClientIdError(
                code="invalid_client_id",
                message="Client id is too long",
                details={
                    "max_length": self._max_client_id_length,
                    "actual_length": len(client_id),
                },
            )
        if any(ord(ch) < 32 or ord(ch) == 127 for ch in client_id):
            raise InvalidClientIdError(
                code="invalid_client_id",
                message="Client id must not contain control characters",
            )

    def key_for(self, client_id: str) -> str:
        """Return the store key for a client (``rate_limit:{client_id}`` by default)."""
        self._validate_client_id(client_id)
        return f"{self._key_prefix}:{client_id}"

    def consume(self, client_id: str) -> RateLimitResult:
        """Admit one request for the client if quota remains.

        Reads the counter, compares it to the limit and creates or increments
        it in one atomic store operation. A denied request changes nothing.

        Args:
            client_id: Opaque, case-sensitive client identifier.

        Returns:
            RateLimitResult with the decision and quota metadata.

        Raises:
            InvalidClientIdError: If the client id is empty or malformed.
            StoreUnavailableError: If the counter store cannot be reached.
            CorruptStateError: If the stored counter is not a valid integer.
        """
        key = self.key_for(client_id)
        outcome = self._store.increment_within_limit(
            key, limit=self._limit, ttl_seconds=self._window_seconds
        )
        remaining = max(0, self._limit - outcome.count)
        reset_in = _ceil_seconds(outcome.ttl_seconds)
        client_hash = _hash_client_id(client_id)

        if outcome.admitted:
            logger.info(
                "rate_limit.allowed",
                extra={
                    "client_id_hash": client_hash,
                    "limit": self._limit,
                    "remaining": remaining,
                    "window_s": self._window_seconds,
                },
            )
            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=remaining,
                reset_in_seconds=reset_in,
                retry_after_seconds=None,
            )

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "client_id_hash": client_hash,
                "limit": self._limit,
                "remaining": remaining,
                "window_s": self._window_seconds,
                "retry_after_s": reset_in,
            },
        )
        return RateLimitResult(
            allowed=False,
            limit=self._limit,
            remaining=remaining,
            reset_in_seconds=reset_in,
            retry_after_seconds=reset_in,
        )

    def allow(self, client_id: str) -> Admission:
        """Admit or deny one request for the client. See ``consume``."""
        return self.consume(client_id).admission

    def remaining_quota(self, client_id: str) -> int:
        """Return ``max(0, limit - count)`` from a fresh read; no mutation."""
        key = self.key_for(client_id)
        count = parse_count(self._store.get(key), key=key)
        return max(0, self._limit - count)

    def reset_in(self, client_id: str) -> int | None:
        """Return whole seconds until the client's window expires.

        Returns:
            Seconds remaining, or ``None`` when no window is active.

        Raises:
            CorruptStateError: If the record exists without an expiry.
        """
        key = self.key_for(client_id)
        return _reset_seconds(self._store.time_to_live(key), key=key)

    def status(self, client_id: str) -> RateLimitStatus:
        """Return remaining quota and reset time without consuming anything.

        Count and TTL come from a single store read, so a window expiring
        mid-call cannot yield ``remaining=0`` alongside no active window.
        """
        key = self.key_for(client_id)
        raw, ttl = self._store.snapshot(key)
        count = parse_count(raw, key=key)
        return RateLimitStatus(
            limit=self._limit,
            remaining=max(0, self._limit - count),
            reset_in_seconds=_reset_seconds(ttl, key=key),
        )

    def check_store(self) -> None:
        """Raise ``StoreUnavailableError`` if the counter store is unreachable."""
        self._store.ping()
