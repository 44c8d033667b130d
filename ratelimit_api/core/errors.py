"""Application-level exception types.

This module defines domain errors used across the engine and the counter
store adapters, enabling consistent error handling, logging, and API
responses. None of them is downgraded to an admission decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    key: str
    raw_value: str
    max_length: int
    actual_length: int
    error_type: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class InvalidClientIdError(ValidationAppError):
    """Raised for an empty or malformed client identifier, before any store access."""


class StoreUnavailableError(AppError):
    """Raised when the counter store cannot be reached or times out."""


class CorruptStateError(AppError):
    """Raised when a stored counter is not a valid non-negative integer record."""
