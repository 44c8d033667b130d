"""Pydantic schemas for rate-limited endpoint responses."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuotaPayload(BaseModel):
    """Quota fields shared by every response."""

    model_config = ConfigDict(populate_by_name=True)

    client_id: str = Field(
        ..., alias="clientId", description="Client identifier, echoed verbatim."
    )
    remaining: int = Field(
        ..., ge=0, description="Requests left in the current window."
    )
    reset_in: int | None = Field(
        None,
        alias="resetIn",
        description="Seconds until the window resets; null when no window is active.",
    )
    timestamp: datetime = Field(
        default_factory=_utc_now, description="Server time of the response (UTC)."
    )


class AdmittedResponse(QuotaPayload):
    """Body returned when a request is admitted (HTTP 200)."""

    message: str = "Request successful"


class RateLimitedResponse(QuotaPayload):
    """Body returned when a request is denied (HTTP 429)."""

    error: str = "Rate limit exceeded"
    message: str = "Too many requests. Please try again later."


class QuotaStatusResponse(QuotaPayload):
    """Read-only quota snapshot returned by the status endpoint."""

    limit: int = Field(..., ge=1, description="Requests allowed per window.")
