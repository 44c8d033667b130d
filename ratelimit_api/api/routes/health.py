from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from ratelimit_api.core.rate_limit import get_rate_limiter
from ratelimit_api.services.rate_limiter_service import FixedWindowRateLimiter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns a simple status response without touching the counter store, so
    a store outage does not get the process restarted.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/health/ready")
def readiness_check(
    limiter: Annotated[FixedWindowRateLimiter, Depends(get_rate_limiter)],
) -> dict:
    """Readiness check that round-trips to the counter store.

    Raises:
        StoreUnavailableError: Rendered as HTTP 503 by the global handlers.
    """

    limiter.check_store()
    return {"status": "ok", "store": "ok"}
