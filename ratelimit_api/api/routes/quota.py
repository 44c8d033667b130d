from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse

from ratelimit_api.core.rate_limit import (
    build_rate_limit_headers,
    get_rate_limiter,
    headers_for_result,
)
from ratelimit_api.schemas.quota import (
    AdmittedResponse,
    QuotaStatusResponse,
    RateLimitedResponse,
)
from ratelimit_api.services.rate_limiter_service import FixedWindowRateLimiter

router = APIRouter(prefix="/api", tags=["Rate Limit"])

ClientIdQuery = Annotated[
    str,
    Query(alias="clientId", description="Opaque client identifier the quota is tracked for."),
]
LimiterDep = Annotated[FixedWindowRateLimiter, Depends(get_rate_limiter)]


@router.get(
    "/test",
    response_model=AdmittedResponse,
    responses={status.HTTP_429_TOO_MANY_REQUESTS: {"model": RateLimitedResponse}},
)
def rate_limited_request(
    response: Response,
    client_id: ClientIdQuery,
    limiter: LimiterDep,
) -> AdmittedResponse | JSONResponse:
    """Consume one unit of the client's quota.

    Args:
        response: Outgoing response, used to attach quota headers.
        client_id: Client identifier from the ``clientId`` query parameter.
        limiter: Process-wide rate limiter.

    Returns:
        AdmittedResponse with the remaining quota, or a 429 JSON response
        when the client has used up its window.
    """
    result = limiter.consume(client_id)
    headers = headers_for_result(result)

    if not result.allowed:
        body = RateLimitedResponse(
            client_id=client_id,
            remaining=0,
            reset_in=result.reset_in_seconds,
        )
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=body.model_dump(by_alias=True, mode="json"),
            headers=headers or None,
        )

    response.headers.update(headers)
    return AdmittedResponse(
        client_id=client_id,
        remaining=result.remaining,
        reset_in=result.reset_in_seconds,
    )


@router.get("/status", response_model=QuotaStatusResponse)
def quota_status(
    response: Response,
    client_id: ClientIdQuery,
    limiter: LimiterDep,
) -> QuotaStatusResponse:
    """Report the client's remaining quota without consuming any of it."""
    snapshot = limiter.status(client_id)
    response.headers.update(
        build_rate_limit_headers(
            limit=snapshot.limit,
            remaining=snapshot.remaining,
            reset_in_seconds=snapshot.reset_in_seconds,
        )
    )
    return QuotaStatusResponse(
        client_id=client_id,
        remaining=snapshot.remaining,
        reset_in=snapshot.reset_in_seconds,
        limit=snapshot.limit,
    )
