from __future__ import annotations

import math

from fastapi import APIRouter, Depends, HTTPException, Request, status

from window_limiter.core.config import settings
from window_limiter.core.rate_limit import enforce_rate_limit, get_rate_limiter
from window_limiter.schemas.rate_limit import PingResponse, RateLimitInfoResponse

router = APIRouter(tags=["Rate limit"])


@router.get(
    "/ping",
    response_model=PingResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def ping() -> PingResponse:
    """Rate limited endpoint.

    Each call takes one permit from the caller's key; once the key is
    exhausted the dependency answers 429 until the window resets.
    """
    return PingResponse()


@router.get("/rate-limit", response_model=RateLimitInfoResponse)
async def rate_limit_info(request: Request) -> RateLimitInfoResponse:
    """Report the caller's quota without consuming a permit.

    Answers 404 when rate limiting is disabled, so no limiter is started and
    no key is tracked just to report on it.
    """
    if not settings.app.rate_limit_enabled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Rate limiting is disabled.",
        )

    limiter = get_rate_limiter()
    remaining = limiter.remaining_permits(limiter.key_func(request))
    return RateLimitInfoResponse(
        limit=limiter.limit,
        remaining=remaining,
        reset_seconds=max(0, math.ceil(limiter.time_until_reset())),
        window_seconds=limiter.window_seconds,
    )
