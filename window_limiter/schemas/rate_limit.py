"""Pydantic schemas for rate limit reporting responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RateLimitInfoResponse(BaseModel):
    """Caller's current quota, reported without consuming a permit."""

    limit: int = Field(
        ..., description="Requests admitted per key per window."
    )
    remaining: int = Field(
        ..., description="Requests left for the caller's key in the current window."
    )
    reset_seconds: int = Field(
        ..., description="Whole seconds until the next window reset (never negative)."
    )
    window_seconds: float = Field(
        ..., description="Configured window length in seconds."
    )


class PingResponse(BaseModel):
    """Response of the rate limited ping endpoint."""

    status: str = Field(default="ok", description="Always 'ok' when the request is admitted.")
