"""Rate limiting integration for FastAPI.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on a dependency function only.
- Swap-friendly: the limiter is used through its abstract interface.
- One limiter per process, started with the app and stopped on shutdown.

Two integration styles are offered:
- ``enforce_rate_limit``: a route dependency (``Depends(enforce_rate_limit)``).
- ``map_rate_limit``: an HTTP middleware limiting every path under a prefix.

Both make the admission decision first and then compute the advisory
``X-RateLimit-*`` values, so they reflect the post-decision state.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from window_limiter.adapters.rate_limit.base import AbstractRateLimiter, RateLimitStatus
from window_limiter.adapters.rate_limit.in_memory import FixedWindowRateLimiter
from window_limiter.adapters.rate_limit.keys import get_key_function, hash_key
from window_limiter.core.config import settings
from window_limiter.core.errors import AppError
from window_limiter.core.exception_handlers import app_error_handler
from window_limiter.core.logging import get_request_id

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "Rate limit exceeded. Try again later."

_limiter: AbstractRateLimiter | None = None
_limiter_config: tuple[int, float, str] | None = None
_limiter_lock = threading.Lock()


def _current_config() -> tuple[int, float, str]:
    return (
        settings.app.rate_limit_requests,
        settings.app.rate_limit_window_seconds,
        settings.app.rate_limit_key_strategy,
    )


def get_rate_limiter() -> AbstractRateLimiter:
    """Return the process-wide rate limiter instance.

    The instance is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), the previous limiter is
    stopped and a new one is built.

    Returns:
        AbstractRateLimiter: Configured, running limiter instance.
    """

    global _limiter, _limiter_config

    config = _current_config()
    with _limiter_lock:
        if _limiter is None or _limiter_config != config:
            if _limiter is not None:
                _limiter.stop()
            requests, window_seconds, key_strategy = config
            _limiter = FixedWindowRateLimiter(
                limit=requests,
                window_seconds=window_seconds,
                key_func=get_key_function(key_strategy),
            )
            _limiter_config = config
        return _limiter


def shutdown_rate_limiter() -> None:
    """Stop and forget the process-wide limiter, if one was created."""

    global _limiter, _limiter_config

    with _limiter_lock:
        if _limiter is not None:
            _limiter.stop()
        _limiter = None
        _limiter_config = None


def build_rate_limit_headers(result: RateLimitStatus, *, blocked: bool) -> dict[str, str]:
    """Build advisory headers for a decision.

    Args:
        result: Post-decision status from the limiter.
        blocked: Whether to include ``Retry-After``.

    Returns:
        Header mapping (empty when headers are disabled).
    """

    if not settings.app.rate_limit_include_headers:
        return {}

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_seconds),
    }
    if blocked:
        headers["Retry-After"] = str(result.reset_seconds)
    return headers


def check_rate_limit(request: Request) -> RateLimitStatus:
    """Make and log the admission decision for ``request``.

    Returns:
        RateLimitStatus with the decision and advisory values.
    """

    limiter = get_rate_limiter()
    key = limiter.key_func(request)
    result = limiter.consume(key)

    log_extra: dict[str, Any] = {
        "key_hash": hash_key(key),
        "limit": result.limit,
        "remaining": result.remaining,
        "window_s": limiter.window_seconds,
        "path": request.url.path,
    }
    if result.allowed:
        logger.info("rate_limit.allowed", extra=log_extra)
    else:
        logger.warning(
            "rate_limit.exceeded",
            extra={**log_extra, "retry_after_s": result.reset_seconds},
        )
    return result


async def enforce_rate_limit(request: Request, response: Response) -> None:
    """FastAPI dependency enforcing the fixed-window limit.

    When enabled, takes one permit from the requester's key. Admitted
    requests get the advisory headers on their response; rejected requests
    raise HTTP 429 with the same headers plus ``Retry-After``.

    Args:
        request: FastAPI request.
        response: Response whose headers receive the advisory values.

    Raises:
        HTTPException: 429 Too Many Requests when the key has no permits left.
    """

    if not settings.app.rate_limit_enabled:
        return

    # Already decided (and admitted) by the path middleware for this request.
    decided: RateLimitStatus | None = getattr(request.state, "rate_limit_status", None)
    if decided is not None:
        response.headers.update(build_rate_limit_headers(decided, blocked=False))
        return

    result = check_rate_limit(request)
    if result.allowed:
        response.headers.update(build_rate_limit_headers(result, blocked=False))
        return

    headers = build_rate_limit_headers(result, blocked=True)
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=RATE_LIMITED_MESSAGE,
        headers=headers or None,
    )


def map_rate_limit(
    app: FastAPI,
    path_prefix: str,
    *,
    exempt_paths: Iterable[str] = (),
) -> None:
    """Enforce the limiter for every request whose path starts with ``path_prefix``.

    Rejected requests are answered with a 429 JSON error body without
    reaching the route. The decision is stored on ``request.state`` so a
    route that also depends on ``enforce_rate_limit`` does not take a second
    permit.

    Args:
        app: Application to install the middleware on.
        path_prefix: Path prefix to limit (``"/"`` limits everything).
        exempt_paths: Exact paths under the prefix that are never limited,
            e.g. reporting endpoints.
    """

    exempt = frozenset(exempt_paths)

    async def rate_limit_middleware(request: Request, call_next) -> Response:
        path = request.url.path
        if (
            not settings.app.rate_limit_enabled
            or not path.startswith(path_prefix)
            or path in exempt
        ):
            return await call_next(request)

        # Runs outside ExceptionMiddleware, so domain errors are mapped here.
        try:
            result = check_rate_limit(request)
        except AppError as exc:
            return await app_error_handler(request, exc)

        if not result.allowed:
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "error": {
                        "code": "rate_limited",
                        "message": RATE_LIMITED_MESSAGE,
                        "request_id": get_request_id(),
                    }
                },
                headers=build_rate_limit_headers(result, blocked=True),
            )

        request.state.rate_limit_status = result
        response: Response = await call_next(request)
        for name, value in build_rate_limit_headers(result, blocked=False).items():
            response.headers.setdefault(name, value)
        return response

    app.middleware("http")(rate_limit_middleware)
