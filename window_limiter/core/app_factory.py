"""Application factory for the FastAPI app.

Centralizes app construction (metadata, lifespan, middleware, handlers,
routers) so tests can build isolated instances.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from window_limiter.api.routes import health_router, limits_router
from window_limiter.core.config import settings
from window_limiter.core.exception_handlers import setup_exception_handlers
from window_limiter.core.logging import configure_logging
from window_limiter.core.middleware import request_id_middleware
from window_limiter.core.rate_limit import get_rate_limiter, map_rate_limit, shutdown_rate_limiter

logger = logging.getLogger(__name__)

# Reporting must never consume the permits it reports.
RATE_LIMIT_INFO_PATH = "/v1/rate-limit"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the process-wide limiter with the app and stop it on shutdown."""
    if settings.app.rate_limit_enabled:
        get_rate_limiter()
    try:
        yield
    finally:
        shutdown_rate_limiter()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log, debug=settings.app.debug)

    app = FastAPI(
        title="Window Limiter",
        description=(
            "Per-key fixed-window request admission control. Each client key "
            "gets a fixed number of requests per window; excess requests are "
            "rejected with 429 and X-RateLimit-* advisory headers."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Registered before the request id middleware so it runs inside it and
    # its 429 responses carry the request id.
    if settings.app.rate_limit_path_prefix:
        map_rate_limit(
            app,
            settings.app.rate_limit_path_prefix,
            exempt_paths=(RATE_LIMIT_INFO_PATH,),
        )
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(limits_router, prefix="/v1")
    app.include_router(health_router)

    logger.info(
        "app.created",
        extra={
            "rate_limit_enabled": settings.app.rate_limit_enabled,
            "rate_limit_requests": settings.app.rate_limit_requests,
            "rate_limit_window_s": settings.app.rate_limit_window_seconds,
            "rate_limit_key_strategy": settings.app.rate_limit_key_strategy,
        },
    )
    return app
