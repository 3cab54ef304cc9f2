#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Builds the application around a ServiceContainer: caching, rate limiting
and performance monitoring middleware plus the performance routes.

Author: Platform Team
Date: 2026-03-09
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from swapcache.application.api.middleware import setup_middleware
from swapcache.application.api.middleware.rate_limit import rate_limited_response
from swapcache.application.api.routes.performance import router as performance_router
from swapcache.application.container import ServiceContainer
from swapcache.core.config.constants import HEADER_REQUEST_ID
from swapcache.core.config.settings import Settings, get_settings
from swapcache.core.exceptions import RateLimitExceededError, SwapCacheError
from swapcache.core.logging.logger import get_logger, setup_logging

logger = get_logger(__name__)


# ============================================================================
# Application Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle (startup and shutdown).
    """
    services: ServiceContainer = app.state.services
    settings = services.settings

    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    logger.info(
        "Starting cache layer",
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
    )

    try:
        await services.startup()
        logger.info("Application startup complete")

        yield

    finally:
        logger.info("Shutting down application")
        await services.shutdown()
        logger.info("Application shutdown complete")


# ============================================================================
# Exception Handlers
# ============================================================================


async def rate_limit_handler(request: Request, exc: RateLimitExceededError):
    """429 for limits enforced by the rate_limit() route dependency."""
    return rate_limited_response(exc.result, exc.message)


async def swapcache_exception_handler(request: Request, exc: SwapCacheError):
    logger.error(
        f"Application exception: {exc.message}",
        error_type=type(exc).__name__,
        request_id=exc.request_id,
    )

    return JSONResponse(
        status_code=500,
        content=exc.to_dict(),
        headers={HEADER_REQUEST_ID: exc.request_id or ""},
    )


# ============================================================================
# Application Factory
# ============================================================================


def create_app(settings: Settings | None = None, services: ServiceContainer | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Defaults to the global settings (ignored when ``services`` is given)
        services: Pre-built container, e.g. one wired to an in-memory Redis

    Returns:
        FastAPI: Configured application instance
    """
    if services is None:
        services = ServiceContainer.build(settings or get_settings())
    settings = services.settings

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Redis caching, rate limiting and performance monitoring layer",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.services = services

    setup_middleware(app, settings)

    app.add_exception_handler(RateLimitExceededError, rate_limit_handler)
    app.add_exception_handler(SwapCacheError, swapcache_exception_handler)

    app.include_router(performance_router, prefix=settings.app.API_BASE_PATH)

    @app.get("/", tags=["Root"])
    async def root():
        """
        Root endpoint with API information.
        """
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "docs": "/docs",
            "health": f"{settings.app.API_BASE_PATH}/performance/health",
        }

    return app


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "swapcache.application.app:create_app",
        factory=True,
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.is_development,
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
