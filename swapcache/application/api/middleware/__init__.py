"""
Middleware Package

AVAILABLE MIDDLEWARE:
---------------------
1. request_context: X-Request-ID correlation for logs and responses
2. error_handler: JSON 500 for anything unhandled
3. rate_limit: global fixed-window limit, per-route presets and their refunds
4. performance_monitor: per-request timing, memory delta and headers
5. response_cache: Redis-backed GET cache and write-triggered invalidation
6. cache_headers: Cache-Control helpers and NoCacheMiddleware

MIDDLEWARE ORDERING:
--------------------
Starlette runs the LAST registered middleware FIRST, so setup_middleware
registers from the innermost layer outwards:

Request flow:  Client → request context → error handler → CORS → rate limit
               → performance → no-cache → response cache → invalidation
               → rate-limit refunds → Handler

USAGE EXAMPLE:
--------------
    app = FastAPI()
    setup_middleware(app, settings)
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from swapcache.core.config.constants import (
    HEADER_MEMORY_USAGE,
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    HEADER_REQUEST_ID,
    HEADER_RESPONSE_TIME,
    HEADER_RETRY_AFTER,
)
from swapcache.core.config.settings import Settings
from swapcache.core.logging.logger import get_logger
from swapcache.rate_limiting.rate_limiter import GENERAL

from .cache_headers import NoCacheMiddleware, cache_control, no_cache
from .error_handler import ErrorHandlingMiddleware, add_error_handling_middleware
from .performance_monitor import PerformanceMonitoringMiddleware, add_performance_monitoring_middleware
from .rate_limit import (
    RateLimitMiddleware,
    RateLimitRefundMiddleware,
    add_rate_limit_middleware,
    rate_limit,
)
from .request_context import RequestContextMiddleware
from .response_cache import (
    CacheInvalidationMiddleware,
    ResponseCacheMiddleware,
    add_response_cache_middleware,
)

logger = get_logger(__name__)


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """
    Register all middleware components in the correct order.

    Args:
        app: FastAPI application instance
        settings: Application settings
    """
    base_path = settings.app.API_BASE_PATH
    cache_settings = settings.cache
    limit_settings = settings.rate_limit

    logger.info("Registering middleware components...")

    # ========================================================================
    # 0. RATE-LIMIT REFUNDS (innermost, sees the status of every route)
    # ========================================================================
    # Settles skip flags for routes using the rate_limit() dependency.
    app.add_middleware(RateLimitRefundMiddleware)

    # ========================================================================
    # 1. RESPONSE CACHE + INVALIDATION
    # ========================================================================
    # Writes under a cached prefix drop that prefix's cached GET responses.
    if cache_settings.RESPONSE_CACHE_ENABLED and cache_settings.RESPONSE_CACHE_PATHS:
        paths = cache_settings.RESPONSE_CACHE_PATHS
        for prefix in paths:
            app.add_middleware(CacheInvalidationMiddleware, patterns=[prefix], paths=[prefix])
        add_response_cache_middleware(app, ttl=cache_settings.RESPONSE_CACHE_TTL, paths=paths)

    # ========================================================================
    # 2. NO-CACHE HEADERS for operational endpoints
    # ========================================================================
    app.add_middleware(NoCacheMiddleware, paths=[f"{base_path}/performance"])

    # ========================================================================
    # 3. PERFORMANCE MONITORING
    # ========================================================================
    # Outside the cache so cache hits are measured too.
    add_performance_monitoring_middleware(app)

    # ========================================================================
    # 4. GLOBAL RATE LIMIT
    # ========================================================================
    if limit_settings.RATE_LIMIT_ENABLED:
        policy = GENERAL.with_limits(
            window_seconds=limit_settings.RATE_LIMIT_WINDOW_SECONDS,
            max_requests=limit_settings.RATE_LIMIT_MAX_REQUESTS,
        )
        add_rate_limit_middleware(
            app,
            policy=policy,
            paths=[base_path] if base_path else None,
            exempt_paths=limit_settings.RATE_LIMIT_EXEMPT_PATHS,
        )

    # ========================================================================
    # 5. CORS (headers on every response, 429s included)
    # ========================================================================
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            HEADER_REQUEST_ID,
            HEADER_RATE_LIMIT,
            HEADER_RATE_REMAINING,
            HEADER_RATE_RESET,
            HEADER_RETRY_AFTER,
            HEADER_RESPONSE_TIME,
            HEADER_MEMORY_USAGE,
        ],
    )

    # ========================================================================
    # 6. ERROR HANDLING (catches everything raised further in)
    # ========================================================================
    add_error_handling_middleware(app, include_traceback=settings.is_development)

    # ========================================================================
    # 7. REQUEST CONTEXT (outermost, so error responses carry the request ID)
    # ========================================================================
    app.add_middleware(RequestContextMiddleware)

    logger.info("All middleware components registered successfully")


__all__ = [
    "setup_middleware",
    "CacheInvalidationMiddleware",
    "ErrorHandlingMiddleware",
    "NoCacheMiddleware",
    "PerformanceMonitoringMiddleware",
    "RateLimitMiddleware",
    "RateLimitRefundMiddleware",
    "RequestContextMiddleware",
    "ResponseCacheMiddleware",
    "add_error_handling_middleware",
    "add_performance_monitoring_middleware",
    "add_rate_limit_middleware",
    "add_response_cache_middleware",
    "cache_control",
    "no_cache",
    "rate_limit",
]
