"""
Performance Monitoring Middleware

Measures every request that reaches it and records a PerformanceMetric in
the application's PerformanceMonitor:

- wall time via time.perf_counter() (monotonic, sub-millisecond)
- process RSS delta via psutil (memory allocated while serving)
- final status code (500 when the handler raised)

Adds two response headers before the body is sent:

    X-Response-Time: 42ms
    X-Memory-Usage: 12KB
"""

import time
from collections.abc import Callable

import psutil
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from swapcache.application.api.dependencies import get_services
from swapcache.core.config.constants import HEADER_MEMORY_USAGE, HEADER_RESPONSE_TIME
from swapcache.core.logging.logger import get_logger
from swapcache.infrastructure.monitoring.performance_monitor import PerformanceMetric
from swapcache.rate_limiting.rate_limiter import get_request_user_id

logger = get_logger(__name__)

_process = psutil.Process()


def _rss_bytes() -> int:
    return _process.memory_info().rss


class PerformanceMonitoringMiddleware(BaseHTTPMiddleware):
    """Records one metric per request and sets the timing headers."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        monitor = get_services(request).performance

        start_time = time.perf_counter()
        start_rss = _rss_bytes()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            memory_delta = _rss_bytes() - start_rss
            monitor.record(
                PerformanceMetric(
                    path=request.url.path,
                    method=request.method,
                    status_code=status_code,
                    response_time_ms=round(elapsed_ms, 2),
                    timestamp_ms=int(time.time() * 1000),
                    memory_delta_bytes=memory_delta,
                    user_id=get_request_user_id(request),
                )
            )

        response.headers[HEADER_RESPONSE_TIME] = f"{round(elapsed_ms)}ms"
        response.headers[HEADER_MEMORY_USAGE] = f"{round(memory_delta / 1024)}KB"
        return response


def add_performance_monitoring_middleware(app) -> None:
    """
    Register the performance middleware.

    USAGE:
        app = FastAPI()
        add_performance_monitoring_middleware(app)
    """
    app.add_middleware(PerformanceMonitoringMiddleware)
    logger.info("Performance monitoring middleware registered")
