"""
FastAPI Dependency Injection

Route handlers and middleware reach application services through
``request.app.state.services``, the ServiceContainer created by the app
factory. Nothing here constructs a service; a missing container is a wiring
bug and fails loudly.

Example:
    @router.get("/skills/{category_id}")
    async def skills(category_id: str, cache: CacheServiceDep):
        return await cache.remember(
            f"skill:category:{category_id}", CacheTTL.LONG, lambda: load(category_id)
        )
"""

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from swapcache.application.container import ServiceContainer
from swapcache.core.background import BackgroundTaskRunner
from swapcache.core.config.constants import HEADER_ADMIN_TOKEN
from swapcache.core.logging.logger import get_logger
from swapcache.infrastructure.cache.cache_service import CacheService
from swapcache.infrastructure.monitoring.health_checker import HealthChecker
from swapcache.infrastructure.monitoring.performance_monitor import PerformanceMonitor

logger = get_logger(__name__)


def get_services(request: Request) -> ServiceContainer:
    """
    Return the ServiceContainer stored on the application.

    Raises:
        RuntimeError: The app was not created through ``create_app``
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Application services are not configured; use create_app()")
    return services


def get_cache_service(request: Request) -> CacheService:
    return get_services(request).cache


def get_performance_monitor(request: Request) -> PerformanceMonitor:
    return get_services(request).performance


def get_health_checker(request: Request) -> HealthChecker:
    return get_services(request).health


def get_task_runner(request: Request) -> BackgroundTaskRunner:
    return get_services(request).tasks


async def verify_admin_access(request: Request) -> None:
    """
    Guard for admin endpoints.

    Compares the X-Admin-Token header with ADMIN_API_TOKEN in constant time.
    When ADMIN_API_TOKEN is unset every request is allowed (local development).
    """
    expected = get_services(request).settings.app.ADMIN_API_TOKEN
    if not expected:
        return

    provided = request.headers.get(HEADER_ADMIN_TOKEN, "")
    if not secrets.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Admin access denied", path=request.url.path)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")


# ============================================================================
# TYPE ALIASES
# ============================================================================

CacheServiceDep = Annotated[CacheService, Depends(get_cache_service)]
PerformanceMonitorDep = Annotated[PerformanceMonitor, Depends(get_performance_monitor)]
HealthCheckerDep = Annotated[HealthChecker, Depends(get_health_checker)]
TaskRunnerDep = Annotated[BackgroundTaskRunner, Depends(get_task_runner)]
AdminAccess = Depends(verify_admin_access)
