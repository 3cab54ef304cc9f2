"""
Performance Routes

Operational endpoints for the cache and the request performance window.

    GET    /performance/health         public, 503 unless healthy
    GET    /performance/stats          request statistics and percentiles
    GET    /performance/cache          Redis keyspace statistics
    GET    /performance/metrics        performance + cache + system report
    DELETE /performance/metrics        clear the in-memory window
    DELETE /performance/cache          delete by ?pattern= or flush everything
    POST   /performance/cache/warmup   pre-load categories and skills

Everything except /health requires admin access (X-Admin-Token). Responses
are never cached by clients; see NoCacheMiddleware in setup_middleware.
"""

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from swapcache.application.api.dependencies import (
    AdminAccess,
    CacheServiceDep,
    HealthCheckerDep,
    PerformanceMonitorDep,
    TaskRunnerDep,
)
from swapcache.application.api.models.performance import (
    ApiResponse,
    CacheStatsData,
    DetailedMetricsData,
    HealthData,
    PerformanceStatsData,
    SystemInfo,
    WarmupRequest,
)
from swapcache.core.logging.logger import get_logger
from swapcache.infrastructure.monitoring.health_checker import HealthStatus, utc_now_iso

logger = get_logger(__name__)

router = APIRouter(prefix="/performance", tags=["Performance"])


# ============================================================================
# HEALTH
# ============================================================================


@router.get(
    "/health",
    response_model=ApiResponse[HealthData],
    responses={503: {"model": ApiResponse[HealthData], "description": "Degraded or critical"}},
)
async def get_health(health_checker: HealthCheckerDep):
    """
    Process and dependency health.

    ``critical`` above 90% system memory, ``degraded`` above 75% or while
    Redis is unavailable. Any non-healthy status answers 503 so load
    balancers take the instance out of rotation; ``success`` is false only
    for ``critical``.
    """
    report = await health_checker.check_health()
    health = HealthData.model_validate(report)

    body = ApiResponse[HealthData](success=health.status != HealthStatus.CRITICAL, data=health)
    status_code = (
        status.HTTP_200_OK if health.status == HealthStatus.HEALTHY else status.HTTP_503_SERVICE_UNAVAILABLE
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


# ============================================================================
# STATISTICS
# ============================================================================


@router.get(
    "/stats",
    response_model=ApiResponse[PerformanceStatsData],
    response_model_exclude_none=True,
    dependencies=[AdminAccess],
)
async def get_stats(monitor: PerformanceMonitorDep):
    data = PerformanceStatsData.build(monitor.get_stats(), monitor.get_percentiles(), utc_now_iso())
    return ApiResponse[PerformanceStatsData](data=data)


@router.get(
    "/cache",
    response_model=ApiResponse[CacheStatsData],
    response_model_exclude_none=True,
    dependencies=[AdminAccess],
)
async def get_cache_stats(cache: CacheServiceDep):
    stats = await cache.get_stats()
    return ApiResponse[CacheStatsData](data=CacheStatsData.build(stats, utc_now_iso()))


@router.get(
    "/metrics",
    response_model=ApiResponse[DetailedMetricsData],
    response_model_exclude_none=True,
    dependencies=[AdminAccess],
)
async def get_detailed_metrics(
    monitor: PerformanceMonitorDep,
    cache: CacheServiceDep,
    health_checker: HealthCheckerDep,
):
    """Performance window, Redis statistics and a runtime report in one call."""
    cache_stats = await cache.get_stats()
    system = await health_checker.system_report()

    data = DetailedMetricsData(
        performance=PerformanceStatsData.build(monitor.get_stats(), monitor.get_percentiles()),
        cache=CacheStatsData.build(cache_stats),
        system=SystemInfo.model_validate(system),
        timestamp=utc_now_iso(),
    )
    return ApiResponse[DetailedMetricsData](data=data)


# ============================================================================
# MAINTENANCE
# ============================================================================


@router.delete(
    "/metrics",
    response_model=ApiResponse[None],
    response_model_exclude_none=True,
    dependencies=[AdminAccess],
)
async def clear_metrics(monitor: PerformanceMonitorDep):
    monitor.clear()
    return ApiResponse[None](message="Performance metrics cleared")


@router.delete(
    "/cache",
    response_model=ApiResponse[None],
    response_model_exclude_none=True,
    dependencies=[AdminAccess],
)
async def clear_cache(
    cache: CacheServiceDep,
    pattern: str | None = Query(default=None, min_length=1, description="Glob of keys to delete"),
):
    """Delete keys matching ``pattern``, or flush the whole database without one."""
    if pattern:
        count = await cache.invalidate_pattern(pattern)
        return ApiResponse[None](
            message=f"Cleared {count} cache entries matching pattern: {pattern}",
            count=count,
        )

    await cache.clear_all()
    return ApiResponse[None](message="All cache cleared")


@router.post(
    "/cache/warmup",
    response_model=ApiResponse[None],
    response_model_exclude_none=True,
    dependencies=[AdminAccess],
)
async def warmup_cache(
    cache: CacheServiceDep,
    tasks: TaskRunnerDep,
    payload: WarmupRequest | None = None,
):
    """Schedule a warmup in the background and answer immediately."""
    payload = payload or WarmupRequest()
    tasks.submit(
        cache.warmup(
            categories=payload.categories,
            popular_skills_by_category=payload.popular_skills_by_category,
        ),
        name="cache-warmup",
    )
    logger.info(
        "Cache warmup scheduled",
        categories=payload.categories is not None,
        skill_groups=len(payload.popular_skills_by_category or {}),
    )
    return ApiResponse[None](message="Cache warmup initiated")
