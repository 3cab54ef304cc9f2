"""
API Models Package

ORGANIZATION:
-------------
- performance.py: response envelope and performance/cache endpoint models
"""

from swapcache.application.api.models.performance import (
    ApiResponse,
    CacheStatsData,
    CamelModel,
    DetailedMetricsData,
    HealthData,
    PerformanceStatsData,
    Percentiles,
    SystemInfo,
    WarmupRequest,
)

__all__ = [
    "ApiResponse",
    "CacheStatsData",
    "CamelModel",
    "DetailedMetricsData",
    "HealthData",
    "PerformanceStatsData",
    "Percentiles",
    "SystemInfo",
    "WarmupRequest",
]
