"""
Performance API Models

Response models for the performance and cache administration endpoints.

Every endpoint answers with the same envelope:

    {"success": true, "data": {...}, "message": "...", "count": 3}

Fields are snake_case in Python and camelCase on the wire
(``total_requests`` -> ``totalRequests``); unset optional fields are
omitted from the JSON.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from swapcache.infrastructure.cache.redis_client import StoreStats
from swapcache.infrastructure.monitoring.health_checker import HealthStatus
from swapcache.infrastructure.monitoring.performance_monitor import PerformanceStats

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    """Base model serialised with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# ENVELOPE
# ============================================================================


class ApiResponse(CamelModel, Generic[DataT]):
    success: bool = Field(default=True, description="False only when the request failed")
    data: DataT | None = Field(default=None, description="Endpoint payload")
    message: str | None = Field(default=None, description="Human-readable outcome")
    count: int | None = Field(default=None, ge=0, description="Affected entry count")


# ============================================================================
# PERFORMANCE
# ============================================================================


class Percentiles(CamelModel):
    """Nearest-rank response time percentiles in milliseconds."""

    p50: float = 0
    p75: float = 0
    p90: float = 0
    p95: float = 0
    p99: float = 0


class PerformanceStatsData(CamelModel):
    total_requests: int = Field(ge=0, description="Requests in the current window")
    average_response_time: int = Field(ge=0, description="Mean response time (ms, rounded)")
    slow_requests: int = Field(ge=0, description="Requests above the slow threshold")
    fastest_request: float = Field(ge=0, description="Fastest response time (ms)")
    slowest_request: float = Field(ge=0, description="Slowest response time (ms)")
    requests_by_method: dict[str, int] = Field(default_factory=dict)
    requests_by_status: dict[int, int] = Field(default_factory=dict)
    percentiles: Percentiles = Field(default_factory=Percentiles)
    timestamp: str | None = None

    @classmethod
    def build(
        cls,
        stats: PerformanceStats,
        percentiles: dict[str, float],
        timestamp: str | None = None,
    ) -> "PerformanceStatsData":
        return cls(
            total_requests=stats.total_requests,
            average_response_time=stats.average_response_time,
            slow_requests=stats.slow_requests,
            fastest_request=stats.fastest_request,
            slowest_request=stats.slowest_request,
            requests_by_method=stats.requests_by_method,
            requests_by_status=stats.requests_by_status,
            percentiles=Percentiles(**percentiles),
            timestamp=timestamp,
        )


# ============================================================================
# CACHE
# ============================================================================


def format_hit_rate(stats: StoreStats) -> str:
    """``"87.50%"``, or ``"0%"`` before the first hit."""
    return f"{stats.hit_rate:.2f}%" if stats.hits > 0 else "0%"


class CacheStatsData(CamelModel):
    connected: bool
    db_size: int = 0
    memory_human: str = "N/A"
    hits: int = 0
    misses: int = 0
    hit_rate: str = "0%"
    timestamp: str | None = None

    @classmethod
    def build(cls, stats: StoreStats, timestamp: str | None = None) -> "CacheStatsData":
        return cls(**stats.to_dict(), hit_rate=format_hit_rate(stats), timestamp=timestamp)


class WarmupRequest(CamelModel):
    """Optional data to pre-load; an empty body warms nothing."""

    categories: list[Any] | None = None
    popular_skills_by_category: dict[str, list[Any]] | None = None


# ============================================================================
# HEALTH AND SYSTEM
# ============================================================================


class UptimeInfo(CamelModel):
    seconds: int = Field(ge=0)
    formatted: str


class MemoryInfo(CamelModel):
    rss: str
    vms: str
    system_total: str
    system_used: str
    system_usage_percentage: str


class RedisConnectivity(CamelModel):
    connected: bool


class CpuTimes(CamelModel):
    user: float
    system: float


class HealthData(CamelModel):
    status: HealthStatus
    timestamp: str
    uptime: UptimeInfo
    memory: MemoryInfo
    redis: RedisConnectivity
    python_version: str
    platform: str
    cpu: CpuTimes


class SystemInfo(CamelModel):
    memory: MemoryInfo
    uptime: str
    python_version: str
    platform: str
    arch: str
    redis: dict[str, Any] = Field(default_factory=dict, description="Redis health check result")


class DetailedMetricsData(CamelModel):
    performance: PerformanceStatsData
    cache: CacheStatsData
    system: SystemInfo
    timestamp: str
