#!/usr/bin/env python3
"""
Health Checker Module

Process and dependency health for the performance endpoints:
- Redis readiness (and ping latency in the detailed report)
- Process memory (RSS/VMS) and system memory pressure
- Uptime, CPU times and runtime information

Status rules:
    critical  system memory usage above 90%
    degraded  system memory usage above 75%, or Redis not ready
    healthy   otherwise

Author: Platform Team
Date: 2026-03-06
"""

import platform
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import psutil

from swapcache.core.config.constants import MEMORY_CRITICAL_PERCENT, MEMORY_DEGRADED_PERCENT
from swapcache.core.logging.logger import get_logger
from swapcache.infrastructure.cache.redis_client import RedisClient

logger = get_logger(__name__)

_BYTE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


class HealthStatus(str, Enum):
    """Health status enumeration."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"


def format_bytes(num_bytes: float) -> str:
    """
    Human readable size with two decimals at most.

    >>> format_bytes(1536)
    '1.5 KB'
    """
    if num_bytes <= 0:
        return "0 Bytes"
    exponent = 0
    scaled = float(num_bytes)
    while scaled >= 1024 and exponent < len(_BYTE_UNITS) - 1:
        scaled /= 1024
        exponent += 1
    value = round(scaled, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {_BYTE_UNITS[exponent]}"


def format_uptime(seconds: float) -> str:
    """
    Compact uptime such as ``"1d 2h 5m 3s"``; zero-valued units are omitted.

    >>> format_uptime(3725)
    '1h 2m 5s'
    """
    total = int(seconds)
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class HealthChecker:
    """
    Builds health and system reports.

    STAGE-H: Health check orchestration

    Usage:
        checker = HealthChecker(redis_client)
        report = await checker.check_health()
        if report["status"] != HealthStatus.HEALTHY:
            ...
    """

    def __init__(self, redis_client: RedisClient, started_at: float | None = None):
        self._redis = redis_client
        self._started_at = time.monotonic() if started_at is None else started_at
        self._process = psutil.Process()

    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started_at

    def memory_report(self) -> dict[str, Any]:
        process_memory = self._process.memory_info()
        system_memory = psutil.virtual_memory()
        return {
            "rss": format_bytes(process_memory.rss),
            "vms": format_bytes(process_memory.vms),
            "system_total": format_bytes(system_memory.total),
            "system_used": format_bytes(system_memory.used),
            "system_usage_percentage": f"{system_memory.percent:.2f}%",
        }

    @staticmethod
    def resolve_status(memory_percent: float, redis_ready: bool) -> HealthStatus:
        if memory_percent > MEMORY_CRITICAL_PERCENT:
            return HealthStatus.CRITICAL
        if memory_percent > MEMORY_DEGRADED_PERCENT or not redis_ready:
            return HealthStatus.DEGRADED
        return HealthStatus.HEALTHY

    async def check_health(self) -> dict[str, Any]:
        """
        Health report for the public health endpoint.

        STAGE-H.1: Quick health status
        """
        redis_ready = self._redis.is_ready()
        memory_percent = psutil.virtual_memory().percent
        status = self.resolve_status(memory_percent, redis_ready)
        uptime = self.uptime_seconds()
        cpu = self._process.cpu_times()

        if status is not HealthStatus.HEALTHY:
            logger.warning(
                "Health check not healthy",
                stage="H.1",
                status=status.value,
                redis_connected=redis_ready,
                memory_percent=memory_percent,
            )

        return {
            "status": status,
            "timestamp": utc_now_iso(),
            "uptime": {"seconds": int(uptime), "formatted": format_uptime(uptime)},
            "memory": self.memory_report(),
            "redis": {"connected": redis_ready},
            "python_version": platform.python_version(),
            "platform": platform.system().lower(),
            "cpu": {"user": cpu.user, "system": cpu.system},
        }

    async def system_report(self) -> dict[str, Any]:
        """
        Runtime section of the detailed metrics endpoint.

        STAGE-H.2: Detailed system report
        """
        return {
            "memory": self.memory_report(),
            "uptime": format_uptime(self.uptime_seconds()),
            "python_version": platform.python_version(),
            "platform": platform.system().lower(),
            "arch": platform.machine(),
            "redis": await self._redis.health_check(),
        }
