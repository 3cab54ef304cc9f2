"""
Monitoring Module

Request performance window and process/dependency health reports.
"""

from .health_checker import HealthChecker, HealthStatus, format_bytes, format_uptime, utc_now_iso
from .performance_monitor import PerformanceMetric, PerformanceMonitor, PerformanceStats

__all__ = [
    "HealthChecker",
    "HealthStatus",
    "PerformanceMetric",
    "PerformanceMonitor",
    "PerformanceStats",
    "format_bytes",
    "format_uptime",
    "utc_now_iso",
]
