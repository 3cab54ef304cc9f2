"""
System Constants and Enumerations

Key prefixes, TTL tiers, header names and thresholds shared by the cache,
rate limiting and performance components.

Author: Platform Team
Date: 2026-03-02
"""

from enum import Enum, IntEnum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Processing stages attached to log events as ``stage=...``.

    Format: {PREFIX}_{DESCRIPTIVE_NAME}
    """

    INITIALIZATION = "0.0_INITIALIZATION"
    RATE_LIMITING = "3.0_RATE_LIMITING"
    RESPONSE_CACHE = "2.0_RESPONSE_CACHE"
    CACHE_INVALIDATION = "2.1_CACHE_INVALIDATION"
    PERFORMANCE = "P_PERFORMANCE_MONITORING"
    BACKGROUND = "BG_BACKGROUND_TASKS"
    CLEANUP = "6.0_CLEANUP"


# ============================================================================
# Cache Namespaces and TTL Tiers
# ============================================================================


class CachePrefix(str, Enum):
    """
    Key namespaces. Every key written by CacheService starts with exactly one.
    """

    USER = "user:"
    SKILL = "skill:"
    CATEGORY = "category:"
    SWAP = "swap:"
    EVENT = "event:"
    NOTIFICATION = "notification:"
    ANALYTICS = "analytics:"
    SEARCH = "search:"
    SESSION = "session:"
    RATE_LIMIT = "ratelimit:"


class CacheTTL(IntEnum):
    """TTL tiers in seconds."""

    SHORT = 300  # 5 minutes
    MEDIUM = 1800  # 30 minutes
    LONG = 3600  # 1 hour
    VERY_LONG = 86400  # 24 hours
    USER_SESSION = 604800  # 7 days


# ============================================================================
# Redis Key Prefixes (outside CacheService namespaces)
# ============================================================================

REDIS_KEY_API_RESPONSE = "api"
REDIS_KEY_METRICS = "metrics"
REDIS_KEY_COUNTER_REQUESTS = "counter:requests"
REDIS_KEY_COUNTER_STATUS = "counter:status"
REDIS_KEY_COUNTER_SLOW = "counter:slow_requests"

# ============================================================================
# Performance Thresholds
# ============================================================================

DEFAULT_MAX_METRICS = 1000
DEFAULT_SLOW_THRESHOLD_MS = 1000
DEFAULT_METRIC_TTL = 3600
PERCENTILES = (50, 75, 90, 95, 99)

# System memory usage (percent) above which health degrades
MEMORY_DEGRADED_PERCENT = 75
MEMORY_CRITICAL_PERCENT = 90

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_USER_ID = "X-User-ID"
HEADER_API_KEY = "X-API-Key"
HEADER_ADMIN_TOKEN = "X-Admin-Token"
HEADER_RATE_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_REMAINING = "X-RateLimit-Remaining"
HEADER_RATE_RESET = "X-RateLimit-Reset"
HEADER_RETRY_AFTER = "Retry-After"
HEADER_RESPONSE_TIME = "X-Response-Time"
HEADER_MEMORY_USAGE = "X-Memory-Usage"

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
}

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
