"""
Cache-Related Exceptions

Raised inside the Redis adapter and caught at its boundary; callers of the
adapter only ever see degraded return values.

Author: Platform Team
Date: 2026-03-02
"""

from swapcache.core.exceptions.base import SwapCacheError


class CacheError(SwapCacheError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when Redis cannot be reached.

    Common causes:
    - Redis server is down or restarting
    - Network partition or DNS failure
    - Wrong REDIS_URL or credentials
    """
    pass


class CacheSerializationError(CacheError):
    """Raised when a value cannot be encoded to, or decoded from, JSON."""
    pass
