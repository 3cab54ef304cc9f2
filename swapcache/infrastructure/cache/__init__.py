"""
Cache Module

Fail-safe Redis adapter and the domain cache service built on it.
"""

from .cache_service import CacheService
from .redis_client import RedisClient, StoreStats

__all__ = [
    "CacheService",
    "RedisClient",
    "StoreStats",
]
