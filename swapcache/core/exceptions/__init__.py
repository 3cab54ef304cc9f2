"""
Exception Module

Structured exception hierarchy for the caching and performance layer.

Module Structure:
-----------------
- **base.py**: SwapCacheError base class
- **cache.py**: Redis / serialization exceptions
- **rate_limit.py**: Rate limiting exceptions

Usage:
------
```python
from swapcache.core.exceptions import CacheConnectionError, RateLimitExceededError
```

Author: Platform Team
Date: 2026-03-02
"""

from swapcache.core.exceptions.base import SwapCacheError
from swapcache.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheSerializationError,
)
from swapcache.core.exceptions.rate_limit import RateLimitError, RateLimitExceededError

__all__ = [
    "SwapCacheError",
    "CacheError",
    "CacheConnectionError",
    "CacheSerializationError",
    "RateLimitError",
    "RateLimitExceededError",
]
