"""
Configuration Module

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: Cache prefixes, TTL tiers, header names and thresholds

Usage:
------
```python
from swapcache.core.config import get_settings
from swapcache.core.config.constants import CachePrefix, CacheTTL

settings = get_settings()
redis_url = settings.redis.REDIS_URL
ttl = CacheTTL.MEDIUM  # 1800
```

Environment Variables:
---------------------
```bash
REDIS_URL=redis://localhost:6379/0
RATE_LIMIT_MAX_REQUESTS=100
PERF_SLOW_THRESHOLD_MS=1000
LOG_LEVEL=INFO
LOG_FORMAT=json
```
"""

from swapcache.core.config.settings import Settings, get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings"]
