"""
Rate Limiting Module

Fixed-window rate limiting on Redis counters, with endpoint policies.
"""

from .rate_limiter import (
    PRESETS,
    FixedWindowRateLimiter,
    RateLimitPolicy,
    RateLimitResult,
    api_key_key,
    ip_key,
    user_key,
)

__all__ = [
    "PRESETS",
    "FixedWindowRateLimiter",
    "RateLimitPolicy",
    "RateLimitResult",
    "api_key_key",
    "ip_key",
    "user_key",
]
