"""
swapcache: Redis caching, rate limiting and performance monitoring for the
skill-swap marketplace API.
"""

__version__ = "1.0.0"
