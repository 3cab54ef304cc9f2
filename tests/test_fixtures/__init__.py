"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .app_client import build_app, running_app
from .fake_redis import InMemoryRedis

__all__ = ["InMemoryRedis", "build_app", "running_app"]
