"""
Infrastructure Layer

Redis-backed caching and in-process monitoring.
"""
