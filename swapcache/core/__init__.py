"""
Core Module

Foundational components: configuration, logging, exceptions and the
background task runner.
"""
