"""
Application Layer

FastAPI app factory, service container and HTTP surface.
"""
