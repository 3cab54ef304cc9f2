"""API package: dependencies, middleware, models and routes."""
