"""
Application Test Client

Runs an app built by create_app() in-process: services are started and
stopped around an httpx.AsyncClient, so tests can ``await
services.tasks.drain()`` between requests to observe background writes.
"""

from contextlib import asynccontextmanager

import httpx

from swapcache.application.app import create_app
from swapcache.application.container import ServiceContainer


def build_app(settings, fake_redis, **overrides):
    """create_app() wired to ``fake_redis`` with settings overrides."""
    app_settings = settings.model_copy(update=overrides)
    services = ServiceContainer.build(app_settings, redis_client_factory=lambda: fake_redis)
    return create_app(services=services)


@asynccontextmanager
async def running_app(app):
    services = app.state.services
    await services.startup()
    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        await services.shutdown()
