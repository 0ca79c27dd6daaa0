"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pairly.config import get_settings
from pairly.couples.router import router as couples_router
from pairly.database import close_db, create_schema, init_db
from pairly.health.router import router as health_router
from pairly.middleware import setup_middleware
from pairly.notifications.router import router as notifications_router
from pairly.profiles.router import router as profiles_router
from pairly.realtime.bridge import PubSubBridge
from pairly.realtime.manager import manager
from pairly.realtime.router import router as ws_router
from pairly.redis_client import close_redis, get_redis, init_redis
from pairly.sharing.router import router as sharing_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await create_schema()
    manager.max_connections_per_user = settings.ws_max_connections_per_user

    # Without Redis, change events are fanned out in-process only
    bridge: PubSubBridge | None = None
    bridge_task: asyncio.Task[None] | None = None
    if settings.redis_url:
        await init_redis(settings.redis_url)
        bridge = PubSubBridge(get_redis())
        bridge_task = asyncio.create_task(bridge.start())
    else:
        logger.warning("No Redis configured, real-time fan-out is limited to this process")

    yield

    if bridge is not None and bridge_task is not None:
        await bridge.stop()
        bridge_task.cancel()
        try:
            await bridge_task
        except asyncio.CancelledError:
            pass

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Pairly API",
        description="Backend API for Pairly, the shared space for couples",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(profiles_router)
    app.include_router(couples_router)
    app.include_router(sharing_router)
    app.include_router(notifications_router)
    app.include_router(ws_router)

    return app
