"""arq worker for periodic maintenance.

Import path for arq CLI: arq pairly.workers.settings.WorkerSettings
"""

from __future__ import annotations

import logging

from arq import cron
from arq.connections import RedisSettings

from pairly.config import get_settings
from pairly.database import close_db, init_db, session_scope
from pairly.redis_client import close_redis, get_optional_redis, init_redis
from pairly.sharing.gift_service import recover_pending_gifts
from pairly.sharing.pet_service import decrease_all_pets

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize the database engine and the Redis pool used for fan-out."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.redis_url:
        await init_redis(settings.redis_url)
    logger.info("Maintenance worker started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    await close_db()
    await close_redis()
    logger.info("Maintenance worker shut down")


async def decay_pets(ctx: dict) -> int:  # type: ignore[type-arg]
    """Hourly pet stat decay across all couples."""
    async with session_scope() as db:
        count = await decrease_all_pets(db, redis=get_optional_redis())
    logger.info("Decayed stats for %d pets", count)
    return count


async def recover_gifts(ctx: dict) -> int:  # type: ignore[type-arg]
    """Roll back gifts stuck between the debit and the credit step."""
    async with session_scope() as db:
        count = await recover_pending_gifts(db)
    if count > 0:
        logger.warning("Rolled back %d stale pending gifts", count)
    return count


class WorkerSettings:
    """arq worker settings for maintenance jobs."""

    functions = [decay_pets, recover_gifts]
    cron_jobs = [
        cron(decay_pets, minute=0),
        cron(recover_gifts, minute=set(range(0, 60, 5))),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 4
