"""Hearts ledger.

The balance lives on ``users.hearts``. Every mutation is a single UPDATE evaluated
by the database, so two devices adjusting the same balance never lose an update.
``adjust`` clamps at zero; ``debit`` refuses instead of clamping.
"""

from __future__ import annotations

import logging

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.db.models import User
from pairly.results import ErrorCode, ServiceResult, guarded
from pairly.timeutils import utcnow

logger = logging.getLogger(__name__)


async def get_balance(db: AsyncSession, user_id: str) -> int | None:
    result = await db.execute(select(User.hearts).where(User.uid == user_id))
    return result.scalar_one_or_none()


async def apply_hearts_delta(db: AsyncSession, user_id: str, delta: int) -> int | None:
    """Add ``delta`` (clamped at zero) inside the current transaction.

    Returns the resulting balance, or None if the user does not exist.
    """
    clamped = case((User.hearts + delta < 0, 0), else_=User.hearts + delta)
    result = await db.execute(
        update(User)
        .where(User.uid == user_id)
        .values({User.hearts: clamped, User.updated_at: utcnow()})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    return await get_balance(db, user_id)


async def debit_hearts(db: AsyncSession, user_id: str, amount: int) -> bool:
    """Subtract ``amount`` only if the balance covers it. Returns False otherwise."""
    result = await db.execute(
        update(User)
        .where(User.uid == user_id, User.hearts >= amount)
        .values({User.hearts: User.hearts - amount, User.updated_at: utcnow()})
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


@guarded("adjust_hearts")
async def adjust_hearts(db: AsyncSession, user_id: str, delta: int) -> ServiceResult:
    """Apply a clamped delta to a user's balance and commit."""
    balance = await apply_hearts_delta(db, user_id, delta)
    if balance is None:
        await db.rollback()
        return ServiceResult.fail(ErrorCode.USER_NOT_FOUND, "User not found")
    await db.commit()
    logger.info("Hearts adjusted for %s by %d -> %d", user_id, delta, balance)
    return ServiceResult.ok(newBalance=balance)
