"""Couple document business logic.

Top-level couple fields (name, anniversary) are plain updates. The embedded
``pet`` and ``loveZone`` sub-documents are shared mutable state written by both
partners, so every write to them goes through ``apply_versioned``: read the
sub-document with the couple's ``version``, compute the new value, and write it
back only if the version is unchanged, retrying from a fresh read otherwise.
"""

from __future__ import annotations

import copy
import logging
import math
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from pairly.config import get_settings
from pairly.db.models import Couple, User
from pairly.realtime.channels import Feed
from pairly.realtime.publisher import publish_couple_change
from pairly.results import ErrorCode, ServiceResult, guarded
from pairly.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

# Mutators return the new sub-document, or a failed ServiceResult to abort
Mutator = Callable[[dict[str, Any]], dict[str, Any] | ServiceResult]


async def get_couple_row(db: AsyncSession, couple_id: str) -> Couple | None:
    result = await db.execute(
        select(Couple).where(Couple.id == couple_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def require_members(db: AsyncSession, couple_id: str, *user_ids: str) -> Couple | ServiceResult:
    """Load a couple and check every given user belongs to it."""
    couple = await get_couple_row(db, couple_id)
    if couple is None:
        return ServiceResult.fail(ErrorCode.COUPLE_NOT_FOUND, "Couple not found")
    members = couple.member_ids()
    if any(uid not in members for uid in user_ids):
        return ServiceResult.fail(ErrorCode.NOT_COUPLE_MEMBER, "User is not a member of this couple")
    return couple


@guarded("get_couple")
async def get_couple(db: AsyncSession, couple_id: str) -> ServiceResult:
    couple = await get_couple_row(db, couple_id)
    if couple is None:
        return ServiceResult.fail(ErrorCode.COUPLE_NOT_FOUND, "Couple not found")
    return ServiceResult.ok(couple=couple.to_document())


@guarded("get_couple_by_user_id")
async def get_couple_by_user_id(db: AsyncSession, user_id: str) -> ServiceResult:
    """Resolve a user's couple through their profile."""
    result = await db.execute(select(User.couple_id).where(User.uid == user_id))
    couple_id = result.scalar_one_or_none()
    if not couple_id:
        return ServiceResult.fail(ErrorCode.COUPLE_NOT_FOUND, "User is not connected to a partner")
    return await get_couple(db, couple_id)


@guarded("update_couple")
async def update_couple(
    db: AsyncSession,
    couple_id: str,
    couple_name: str | None = None,
    anniversary: date | None = None,
    redis: Any | None = None,
) -> ServiceResult:
    """Update the couple's top-level fields."""
    couple = await get_couple_row(db, couple_id)
    if couple is None:
        return ServiceResult.fail(ErrorCode.COUPLE_NOT_FOUND, "Couple not found")

    if couple_name is not None:
        couple.couple_name = couple_name
    if anniversary is not None:
        couple.anniversary = anniversary
    couple.updated_at = utcnow()
    await db.commit()

    await publish_couple_change(redis, couple_id, Feed.COUPLE)
    return ServiceResult.ok(couple=couple.to_document())


async def update_couple_name(
    db: AsyncSession, couple_id: str, couple_name: str, redis: Any | None = None
) -> ServiceResult:
    return await update_couple(db, couple_id, couple_name=couple_name, redis=redis)


async def set_anniversary(
    db: AsyncSession, couple_id: str, anniversary: date, redis: Any | None = None
) -> ServiceResult:
    return await update_couple(db, couple_id, anniversary=anniversary, redis=redis)


def calculate_days_together(couple: dict[str, Any] | None, now: datetime | None = None) -> int:
    """Whole days since the couple connected, rounded up; 0 without a timestamp."""
    if not couple:
        return 0
    started = couple.get("connectedAt") or couple.get("createdAt")
    if started is None:
        return 0
    now = now or utcnow()
    elapsed = abs((as_utc(now) - as_utc(started)).total_seconds())
    return math.ceil(elapsed / SECONDS_PER_DAY)


@guarded("get_days_together")
async def get_days_together(db: AsyncSession, couple_id: str) -> ServiceResult:
    couple = await get_couple_row(db, couple_id)
    if couple is None:
        return ServiceResult.fail(ErrorCode.COUPLE_NOT_FOUND, "Couple not found")
    return ServiceResult.ok(daysTogether=calculate_days_together(couple.to_document()))


async def dissolve_couple(db: AsyncSession, couple_id: str) -> bool:
    """Clear both members' pairing fields and delete the couple. The caller commits.

    Returns False when the couple does not exist.
    """
    couple = await get_couple_row(db, couple_id)
    if couple is None:
        return False

    now = utcnow()
    await db.execute(
        update(User)
        .where(User.uid.in_(couple.member_ids()), User.couple_id == couple_id)
        .values({User.couple_id: None, User.partner_id: None, User.updated_at: now})
        .execution_options(synchronize_session=False)
    )
    await db.delete(couple)
    await db.flush()
    return True


# ---------------------------------------------------------------------------
# Versioned sub-document writes
# ---------------------------------------------------------------------------


async def _read_versioned(
    db: AsyncSession, couple_id: str, column: InstrumentedAttribute[Any]
) -> tuple[dict[str, Any], int] | None:
    result = await db.execute(select(column, Couple.version).where(Couple.id == couple_id))
    row = result.one_or_none()
    if row is None:
        return None
    return dict(row[0] or {}), row[1]


async def apply_versioned(
    db: AsyncSession,
    couple_id: str,
    column: InstrumentedAttribute[Any],
    mutate: Mutator,
    result_key: str,
    max_retries: int | None = None,
) -> ServiceResult:
    """Compare-and-swap a couple sub-document, retrying on version conflicts.

    Commits on success. Returns ``ConcurrentUpdate`` once retries are exhausted.
    """
    attempts = max_retries or get_settings().couple_update_max_retries
    for attempt in range(1, attempts + 1):
        current = await _read_versioned(db, couple_id, column)
        if current is None:
            return ServiceResult.fail(ErrorCode.COUPLE_NOT_FOUND, "Couple not found")
        value, version = current

        outcome = mutate(copy.deepcopy(value))
        if isinstance(outcome, ServiceResult):
            return outcome

        result = await db.execute(
            update(Couple)
            .where(Couple.id == couple_id, Couple.version == version)
            .values({column: outcome, Couple.version: version + 1, Couple.updated_at: utcnow()})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            await db.commit()
            return ServiceResult.ok(**{result_key: outcome})

        await db.rollback()
        logger.info("Version conflict on couple %s (attempt %d/%d)", couple_id, attempt, attempts)

    logger.warning("Giving up on couple %s after %d conflicting attempts", couple_id, attempts)
    return ServiceResult.fail(ErrorCode.CONCURRENT_UPDATE, "The couple was updated concurrently, try again")


# ---------------------------------------------------------------------------
# Love zone
# ---------------------------------------------------------------------------


async def _update_love_zone(
    db: AsyncSession, couple_id: str, mutate: Mutator, redis: Any | None
) -> ServiceResult:
    result = await apply_versioned(db, couple_id, Couple.love_zone, mutate, "loveZone")
    if result.success:
        await publish_couple_change(redis, couple_id, Feed.COUPLE)
    return result


@guarded("get_love_zone")
async def get_love_zone(db: AsyncSession, couple_id: str) -> ServiceResult:
    couple = await get_couple_row(db, couple_id)
    if couple is None:
        return ServiceResult.fail(ErrorCode.COUPLE_NOT_FOUND, "Couple not found")
    return ServiceResult.ok(loveZone=couple.love_zone)


@guarded("unlock_love_zone_item")
async def unlock_item(
    db: AsyncSession, couple_id: str, item: dict[str, Any], redis: Any | None = None
) -> ServiceResult:
    """Add an item to the unlocked list (no-op if already unlocked)."""
    if not item.get("id"):
        return ServiceResult.fail(ErrorCode.INVALID_FIELD, "Item id is required")

    def mutate(zone: dict[str, Any]) -> dict[str, Any]:
        unlocked = zone.setdefault("unlockedItems", [])
        if all(existing.get("id") != item["id"] for existing in unlocked):
            unlocked.append(item)
        return zone

    return await _update_love_zone(db, couple_id, mutate, redis)


@guarded("place_love_zone_item")
async def place_item(
    db: AsyncSession,
    couple_id: str,
    item: dict[str, Any],
    position: dict[str, Any],
    redis: Any | None = None,
) -> ServiceResult:
    if not item.get("id"):
        return ServiceResult.fail(ErrorCode.INVALID_FIELD, "Item id is required")

    def mutate(zone: dict[str, Any]) -> dict[str, Any]:
        zone.setdefault("placedItems", []).append({**item, "position": position})
        return zone

    return await _update_love_zone(db, couple_id, mutate, redis)


@guarded("remove_love_zone_item")
async def remove_item(
    db: AsyncSession, couple_id: str, item_id: str, redis: Any | None = None
) -> ServiceResult:
    def mutate(zone: dict[str, Any]) -> dict[str, Any]:
        zone["placedItems"] = [i for i in zone.get("placedItems", []) if i.get("id") != item_id]
        return zone

    return await _update_love_zone(db, couple_id, mutate, redis)


@guarded("level_up_love_zone")
async def level_up(db: AsyncSession, couple_id: str, redis: Any | None = None) -> ServiceResult:
    def mutate(zone: dict[str, Any]) -> dict[str, Any]:
        zone["level"] = zone.get("level", 1) + 1
        return zone

    return await _update_love_zone(db, couple_id, mutate, redis)
