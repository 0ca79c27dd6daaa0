"""Mood check-ins.

Moods are never updated in place: each check-in appends a row and a user's
current mood is their most recent row.
"""

from __future__ import annotations

import logging
from datetime import datetime, time
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.couples.couple_service import require_members
from pairly.db.models import Mood, new_id
from pairly.notifications.kinds import MoodChanged
from pairly.notifications.service import push_notifications, record_notification
from pairly.profiles.service import get_display_name
from pairly.realtime.channels import Feed
from pairly.realtime.publisher import publish_couple_change
from pairly.results import ServiceResult, guarded
from pairly.timeutils import utcnow

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 30
COUPLE_HISTORY_LIMIT = 50
STATS_WINDOW = 100


@guarded("set_mood")
async def set_mood(
    db: AsyncSession,
    couple_id: str,
    user_id: str,
    mood_id: str,
    emoji: str,
    label: str,
    note: str | None = None,
    redis: Any | None = None,
) -> ServiceResult:
    """Record a check-in and notify the partner."""
    couple = await require_members(db, couple_id, user_id)
    if isinstance(couple, ServiceResult):
        return couple

    mood = Mood(
        id=new_id(),
        couple_id=couple_id,
        user_id=user_id,
        mood_id=mood_id,
        emoji=emoji,
        label=label,
        note=note or None,
        created_at=utcnow(),
    )
    db.add(mood)
    await db.flush()

    notifications = []
    partner_id = couple.partner_of(user_id)
    if partner_id:
        user_name = await get_display_name(db, user_id)
        notifications.append(
            await record_notification(
                db,
                partner_id,
                MoodChanged(user_name=user_name, user_id=user_id, emoji=emoji, label=label, note=mood.note),
            )
        )
    await db.commit()

    await publish_couple_change(redis, couple_id, Feed.MOODS)
    await push_notifications(redis, notifications)
    return ServiceResult.ok(mood=mood.to_document())


async def _user_moods(db: AsyncSession, couple_id: str, user_id: str, limit: int) -> list[Mood]:
    result = await db.execute(
        select(Mood)
        .where(Mood.couple_id == couple_id, Mood.user_id == user_id)
        .order_by(Mood.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


@guarded("get_current_mood")
async def get_current_mood(db: AsyncSession, couple_id: str, user_id: str) -> ServiceResult:
    moods = await _user_moods(db, couple_id, user_id, 1)
    return ServiceResult.ok(mood=moods[0].to_document() if moods else None)


async def get_partner_mood(db: AsyncSession, couple_id: str, partner_id: str) -> ServiceResult:
    return await get_current_mood(db, couple_id, partner_id)


@guarded("get_both_moods")
async def get_both_moods(db: AsyncSession, couple_id: str, user_id: str, partner_id: str) -> ServiceResult:
    # Sequential: both lookups share one session
    mine = await _user_moods(db, couple_id, user_id, 1)
    theirs = await _user_moods(db, couple_id, partner_id, 1)
    return ServiceResult.ok(
        userMood=mine[0].to_document() if mine else None,
        partnerMood=theirs[0].to_document() if theirs else None,
    )


@guarded("get_mood_history")
async def get_mood_history(
    db: AsyncSession, couple_id: str, user_id: str, limit: int = HISTORY_LIMIT
) -> ServiceResult:
    moods = await _user_moods(db, couple_id, user_id, limit)
    return ServiceResult.ok(moods=[m.to_document() for m in moods])


@guarded("get_couple_mood_history")
async def get_couple_mood_history(db: AsyncSession, couple_id: str, limit: int = COUPLE_HISTORY_LIMIT) -> ServiceResult:
    result = await db.execute(
        select(Mood).where(Mood.couple_id == couple_id).order_by(Mood.created_at.desc()).limit(limit)
    )
    return ServiceResult.ok(moods=[m.to_document() for m in result.scalars().all()])


def summarize_moods(moods: list[dict[str, Any]]) -> dict[str, Any]:
    """Count check-ins per mood and pick the most frequent (first seen wins ties)."""
    mood_counts: dict[str, dict[str, Any]] = {}
    for mood in moods:
        entry = mood_counts.setdefault(
            mood["moodId"], {"count": 0, "emoji": mood["emoji"], "label": mood["label"]}
        )
        entry["count"] += 1

    most_frequent = None
    best = 0
    for mood_id, entry in mood_counts.items():
        if entry["count"] > best:
            best = entry["count"]
            most_frequent = {"moodId": mood_id, **entry}

    return {"totalCheckIns": len(moods), "moodCounts": mood_counts, "mostFrequentMood": most_frequent}


@guarded("get_mood_stats")
async def get_mood_stats(db: AsyncSession, couple_id: str, user_id: str) -> ServiceResult:
    moods = await _user_moods(db, couple_id, user_id, STATS_WINDOW)
    return ServiceResult.ok(stats=summarize_moods([m.to_document() for m in moods]))


@guarded("get_today_mood_count")
async def get_today_mood_count(
    db: AsyncSession, couple_id: str, user_id: str, now: datetime | None = None
) -> ServiceResult:
    """Check-ins since midnight UTC."""
    now = now or utcnow()
    start_of_day = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
    result = await db.execute(
        select(func.count())
        .select_from(Mood)
        .where(Mood.couple_id == couple_id, Mood.user_id == user_id, Mood.created_at >= start_of_day)
    )
    return ServiceResult.ok(count=result.scalar_one())
