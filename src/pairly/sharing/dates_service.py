"""Special dates: one anniversary per couple plus any number of custom dates.

The anniversary row has the deterministic id ``{coupleId}_anniversary`` so saving
it is an upsert. Countdown helpers work on calendar dates, never timestamps.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.couples.couple_service import require_members
from pairly.db.models import SpecialDate, new_id
from pairly.notifications.kinds import DatePlanned
from pairly.notifications.service import push_notifications, record_notification
from pairly.profiles.service import get_display_name
from pairly.realtime.channels import Feed
from pairly.realtime.publisher import publish_couple_change
from pairly.results import ErrorCode, ServiceResult, guarded
from pairly.timeutils import utcnow

logger = logging.getLogger(__name__)

ANNIVERSARY_TITLE = "Anniversary Date"
PATCHABLE_DATE_FIELDS = frozenset({"title", "date", "note"})


def anniversary_id(couple_id: str) -> str:
    return f"{couple_id}_anniversary"


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def _occurrence(month: int, day: int, year: int) -> date:
    """The month/day in ``year``; Feb 29 falls on Feb 28 outside leap years."""
    if month == 2 and day == 29 and not calendar.isleap(year):
        return date(year, 2, 28)
    return date(year, month, day)


def get_days_until(target: date | datetime, today: date | None = None) -> int:
    """Days until the next occurrence of ``target``'s month/day (0 if it is today)."""
    target = _as_date(target)
    today = today or utcnow().date()
    upcoming = _occurrence(target.month, target.day, today.year)
    if upcoming < today:
        upcoming = _occurrence(target.month, target.day, today.year + 1)
    return (upcoming - today).days


def get_years_together(target: date | datetime, today: date | None = None) -> int:
    """Whole years elapsed since ``target``, never negative."""
    target = _as_date(target)
    today = today or utcnow().date()
    years = today.year - target.year
    if (today.month, today.day) < (target.month, target.day):
        years -= 1
    return max(0, years)


async def _get_date_row(db: AsyncSession, couple_id: str, date_id: str) -> SpecialDate | None:
    result = await db.execute(
        select(SpecialDate)
        .where(SpecialDate.id == date_id, SpecialDate.couple_id == couple_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


@guarded("save_anniversary_date")
async def save_anniversary_date(
    db: AsyncSession, couple_id: str, anniversary: date | datetime, redis: Any | None = None
) -> ServiceResult:
    """Create or overwrite the couple's anniversary and mirror it on the couple."""
    couple = await require_members(db, couple_id)
    if isinstance(couple, ServiceResult):
        return couple

    anniversary = _as_date(anniversary)
    doc_id = anniversary_id(couple_id)
    for attempt in range(2):
        now = utcnow()
        row = await _get_date_row(db, couple_id, doc_id)
        if row is None:
            row = SpecialDate(
                id=doc_id,
                couple_id=couple_id,
                type="anniversary",
                title=ANNIVERSARY_TITLE,
                date=anniversary,
                note="",
                is_anniversary=True,
                created_by=None,
                created_at=now,
                updated_at=now,
            )
            db.add(row)
        else:
            row.date = anniversary
            row.updated_at = now
        couple.anniversary = anniversary
        couple.updated_at = now
        try:
            await db.commit()
            break
        except IntegrityError:
            # The partner inserted it first; retry as an update
            await db.rollback()
            if attempt:
                raise
            couple = await require_members(db, couple_id)
            if isinstance(couple, ServiceResult):
                return couple

    await publish_couple_change(redis, couple_id, Feed.SPECIAL_DATES, Feed.COUPLE)
    return ServiceResult.ok(anniversary=row.to_document())


@guarded("get_anniversary_date")
async def get_anniversary_date(db: AsyncSession, couple_id: str) -> ServiceResult:
    row = await _get_date_row(db, couple_id, anniversary_id(couple_id))
    return ServiceResult.ok(date=row.date if row else None)


@guarded("add_important_date")
async def add_important_date(
    db: AsyncSession,
    couple_id: str,
    title: str,
    when: date | datetime,
    note: str | None = None,
    created_by: str | None = None,
    redis: Any | None = None,
) -> ServiceResult:
    """Add a custom date. When ``created_by`` is given, the partner is notified."""
    members = (created_by,) if created_by else ()
    couple = await require_members(db, couple_id, *members)
    if isinstance(couple, ServiceResult):
        return couple
    if not title:
        return ServiceResult.fail(ErrorCode.INVALID_FIELD, "Title is required", id=None)

    now = utcnow()
    row = SpecialDate(
        id=new_id(),
        couple_id=couple_id,
        type="custom",
        title=title,
        date=_as_date(when),
        note=note or "",
        is_anniversary=False,
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    await db.flush()

    notifications = []
    partner_id = couple.partner_of(created_by) if created_by else None
    if partner_id:
        creator_name = await get_display_name(db, created_by)
        notifications.append(
            await record_notification(
                db,
                partner_id,
                DatePlanned(creator_name=creator_name, date_id=row.id, title=title, note=row.note),
            )
        )
    await db.commit()

    await publish_couple_change(redis, couple_id, Feed.SPECIAL_DATES)
    await push_notifications(redis, notifications)
    return ServiceResult.ok(id=row.id, date=row.to_document())


@guarded("update_important_date")
async def update_important_date(
    db: AsyncSession,
    couple_id: str,
    date_id: str,
    fields: dict[str, Any],
    redis: Any | None = None,
) -> ServiceResult:
    invalid = sorted(set(fields) - PATCHABLE_DATE_FIELDS)
    if invalid:
        return ServiceResult.fail(ErrorCode.INVALID_FIELD, f"Cannot update date fields: {', '.join(invalid)}")

    row = await _get_date_row(db, couple_id, date_id)
    if row is None or row.is_anniversary:
        return ServiceResult.fail(ErrorCode.DATE_NOT_FOUND, "Date not found")

    if "title" in fields:
        row.title = fields["title"]
    if "date" in fields:
        row.date = _as_date(fields["date"])
    if "note" in fields:
        row.note = fields["note"] or ""
    row.updated_at = utcnow()
    await db.commit()

    await publish_couple_change(redis, couple_id, Feed.SPECIAL_DATES)
    return ServiceResult.ok(date=row.to_document())


@guarded("delete_important_date")
async def delete_important_date(
    db: AsyncSession, couple_id: str, date_id: str, redis: Any | None = None
) -> ServiceResult:
    row = await _get_date_row(db, couple_id, date_id)
    if row is None:
        return ServiceResult.fail(ErrorCode.DATE_NOT_FOUND, "Date not found")
    await db.delete(row)
    await db.commit()

    await publish_couple_change(redis, couple_id, Feed.SPECIAL_DATES)
    return ServiceResult.ok()


async def list_important_dates(db: AsyncSession, couple_id: str) -> list[dict[str, Any]]:
    """Custom dates of a couple, earliest first."""
    result = await db.execute(
        select(SpecialDate)
        .where(SpecialDate.couple_id == couple_id, SpecialDate.is_anniversary.is_(False))
        .order_by(SpecialDate.date.asc())
        .execution_options(populate_existing=True)
    )
    return [row.to_document() for row in result.scalars().all()]


@guarded("get_important_dates")
async def get_important_dates(db: AsyncSession, couple_id: str) -> ServiceResult:
    return ServiceResult.ok(dates=await list_important_dates(db, couple_id))
