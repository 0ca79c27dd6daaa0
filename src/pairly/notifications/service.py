"""Notification creation and delivery service.

Notifications are:
1. Rendered from a typed event (see ``kinds.py``)
2. Persisted in the same transaction as the event that caused them
3. Pushed to the user via WebSocket after commit (Redis pub/sub -> WS bridge)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.db.models import Notification, new_id
from pairly.notifications.kinds import NotificationEvent, render
from pairly.realtime.publisher import publish_user_event
from pairly.results import ErrorCode, ServiceResult, guarded
from pairly.timeutils import utcnow

logger = logging.getLogger(__name__)


async def record_notification(db: AsyncSession, user_id: str, event: NotificationEvent) -> Notification:
    """Add a notification record to the current transaction. The caller commits."""
    rendered = render(event)
    notification = Notification(
        id=new_id(),
        user_id=user_id,
        type=rendered.kind.value,
        title=rendered.title,
        message=rendered.body,
        full_message=rendered.full_message,
        related_id=rendered.related_id,
        read=False,
        created_at=utcnow(),
    )
    db.add(notification)
    await db.flush()
    return notification


async def push_notifications(redis: Any | None, notifications: Iterable[Notification]) -> None:
    """Deliver committed notifications to connected clients."""
    for notification in notifications:
        await publish_user_event(redis, notification.user_id, "notification", notification.to_document())


@guarded("get_notifications")
async def get_notifications(
    db: AsyncSession,
    user_id: str,
    page: int = 1,
    per_page: int = 20,
) -> ServiceResult:
    """Get user's notifications (paginated, most recent first)."""
    offset = (page - 1) * per_page

    total_result = await db.execute(
        select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .offset(offset)
        .limit(per_page)
        .execution_options(populate_existing=True)
    )
    notifications = [n.to_document() for n in result.scalars().all()]
    return ServiceResult.ok(notifications=notifications, total=total, page=page, perPage=per_page)


@guarded("mark_notification_as_read")
async def mark_as_read(db: AsyncSession, user_id: str, notification_id: str) -> ServiceResult:
    """Mark a single notification as read."""
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values({Notification.read: True})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        return ServiceResult.fail(ErrorCode.NOTIFICATION_NOT_FOUND, "Notification not found")
    await db.commit()
    return ServiceResult.ok()


@guarded("mark_all_notifications_as_read")
async def mark_all_as_read(db: AsyncSession, user_id: str) -> ServiceResult:
    """Mark all unread notifications as read."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values({Notification.read: True})
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return ServiceResult.ok(count=result.rowcount)


@guarded("get_unread_notification_count")
async def get_unread_count(db: AsyncSession, user_id: str) -> ServiceResult:
    """Get count of unread notifications."""
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
    )
    return ServiceResult.ok(count=result.scalar_one())
