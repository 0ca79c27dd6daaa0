"""Love notes and doodles exchanged inside a couple.

Notes are append-only; ``isRead`` and ``isLiked`` are the only fields that change
after creation. Every read is scoped by ``coupleId`` and ordered newest first.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.couples.couple_service import require_members
from pairly.db.models import Note, new_id
from pairly.notifications.kinds import NoteReceived
from pairly.notifications.service import push_notifications, record_notification
from pairly.profiles.service import get_display_name
from pairly.realtime.channels import Feed
from pairly.realtime.publisher import publish_couple_change
from pairly.results import ErrorCode, ServiceResult, guarded
from pairly.timeutils import utcnow

logger = logging.getLogger(__name__)

NOTE_TYPES = frozenset({"text", "doodle"})
DEFAULT_LIMIT = 50


@guarded("send_note")
async def send_note(
    db: AsyncSession,
    couple_id: str,
    sender_id: str,
    receiver_id: str,
    note_type: str,
    content: str,
    doodle_paths: list[Any] | None = None,
    redis: Any | None = None,
) -> ServiceResult:
    """Append a note from one partner to the other and notify the receiver."""
    if note_type not in NOTE_TYPES:
        return ServiceResult.fail(ErrorCode.INVALID_FIELD, f"Invalid note type: {note_type}", noteId=None)

    couple = await require_members(db, couple_id, sender_id, receiver_id)
    if isinstance(couple, ServiceResult):
        return couple
    if sender_id == receiver_id:
        return ServiceResult.fail(ErrorCode.INVALID_FIELD, "Cannot send a note to yourself", noteId=None)

    note = Note(
        id=new_id(),
        couple_id=couple_id,
        sender_id=sender_id,
        receiver_id=receiver_id,
        type=note_type,
        content=content or "",
        doodle_paths=doodle_paths,
        is_read=False,
        is_liked=False,
        created_at=utcnow(),
    )
    db.add(note)
    await db.flush()

    sender_name = await get_display_name(db, sender_id)
    notification = await record_notification(
        db,
        receiver_id,
        NoteReceived(sender_name=sender_name, note_id=note.id, note_type=note_type, content=note.content),
    )
    await db.commit()

    await publish_couple_change(redis, couple_id, Feed.NOTES)
    await push_notifications(redis, [notification])
    return ServiceResult.ok(noteId=note.id, note=note.to_document())


async def _list_notes(db: AsyncSession, couple_id: str, *criteria: Any, limit: int | None = DEFAULT_LIMIT) -> list[dict[str, Any]]:
    stmt = (
        select(Note)
        .where(Note.couple_id == couple_id, *criteria)
        .order_by(Note.created_at.desc())
        .execution_options(populate_existing=True)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return [n.to_document() for n in result.scalars().all()]


@guarded("get_notes")
async def get_notes(db: AsyncSession, couple_id: str, limit: int = DEFAULT_LIMIT) -> ServiceResult:
    return ServiceResult.ok(notes=await _list_notes(db, couple_id, limit=limit))


@guarded("get_sent_notes")
async def get_sent_notes(db: AsyncSession, couple_id: str, user_id: str, limit: int = DEFAULT_LIMIT) -> ServiceResult:
    return ServiceResult.ok(notes=await _list_notes(db, couple_id, Note.sender_id == user_id, limit=limit))


@guarded("get_received_notes")
async def get_received_notes(
    db: AsyncSession, couple_id: str, user_id: str, limit: int = DEFAULT_LIMIT
) -> ServiceResult:
    return ServiceResult.ok(notes=await _list_notes(db, couple_id, Note.receiver_id == user_id, limit=limit))


@guarded("get_unread_notes")
async def get_unread_notes(db: AsyncSession, couple_id: str, user_id: str) -> ServiceResult:
    """Every unread note addressed to ``user_id``."""
    notes = await _list_notes(db, couple_id, Note.receiver_id == user_id, Note.is_read.is_(False), limit=None)
    return ServiceResult.ok(notes=notes)


@guarded("get_unread_notes_count")
async def get_unread_notes_count(db: AsyncSession, couple_id: str, user_id: str) -> ServiceResult:
    result = await db.execute(
        select(func.count())
        .select_from(Note)
        .where(Note.couple_id == couple_id, Note.receiver_id == user_id, Note.is_read.is_(False))
    )
    return ServiceResult.ok(count=result.scalar_one())


async def _set_note_flag(
    db: AsyncSession, couple_id: str, note_id: str, values: dict[Any, Any], redis: Any | None
) -> ServiceResult:
    result = await db.execute(
        update(Note)
        .where(Note.id == note_id, Note.couple_id == couple_id)
        .values(values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        return ServiceResult.fail(ErrorCode.NOTE_NOT_FOUND, "Note not found")
    await db.commit()
    await publish_couple_change(redis, couple_id, Feed.NOTES)
    return ServiceResult.ok()


@guarded("mark_note_as_read")
async def mark_note_as_read(db: AsyncSession, couple_id: str, note_id: str, redis: Any | None = None) -> ServiceResult:
    return await _set_note_flag(db, couple_id, note_id, {Note.is_read: True}, redis)


@guarded("toggle_note_like")
async def toggle_note_like(
    db: AsyncSession, couple_id: str, note_id: str, is_liked: bool, redis: Any | None = None
) -> ServiceResult:
    return await _set_note_flag(db, couple_id, note_id, {Note.is_liked: is_liked}, redis)


@guarded("mark_all_notes_as_read")
async def mark_all_notes_as_read(
    db: AsyncSession, couple_id: str, user_id: str, redis: Any | None = None
) -> ServiceResult:
    """Mark every unread note addressed to ``user_id`` as read in one statement."""
    result = await db.execute(
        update(Note)
        .where(Note.couple_id == couple_id, Note.receiver_id == user_id, Note.is_read.is_(False))
        .values({Note.is_read: True})
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount:
        await publish_couple_change(redis, couple_id, Feed.NOTES)
    return ServiceResult.ok(count=result.rowcount)


@guarded("delete_note")
async def delete_note(db: AsyncSession, couple_id: str, note_id: str, redis: Any | None = None) -> ServiceResult:
    result = await db.execute(
        delete(Note)
        .where(Note.id == note_id, Note.couple_id == couple_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        return ServiceResult.fail(ErrorCode.NOTE_NOT_FOUND, "Note not found")
    await db.commit()
    await publish_couple_change(redis, couple_id, Feed.NOTES)
    return ServiceResult.ok()
