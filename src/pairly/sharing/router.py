"""Shared-resource router: notes, moods, gifts, special dates and pet.

Every route acts on the caller's own couple; the partner is resolved from the
caller's profile.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.auth.dependencies import get_current_couple_id, get_current_profile
from pairly.database import get_session
from pairly.db.models import User
from pairly.redis_client import get_optional_redis
from pairly.responses import result_response
from pairly.results import ServiceResult
from pairly.sharing import dates_service, gift_service, mood_service, notes_service, pet_service
from pairly.sharing.schemas import (
    AddDateRequest,
    AnniversaryRequest,
    LikeNoteRequest,
    SendGiftRequest,
    SendNoteRequest,
    SetMoodRequest,
    UpdateDateRequest,
    UpdatePetRequest,
)

router = APIRouter(prefix="/api/v1", tags=["Sharing"])


def _partner_id(user: User) -> str:
    if not user.partner_id:
        raise HTTPException(status_code=404, detail="You are not connected to a partner")
    return user.partner_id


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


@router.post("/notes")
async def send_note(
    body: SendNoteRequest,
    user: User = Depends(get_current_profile),
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Send a note to the partner."""
    result = await notes_service.send_note(
        db,
        couple_id,
        user.uid,
        _partner_id(user),
        body.type,
        body.content,
        doodle_paths=body.doodle_paths,
        redis=get_optional_redis(),
    )
    return result_response(result, success_status=201)


@router.get("/notes")
async def list_notes(
    box: str = Query("all", pattern="^(all|sent|received|unread)$"),
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_profile),
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """List notes, newest first."""
    if box == "sent":
        result = await notes_service.get_sent_notes(db, couple_id, user.uid, limit=limit)
    elif box == "received":
        result = await notes_service.get_received_notes(db, couple_id, user.uid, limit=limit)
    elif box == "unread":
        result = await notes_service.get_unread_notes(db, couple_id, user.uid)
    else:
        result = await notes_service.get_notes(db, couple_id, limit=limit)
    return result_response(result)


@router.get("/notes/unread-count")
async def unread_notes_count(
    user: User = Depends(get_current_profile),
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await notes_service.get_unread_notes_count(db, couple_id, user.uid))


@router.post("/notes/read-all")
async def mark_all_notes_read(
    user: User = Depends(get_current_profile),
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    result = await notes_service.mark_all_notes_as_read(db, couple_id, user.uid, redis=get_optional_redis())
    return result_response(result)


@router.post("/notes/{note_id}/read")
async def mark_note_read(
    note_id: str,
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await notes_service.mark_note_as_read(db, couple_id, note_id, redis=get_optional_redis()))


@router.post("/notes/{note_id}/like")
async def like_note(
    note_id: str,
    body: LikeNoteRequest,
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    result = await notes_service.toggle_note_like(db, couple_id, note_id, body.is_liked, redis=get_optional_redis())
    return result_response(result)


@router.delete("/notes/{note_id}")
async def delete_note(
    note_id: str,
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await notes_service.delete_note(db, couple_id, note_id, redis=get_optional_redis()))


# ---------------------------------------------------------------------------
# Moods
# ---------------------------------------------------------------------------


@router.post("/moods")
async def set_mood(
    body: SetMoodRequest,
    user: User = Depends(get_current_profile),
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    result = await mood_service.set_mood(
        db,
        couple_id,
        user.uid,
        body.mood_id,
        body.emoji,
        body.label,
        note=body.note,
        redis=get_optional_redis(),
    )
    return result_response(result, success_status=201)


@router.get("/moods/current")
async def current_moods(
    user: User = Depends(get_current_profile),
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """The caller's and the partner's current moods."""
    return result_response(await mood_service.get_both_moods(db, couple_id, user.uid, _partner_id(user)))


@router.get("/moods/history")
async def mood_history(
    scope: str = Query("me", pattern="^(me|couple)$"),
    limit: int | None = Query(None, ge=1, le=200),
    user: User = Depends(get_current_profile),
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    if scope == "couple":
        result = await mood_service.get_couple_mood_history(
            db, couple_id, limit=limit or mood_service.COUPLE_HISTORY_LIMIT
        )
    else:
        result = await mood_service.get_mood_history(
            db, couple_id, user.uid, limit=limit or mood_service.HISTORY_LIMIT
        )
    return result_response(result)


@router.get("/moods/stats")
async def mood_stats(
    user: User = Depends(get_current_profile),
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    stats = await mood_service.get_mood_stats(db, couple_id, user.uid)
    if not stats.success:
        return result_response(stats)
    today = await mood_service.get_today_mood_count(db, couple_id, user.uid)
    return result_response(ServiceResult.ok(stats=stats["stats"], todayCount=today.get("count", 0)))


# ---------------------------------------------------------------------------
# Gifts
# ---------------------------------------------------------------------------


@router.post("/gifts")
async def send_gift(
    body: SendGiftRequest,
    user: User = Depends(get_current_profile),
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Send a gift to the partner, paid in hearts."""
    result = await gift_service.send_gift(
        db,
        couple_id,
        user.uid,
        _partner_id(user),
        body.gift_id,
        body.emoji,
        body.label,
        body.hearts,
        message=body.message,
        redis=get_optional_redis(),
    )
    return result_response(result, success_status=201)


@router.get("/gifts")
async def list_gifts(
    box: str = Query("all", pattern="^(all|sent|received)$"),
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_profile),
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    if box == "sent":
        result = await gift_service.get_sent_gifts(db, couple_id, user.uid, limit=limit)
    elif box == "received":
        result = await gift_service.get_received_gifts(db, couple_id, user.uid, limit=limit)
    else:
        result = await gift_service.get_gifts(db, couple_id, limit=limit)
    return result_response(result)


@router.get("/gifts/stats")
async def gift_stats(
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await gift_service.get_gift_stats(db, couple_id))


# ---------------------------------------------------------------------------
# Special dates
# ---------------------------------------------------------------------------


@router.get("/dates")
async def list_dates(
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Anniversary plus custom dates with countdowns."""
    anniversary = await dates_service.get_anniversary_date(db, couple_id)
    dates = await dates_service.get_important_dates(db, couple_id)
    if not dates.success:
        return result_response(dates)
    entries = [{**d, "daysUntil": dates_service.get_days_until(d["date"])} for d in dates["dates"]]
    anniversary_date = anniversary.get("date")
    return result_response(
        ServiceResult.ok(
            anniversary=anniversary_date,
            yearsTogether=dates_service.get_years_together(anniversary_date) if anniversary_date else None,
            daysUntilAnniversary=dates_service.get_days_until(anniversary_date) if anniversary_date else None,
            dates=entries,
        )
    )


@router.put("/dates/anniversary")
async def save_anniversary(
    body: AnniversaryRequest,
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(
        await dates_service.save_anniversary_date(db, couple_id, body.date, redis=get_optional_redis())
    )


@router.post("/dates")
async def add_date(
    body: AddDateRequest,
    user: User = Depends(get_current_profile),
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    result = await dates_service.add_important_date(
        db,
        couple_id,
        body.title,
        body.date,
        note=body.note,
        created_by=user.uid,
        redis=get_optional_redis(),
    )
    return result_response(result, success_status=201)


@router.patch("/dates/{date_id}")
async def update_date(
    date_id: str,
    body: UpdateDateRequest,
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    result = await dates_service.update_important_date(
        db, couple_id, date_id, body.to_fields(), redis=get_optional_redis()
    )
    return result_response(result)


@router.delete("/dates/{date_id}")
async def delete_date(
    date_id: str,
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(
        await dates_service.delete_important_date(db, couple_id, date_id, redis=get_optional_redis())
    )


# ---------------------------------------------------------------------------
# Pet
# ---------------------------------------------------------------------------


@router.get("/pet")
async def get_pet(
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await pet_service.get_pet(db, couple_id))


@router.patch("/pet")
async def update_pet(
    body: UpdatePetRequest,
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await pet_service.update_pet(db, couple_id, body.to_fields(), redis=get_optional_redis()))


@router.post("/pet/{action}")
async def pet_action(
    action: str,
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Feed, play with, bathe, or put the pet to sleep."""
    return result_response(await pet_service.perform_action(db, couple_id, action, redis=get_optional_redis()))
