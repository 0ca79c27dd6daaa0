"""Notification router: /api/v1/notifications/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.auth.dependencies import get_current_uid
from pairly.database import get_session
from pairly.notifications import service
from pairly.responses import result_response

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


@router.get("")
async def list_notifications(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    uid: str = Depends(get_current_uid),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """List own notifications, most recent first."""
    return result_response(await service.get_notifications(db, uid, page=page, per_page=per_page))


@router.get("/unread-count")
async def unread_count(
    uid: str = Depends(get_current_uid),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await service.get_unread_count(db, uid))


@router.post("/read-all")
async def mark_all_read(
    uid: str = Depends(get_current_uid),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await service.mark_all_as_read(db, uid))


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    uid: str = Depends(get_current_uid),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await service.mark_as_read(db, uid, notification_id))
