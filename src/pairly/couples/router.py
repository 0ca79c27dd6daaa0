"""Couple router: pairing, couple document and love zone endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.auth.dependencies import get_current_couple_id, get_current_profile
from pairly.couples import couple_service, pairing_service
from pairly.couples.schemas import ConnectRequest, LoveZoneItemRequest, PlaceItemRequest, UpdateCoupleRequest
from pairly.database import get_session
from pairly.db.models import User
from pairly.redis_client import get_optional_redis
from pairly.responses import result_response

router = APIRouter(prefix="/api/v1/couples", tags=["Couples"])


# ---------------------------------------------------------------------------
# Pairing
# ---------------------------------------------------------------------------


@router.post("/connect")
async def connect(
    body: ConnectRequest,
    user: User = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Connect with the owner of an invite code."""
    result = await pairing_service.connect_with_partner(db, user.uid, body.invite_code, redis=get_optional_redis())
    return result_response(result, success_status=201)


@router.delete("/me")
async def disconnect(
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Disconnect from the partner."""
    return result_response(await pairing_service.disconnect_couple(db, couple_id, redis=get_optional_redis()))


# ---------------------------------------------------------------------------
# Couple document
# ---------------------------------------------------------------------------


@router.get("/me")
async def get_my_couple(
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await couple_service.get_couple(db, couple_id))


@router.patch("/me")
async def update_my_couple(
    body: UpdateCoupleRequest,
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Update couple name and/or anniversary."""
    result = await couple_service.update_couple(
        db,
        couple_id,
        couple_name=body.couple_name,
        anniversary=body.anniversary,
        redis=get_optional_redis(),
    )
    return result_response(result)


@router.get("/me/days")
async def get_days_together(
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await couple_service.get_days_together(db, couple_id))


# ---------------------------------------------------------------------------
# Love zone
# ---------------------------------------------------------------------------


@router.get("/me/love-zone")
async def get_love_zone(
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await couple_service.get_love_zone(db, couple_id))


@router.post("/me/love-zone/unlock")
async def unlock_item(
    body: LoveZoneItemRequest,
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await couple_service.unlock_item(db, couple_id, body.item, redis=get_optional_redis()))


@router.post("/me/love-zone/place")
async def place_item(
    body: PlaceItemRequest,
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    result = await couple_service.place_item(db, couple_id, body.item, body.position, redis=get_optional_redis())
    return result_response(result)


@router.delete("/me/love-zone/items/{item_id}")
async def remove_item(
    item_id: str,
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await couple_service.remove_item(db, couple_id, item_id, redis=get_optional_redis()))


@router.post("/me/love-zone/level-up")
async def level_up(
    couple_id: str = Depends(get_current_couple_id),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    return result_response(await couple_service.level_up(db, couple_id, redis=get_optional_redis()))
