"""Profile router: /api/v1/profiles/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.auth.dependencies import get_current_profile, get_current_uid
from pairly.database import get_session
from pairly.db.models import User
from pairly.profiles import ledger, service
from pairly.profiles.schemas import AdjustHeartsRequest, CreateProfileRequest, UpdateProfileRequest
from pairly.redis_client import get_optional_redis
from pairly.responses import result_response
from pairly.results import ServiceResult

router = APIRouter(prefix="/api/v1/profiles", tags=["Profiles"])


@router.post("")
async def create_my_profile(
    body: CreateProfileRequest,
    uid: str = Depends(get_current_uid),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Create the caller's profile (idempotent)."""
    result = await service.create_profile(
        db,
        uid,
        email=body.email,
        display_name=body.display_name,
        photo_url=body.photo_url,
        redis=get_optional_redis(),
    )
    return result_response(result, success_status=201 if result.get("created") else 200)


@router.get("/me")
async def get_my_profile(user: User = Depends(get_current_profile)) -> JSONResponse:
    """Get own profile."""
    return result_response(ServiceResult.ok(profile=user.to_document()))


@router.patch("/me")
async def update_my_profile(
    body: UpdateProfileRequest,
    user: User = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Merge-patch own profile."""
    return result_response(await service.update_profile(db, user.uid, body.to_fields()))


@router.delete("/me")
async def delete_my_account(
    user: User = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Delete own account, disconnecting from the partner first."""
    return result_response(await service.delete_account(db, user.uid, redis=get_optional_redis()))


@router.post("/me/hearts")
async def adjust_my_hearts(
    body: AdjustHeartsRequest,
    user: User = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Spend from own hearts balance; the result is clamped at zero."""
    return result_response(await ledger.adjust_hearts(db, user.uid, body.delta))


@router.get("/invite/{code}")
async def lookup_invite_code(
    code: str,
    _uid: str = Depends(get_current_uid),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Preview who owns an invite code before connecting."""
    profile = await service.find_by_invite_code(db, code)
    if profile is None:
        return result_response(ServiceResult.ok(profile=None))
    return result_response(
        ServiceResult.ok(
            profile={
                "id": profile["id"],
                "displayName": profile["displayName"],
                "photoURL": profile["photoURL"],
                "isConnected": profile["coupleId"] is not None,
            }
        )
    )
