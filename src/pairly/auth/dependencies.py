"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.auth.jwt import verify_token
from pairly.database import get_session
from pairly.db.models import User
from pairly.profiles.service import get_user

_bearer = HTTPBearer()


async def get_current_uid(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
) -> str:
    """Verify the bearer JWT and return the caller's uid. Raises 401 on failure."""
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    return str(payload["sub"])


async def get_current_profile(
    uid: str = Depends(get_current_uid),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Load the caller's profile. Raises 401 if the profile was never created."""
    user = await get_user(db, uid)
    if user is None:
        raise HTTPException(status_code=401, detail="Profile not found")
    return user


async def get_current_couple_id(user: User = Depends(get_current_profile)) -> str:
    """The caller's couple id. Raises 404 when the caller is not paired."""
    if not user.couple_id:
        raise HTTPException(status_code=404, detail="You are not connected to a partner")
    return user.couple_id
