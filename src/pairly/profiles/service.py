"""Profile store business logic.

Profiles are keyed by the auth platform's opaque uid. The invite code is assigned
once at creation and never changes; pairing fields and the hearts balance are
managed by the pairing protocol and the ledger, never by the merge-patch.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.config import get_settings
from pairly.couples.couple_service import dissolve_couple
from pairly.db.models import DEFAULT_USER_SETTINGS, User
from pairly.notifications.kinds import Welcome
from pairly.notifications.service import push_notifications, record_notification
from pairly.profiles import invite_codes
from pairly.realtime.channels import Feed
from pairly.realtime.publisher import publish_couple_change
from pairly.results import ErrorCode, ServiceResult, guarded
from pairly.timeutils import utcnow

logger = logging.getLogger(__name__)

# Document field -> model attribute for fields a user may patch
PATCHABLE_FIELDS = {
    "displayName": "display_name",
    "photoURL": "photo_url",
    "isPremium": "is_premium",
    "premiumExpiry": "premium_expiry",
    "settings": "settings",
    "welcomeNotificationShown": "welcome_notification_shown",
    "expoPushToken": "expo_push_token",
}
MANAGED_FIELDS = frozenset({"uid", "id", "email", "inviteCode", "coupleId", "partnerId", "hearts"})


async def get_user(db: AsyncSession, user_id: str) -> User | None:
    """Load a user row, refreshing any copy already in the session."""
    result = await db.execute(
        select(User).where(User.uid == user_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_profile(db: AsyncSession, user_id: str) -> dict[str, Any] | None:
    """Point lookup; None when the profile does not exist."""
    user = await get_user(db, user_id)
    return user.to_document() if user else None


async def get_display_name(db: AsyncSession, user_id: str) -> str | None:
    result = await db.execute(select(User.display_name).where(User.uid == user_id))
    return result.scalar_one_or_none()


async def find_user_by_invite_code(db: AsyncSession, code: str) -> User | None:
    normalized = invite_codes.normalize_invite_code(code)
    if not normalized:
        return None
    result = await db.execute(
        select(User)
        .where(User.invite_code == normalized)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_by_invite_code(db: AsyncSession, code: str) -> dict[str, Any] | None:
    """Case-insensitive invite code lookup; None when nothing matches."""
    user = await find_user_by_invite_code(db, code)
    return user.to_document() if user else None


@guarded("create_profile")
async def create_profile(
    db: AsyncSession,
    user_id: str,
    email: str | None,
    display_name: str | None = None,
    photo_url: str | None = None,
    redis: Any | None = None,
) -> ServiceResult:
    """Create a profile with a fresh invite code and the starting hearts grant.

    Creating a profile that already exists returns the stored one unchanged.
    """
    existing = await get_user(db, user_id)
    if existing is not None:
        return ServiceResult.ok(profile=existing.to_document(), created=False)

    settings = get_settings()
    code = await invite_codes.generate_unique_invite_code(db, settings.invite_code_max_attempts)
    now = utcnow()
    user = User(
        uid=user_id,
        email=email,
        display_name=display_name or "User",
        photo_url=photo_url,
        invite_code=code,
        couple_id=None,
        partner_id=None,
        is_premium=False,
        premium_expiry=None,
        hearts=settings.starting_hearts,
        settings=dict(DEFAULT_USER_SETTINGS),
        welcome_notification_shown=False,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    await db.flush()
    welcome = await record_notification(db, user_id, Welcome(display_name=user.display_name, invite_code=code))
    await db.commit()

    logger.info("Profile created for %s with invite code %s", user_id, code)
    await push_notifications(redis, [welcome])
    return ServiceResult.ok(profile=user.to_document(), created=True)


@guarded("update_profile")
async def update_profile(db: AsyncSession, user_id: str, fields: dict[str, Any]) -> ServiceResult:
    """Merge-patch profile fields; always refreshes ``updatedAt``.

    ``settings`` is merged key by key into the stored settings.
    """
    managed = sorted(MANAGED_FIELDS.intersection(fields))
    if managed:
        return ServiceResult.fail(ErrorCode.INVALID_FIELD, f"Cannot update managed fields: {', '.join(managed)}")
    unknown = sorted(set(fields) - set(PATCHABLE_FIELDS))
    if unknown:
        return ServiceResult.fail(ErrorCode.INVALID_FIELD, f"Unknown profile fields: {', '.join(unknown)}")

    user = await get_user(db, user_id)
    if user is None:
        return ServiceResult.fail(ErrorCode.USER_NOT_FOUND, "User not found")

    for key, value in fields.items():
        if key == "settings":
            merged = dict(user.settings or {})
            merged.update(value or {})
            user.settings = merged
        else:
            setattr(user, PATCHABLE_FIELDS[key], value)
    user.updated_at = utcnow()
    await db.commit()
    return ServiceResult.ok(profile=user.to_document())


async def update_display_name(db: AsyncSession, user_id: str, display_name: str) -> ServiceResult:
    return await update_profile(db, user_id, {"displayName": display_name})


async def update_premium_status(
    db: AsyncSession,
    user_id: str,
    is_premium: bool,
    expiry: datetime | None = None,
) -> ServiceResult:
    return await update_profile(db, user_id, {"isPremium": is_premium, "premiumExpiry": expiry})


async def update_user_settings(db: AsyncSession, user_id: str, settings: dict[str, Any]) -> ServiceResult:
    return await update_profile(db, user_id, {"settings": settings})


async def update_expo_push_token(db: AsyncSession, user_id: str, token: str | None) -> ServiceResult:
    return await update_profile(db, user_id, {"expoPushToken": token})


@guarded("delete_account")
async def delete_account(db: AsyncSession, user_id: str, redis: Any | None = None) -> ServiceResult:
    """Delete a profile, dissolving its couple in the same transaction."""
    user = await get_user(db, user_id)
    if user is None:
        return ServiceResult.fail(ErrorCode.USER_NOT_FOUND, "User not found")

    couple_id = user.couple_id
    if couple_id:
        await dissolve_couple(db, couple_id)
    await db.delete(user)
    await db.commit()

    logger.info("Account %s deleted (couple=%s)", user_id, couple_id)
    await publish_couple_change(redis, couple_id, Feed.COUPLE)
    return ServiceResult.ok()
