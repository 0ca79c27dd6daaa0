"""Pairing protocol: turn two unpaired profiles into one couple, or fail cleanly.

The couple row and both profile cross-links are written in one transaction.
Each cross-link is a conditional UPDATE (``coupleId IS NULL``), so a concurrent
pairing that claimed either profile first makes this transaction roll back
instead of leaving a couple that only one profile references.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.couples.couple_service import dissolve_couple
from pairly.db.models import Couple, User, new_id
from pairly.notifications.kinds import PartnerConnected
from pairly.notifications.service import push_notifications, record_notification
from pairly.profiles.service import find_user_by_invite_code, get_user
from pairly.realtime.channels import Feed
from pairly.realtime.publisher import publish_couple_change
from pairly.results import ErrorCode, ServiceResult, guarded
from pairly.timeutils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_PET_NAME = "Piggy"
DEFAULT_PET_SKIN = "piggy"


def default_pet() -> dict[str, Any]:
    return {
        "name": DEFAULT_PET_NAME,
        "skin": DEFAULT_PET_SKIN,
        "happiness": 80,
        "hunger": 50,
        "lastFed": None,
        "lastPlayed": None,
        "lastBathed": None,
        "lastSlept": None,
    }


def default_love_zone() -> dict[str, Any]:
    return {"level": 1, "unlockedItems": [], "placedItems": []}


async def _link_profile(
    db: AsyncSession, user_id: str, couple_id: str, partner_id: str, now: datetime
) -> bool:
    """Point one profile at the couple if it is still unpaired."""
    result = await db.execute(
        update(User)
        .where(User.uid == user_id, User.couple_id.is_(None))
        .values({User.couple_id: couple_id, User.partner_id: partner_id, User.updated_at: now})
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


@guarded("connect_with_partner")
async def connect_with_partner(
    db: AsyncSession,
    user_id: str,
    invite_code: str,
    redis: Any | None = None,
) -> ServiceResult:
    """Pair the caller with the owner of ``invite_code``."""
    partner = await find_user_by_invite_code(db, invite_code)
    if partner is None:
        return ServiceResult.fail(ErrorCode.INVALID_INVITE_CODE, "Invalid invite code", coupleId=None, partner=None)

    if partner.uid == user_id:
        return ServiceResult.fail(ErrorCode.SELF_PAIRING, "Cannot connect with yourself", coupleId=None, partner=None)

    if partner.couple_id:
        return ServiceResult.fail(
            ErrorCode.PARTNER_ALREADY_PAIRED, "This user is already connected", coupleId=None, partner=None
        )

    caller = await get_user(db, user_id)
    if caller is None:
        return ServiceResult.fail(ErrorCode.USER_NOT_FOUND, "User not found", coupleId=None, partner=None)

    if caller.couple_id:
        return ServiceResult.fail(
            ErrorCode.CALLER_ALREADY_PAIRED, "You are already connected to a partner", coupleId=None, partner=None
        )

    now = utcnow()
    couple = Couple(
        id=new_id(),
        user1_id=caller.uid,
        user2_id=partner.uid,
        user1_name=caller.display_name,
        user2_name=partner.display_name,
        couple_name=f"{caller.display_name} & {partner.display_name}",
        connected_at=now,
        anniversary=None,
        pet=default_pet(),
        love_zone=default_love_zone(),
        version=1,
        created_at=now,
        updated_at=now,
    )
    db.add(couple)
    await db.flush()

    if not await _link_profile(db, caller.uid, couple.id, partner.uid, now):
        await db.rollback()
        return ServiceResult.fail(
            ErrorCode.CALLER_ALREADY_PAIRED, "You are already connected to a partner", coupleId=None, partner=None
        )
    if not await _link_profile(db, partner.uid, couple.id, caller.uid, now):
        await db.rollback()
        return ServiceResult.fail(
            ErrorCode.PARTNER_ALREADY_PAIRED, "This user is already connected", coupleId=None, partner=None
        )

    notification = await record_notification(
        db, partner.uid, PartnerConnected(partner_name=caller.display_name, couple_id=couple.id)
    )
    await db.commit()

    logger.info("Paired %s with %s as couple %s", caller.uid, partner.uid, couple.id)
    await push_notifications(redis, [notification])

    partner_doc = partner.to_document()
    partner_doc.update(coupleId=couple.id, partnerId=caller.uid)
    return ServiceResult.ok(coupleId=couple.id, partner=partner_doc)


@guarded("disconnect_couple")
async def disconnect_couple(db: AsyncSession, couple_id: str, redis: Any | None = None) -> ServiceResult:
    """Unlink both profiles and delete the couple as one unit."""
    if not await dissolve_couple(db, couple_id):
        return ServiceResult.fail(ErrorCode.COUPLE_NOT_FOUND, "Couple not found")
    await db.commit()

    logger.info("Couple %s disconnected", couple_id)
    await publish_couple_change(redis, couple_id, Feed.COUPLE)
    return ServiceResult.ok()
