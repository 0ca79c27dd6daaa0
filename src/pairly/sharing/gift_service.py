"""Gift sending with a durable two-step log.

A gift row doubles as the transfer log:

1. Debit the sender and insert the gift as ``pending`` in one transaction.
   Insufficient balance writes nothing.
2. Credit the receiver's bonus and mark the gift ``committed`` in a second
   transaction.

If step 2 fails, a compensating transaction refunds the sender and marks the gift
``rolled_back``. Gifts left ``pending`` by a crash between the steps are rolled
back by ``recover_pending_gifts`` (run periodically by the worker). Read APIs only
show committed gifts.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.config import get_settings
from pairly.couples.couple_service import require_members
from pairly.db.models import GIFT_COMMITTED, GIFT_PENDING, GIFT_ROLLED_BACK, Gift, new_id
from pairly.notifications.kinds import GiftReceived
from pairly.notifications.service import push_notifications, record_notification
from pairly.profiles.ledger import apply_hearts_delta, debit_hearts, get_balance
from pairly.profiles.service import get_display_name
from pairly.realtime.channels import Feed
from pairly.realtime.publisher import publish_couple_change
from pairly.results import ErrorCode, ServiceResult, guarded
from pairly.timeutils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
STATS_WINDOW = 1000


def receiver_bonus(hearts: int) -> int:
    """Hearts credited to the receiver: half the gift's cost, rounded down."""
    return hearts // 2


def _build_gift(
    couple_id: str,
    sender_id: str,
    receiver_id: str,
    gift_id: str,
    emoji: str,
    label: str,
    hearts: int,
    message: str | None,
) -> Gift:
    return Gift(
        id=new_id(),
        couple_id=couple_id,
        sender_id=sender_id,
        receiver_id=receiver_id,
        gift_id=gift_id,
        emoji=emoji,
        label=label,
        hearts=hearts,
        message=message or None,
        is_opened=False,
        status=GIFT_PENDING,
        created_at=utcnow(),
    )


async def _credit_receiver(db: AsyncSession, gift: Gift) -> int | None:
    return await apply_hearts_delta(db, gift.receiver_id, receiver_bonus(gift.hearts))


async def _resolve(db: AsyncSession, gift_id: str, status: str) -> bool:
    """Move a pending gift to its final status. False if it was already resolved."""
    result = await db.execute(
        update(Gift)
        .where(Gift.id == gift_id, Gift.status == GIFT_PENDING)
        .values({Gift.status: status, Gift.resolved_at: utcnow()})
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _roll_back_gift(db: AsyncSession, gift_id: str, sender_id: str, hearts: int) -> bool:
    """Compensating transaction: refund the sender and mark the gift rolled back.

    Returns False if the refund could not be written; the gift then stays pending
    for the recovery sweep.
    """
    try:
        if await _resolve(db, gift_id, GIFT_ROLLED_BACK):
            await apply_hearts_delta(db, sender_id, hearts)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.error("Refund of %d hearts for gift %s failed, left pending", hearts, gift_id, exc_info=True)
        return False
    logger.info("Gift %s rolled back, refunded %d hearts to %s", gift_id, hearts, sender_id)
    return True


@guarded("send_gift")
async def send_gift(
    db: AsyncSession,
    couple_id: str,
    sender_id: str,
    receiver_id: str,
    gift_id: str,
    emoji: str,
    label: str,
    hearts: int,
    message: str | None = None,
    redis: Any | None = None,
) -> ServiceResult:
    """Send a gift: debit the sender, then credit the receiver's bonus."""
    if hearts < 0:
        return ServiceResult.fail(ErrorCode.INVALID_FIELD, "Gift cost cannot be negative", giftId=None)
    if sender_id == receiver_id:
        return ServiceResult.fail(ErrorCode.INVALID_FIELD, "Cannot send a gift to yourself", giftId=None)

    couple = await require_members(db, couple_id, sender_id, receiver_id)
    if isinstance(couple, ServiceResult):
        return couple

    if await get_balance(db, sender_id) is None:
        return ServiceResult.fail(ErrorCode.USER_NOT_FOUND, "User not found", giftId=None)

    # Step 1: debit + pending record
    if not await debit_hearts(db, sender_id, hearts):
        await db.rollback()
        return ServiceResult.fail(ErrorCode.INSUFFICIENT_HEARTS, "Not enough hearts", giftId=None)
    gift = _build_gift(couple_id, sender_id, receiver_id, gift_id, emoji, label, hearts, message)
    db.add(gift)
    await db.commit()
    # Plain values only from here on: a rollback expires the instance
    record_id = gift.id
    document = gift.to_document()

    # Step 2: credit + commit
    try:
        if not await _resolve(db, record_id, GIFT_COMMITTED):
            await db.rollback()
            return ServiceResult.fail(ErrorCode.CONCURRENT_UPDATE, "Gift was already resolved", giftId=record_id)
        if await _credit_receiver(db, gift) is None:
            await db.rollback()
            await _roll_back_gift(db, record_id, sender_id, hearts)
            return ServiceResult.fail(ErrorCode.USER_NOT_FOUND, "Receiver not found", giftId=record_id)
        sender_name = await get_display_name(db, sender_id)
        notification = await record_notification(
            db,
            receiver_id,
            GiftReceived(sender_name=sender_name, gift_id=record_id, label=label, message=document["message"]),
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning("Delivering gift %s failed, compensating", record_id, exc_info=True)
        await _roll_back_gift(db, record_id, sender_id, hearts)
        return ServiceResult.fail(ErrorCode.BACKEND_ERROR, str(exc), giftId=record_id)

    logger.info("Gift %s sent from %s to %s (%d hearts)", record_id, sender_id, receiver_id, hearts)
    await publish_couple_change(redis, couple_id, Feed.GIFTS)
    await push_notifications(redis, [notification])
    return ServiceResult.ok(
        giftId=record_id,
        gift=document,
        senderBalance=await get_balance(db, sender_id),
        receiverBonus=receiver_bonus(hearts),
    )


async def recover_pending_gifts(
    db: AsyncSession,
    older_than: timedelta | None = None,
    now: datetime | None = None,
) -> int:
    """Roll back gifts stuck in ``pending``. Returns how many were rolled back."""
    if older_than is None:
        older_than = timedelta(seconds=get_settings().pending_gift_timeout_seconds)
    cutoff = (now or utcnow()) - older_than

    result = await db.execute(
        select(Gift.id, Gift.sender_id, Gift.hearts).where(
            Gift.status == GIFT_PENDING, Gift.created_at < cutoff
        )
    )
    stuck = list(result.all())

    recovered = 0
    for gift_id, sender_id, hearts in stuck:
        if await _roll_back_gift(db, gift_id, sender_id, hearts):
            recovered += 1
    if stuck:
        logger.info("Recovered %d of %d pending gifts", recovered, len(stuck))
    return recovered


async def _list_gifts(db: AsyncSession, couple_id: str, *criteria: Any, limit: int) -> list[dict[str, Any]]:
    result = await db.execute(
        select(Gift)
        .where(Gift.couple_id == couple_id, Gift.status == GIFT_COMMITTED, *criteria)
        .order_by(Gift.created_at.desc())
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return [g.to_document() for g in result.scalars().all()]


@guarded("get_gifts")
async def get_gifts(db: AsyncSession, couple_id: str, limit: int = DEFAULT_LIMIT) -> ServiceResult:
    return ServiceResult.ok(gifts=await _list_gifts(db, couple_id, limit=limit))


@guarded("get_sent_gifts")
async def get_sent_gifts(db: AsyncSession, couple_id: str, user_id: str, limit: int = DEFAULT_LIMIT) -> ServiceResult:
    return ServiceResult.ok(gifts=await _list_gifts(db, couple_id, Gift.sender_id == user_id, limit=limit))


@guarded("get_received_gifts")
async def get_received_gifts(
    db: AsyncSession, couple_id: str, user_id: str, limit: int = DEFAULT_LIMIT
) -> ServiceResult:
    return ServiceResult.ok(gifts=await _list_gifts(db, couple_id, Gift.receiver_id == user_id, limit=limit))


@guarded("get_gift_stats")
async def get_gift_stats(db: AsyncSession, couple_id: str) -> ServiceResult:
    gifts = await _list_gifts(db, couple_id, limit=STATS_WINDOW)
    by_type: dict[str, dict[str, Any]] = {}
    for gift in gifts:
        entry = by_type.setdefault(gift["giftId"], {"count": 0, "emoji": gift["emoji"], "label": gift["label"]})
        entry["count"] += 1
    return ServiceResult.ok(
        stats={
            "totalGifts": len(gifts),
            "totalHeartsSpent": sum(g["hearts"] for g in gifts),
            "giftsByType": by_type,
        }
    )
