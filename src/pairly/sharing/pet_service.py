"""Couple pet: an embedded sub-document of the couple, shared by both partners.

Actions apply clamped stat deltas. All writes go through the couple's versioned
compare-and-swap, so two partners feeding at the same moment both count.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.couples.couple_service import apply_versioned, get_couple_row
from pairly.db.models import Couple
from pairly.realtime.channels import Feed
from pairly.realtime.publisher import publish_couple_change
from pairly.results import ErrorCode, ServiceResult, guarded
from pairly.timeutils import utcnow

logger = logging.getLogger(__name__)

STAT_MIN = 0
STAT_MAX = 100
STAT_DEFAULT = 50


@dataclass(frozen=True)
class PetEffect:
    happiness: int
    hunger: int
    timestamp_field: str | None = None


PET_ACTIONS: dict[str, PetEffect] = {
    "feed": PetEffect(happiness=5, hunger=20, timestamp_field="lastFed"),
    "play": PetEffect(happiness=15, hunger=-5, timestamp_field="lastPlayed"),
    "bathe": PetEffect(happiness=10, hunger=0, timestamp_field="lastBathed"),
    "sleep": PetEffect(happiness=8, hunger=0, timestamp_field="lastSlept"),
}
TICK = PetEffect(happiness=-1, hunger=-1)

PATCHABLE_PET_FIELDS = frozenset({"name", "skin"})


def clamp_stat(value: int) -> int:
    return max(STAT_MIN, min(STAT_MAX, value))


def apply_effect(pet: dict[str, Any], effect: PetEffect, now_iso: str | None = None) -> dict[str, Any]:
    """Return a new pet document with the effect applied."""
    updated = dict(pet)
    updated["happiness"] = clamp_stat(pet.get("happiness", STAT_DEFAULT) + effect.happiness)
    updated["hunger"] = clamp_stat(pet.get("hunger", STAT_DEFAULT) + effect.hunger)
    if effect.timestamp_field:
        updated[effect.timestamp_field] = now_iso or utcnow().isoformat()
    return updated


async def _update_pet(
    db: AsyncSession,
    couple_id: str,
    change: Any,
    redis: Any | None,
) -> ServiceResult:
    def mutate(pet: dict[str, Any]) -> dict[str, Any] | ServiceResult:
        if not pet:
            return ServiceResult.fail(ErrorCode.PET_NOT_FOUND, "Pet not found")
        return change(pet)

    result = await apply_versioned(db, couple_id, Couple.pet, mutate, "pet")
    if result.success:
        await publish_couple_change(redis, couple_id, Feed.PET, Feed.COUPLE)
    return result


@guarded("get_pet")
async def get_pet(db: AsyncSession, couple_id: str) -> ServiceResult:
    couple = await get_couple_row(db, couple_id)
    if couple is None:
        return ServiceResult.fail(ErrorCode.COUPLE_NOT_FOUND, "Couple not found")
    if not couple.pet:
        return ServiceResult.fail(ErrorCode.PET_NOT_FOUND, "Pet not found")
    return ServiceResult.ok(pet=couple.pet)


@guarded("update_pet")
async def update_pet(
    db: AsyncSession, couple_id: str, fields: dict[str, Any], redis: Any | None = None
) -> ServiceResult:
    """Patch the pet's name and/or skin."""
    invalid = sorted(set(fields) - PATCHABLE_PET_FIELDS)
    if invalid:
        return ServiceResult.fail(ErrorCode.INVALID_FIELD, f"Cannot update pet fields: {', '.join(invalid)}")
    return await _update_pet(db, couple_id, lambda pet: {**pet, **fields}, redis)


async def update_pet_name(db: AsyncSession, couple_id: str, name: str, redis: Any | None = None) -> ServiceResult:
    return await update_pet(db, couple_id, {"name": name}, redis=redis)


async def update_pet_skin(db: AsyncSession, couple_id: str, skin: str, redis: Any | None = None) -> ServiceResult:
    return await update_pet(db, couple_id, {"skin": skin}, redis=redis)


@guarded("pet_action")
async def perform_action(
    db: AsyncSession, couple_id: str, action: str, redis: Any | None = None
) -> ServiceResult:
    """Apply one of the named care actions (feed, play, bathe, sleep)."""
    effect = PET_ACTIONS.get(action)
    if effect is None:
        return ServiceResult.fail(ErrorCode.INVALID_FIELD, f"Unknown pet action: {action}")
    return await _update_pet(db, couple_id, lambda pet: apply_effect(pet, effect), redis)


async def feed_pet(db: AsyncSession, couple_id: str, redis: Any | None = None) -> ServiceResult:
    return await perform_action(db, couple_id, "feed", redis=redis)


async def play_with_pet(db: AsyncSession, couple_id: str, redis: Any | None = None) -> ServiceResult:
    return await perform_action(db, couple_id, "play", redis=redis)


async def bathe_pet(db: AsyncSession, couple_id: str, redis: Any | None = None) -> ServiceResult:
    return await perform_action(db, couple_id, "bathe", redis=redis)


async def sleep_pet(db: AsyncSession, couple_id: str, redis: Any | None = None) -> ServiceResult:
    return await perform_action(db, couple_id, "sleep", redis=redis)


@guarded("decrease_pet_stats")
async def decrease_pet_stats(db: AsyncSession, couple_id: str, redis: Any | None = None) -> ServiceResult:
    """Periodic decay: one point off happiness and hunger."""
    return await _update_pet(db, couple_id, lambda pet: apply_effect(pet, TICK), redis)


async def decrease_all_pets(db: AsyncSession, redis: Any | None = None) -> int:
    """Apply the decay tick to every couple's pet. Returns how many were updated."""
    result = await db.execute(select(Couple.id))
    couple_ids = list(result.scalars().all())

    updated = 0
    for couple_id in couple_ids:
        outcome = await decrease_pet_stats(db, couple_id, redis=redis)
        if outcome.success:
            updated += 1
        else:
            logger.warning("Pet tick skipped for couple %s: %s", couple_id, outcome.error)
    return updated
