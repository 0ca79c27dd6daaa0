"""Tests for the arq maintenance jobs."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.db.models import GIFT_PENDING, Gift, new_id
from pairly.profiles.ledger import debit_hearts, get_balance
from pairly.sharing.pet_service import get_pet
from pairly.timeutils import utcnow
from pairly.workers.settings import WorkerSettings, decay_pets, recover_gifts


class TestMaintenanceJobs:
    @pytest.mark.asyncio
    async def test_decay_pets(self, db: AsyncSession, pair) -> None:
        assert await decay_pets({}) == 1
        pet = (await get_pet(db, pair.couple_id))["pet"]
        assert (pet["happiness"], pet["hunger"]) == (79, 49)

    @pytest.mark.asyncio
    async def test_decay_without_couples(self, database: None) -> None:
        assert await decay_pets({}) == 0

    @pytest.mark.asyncio
    async def test_recover_gifts(self, db: AsyncSession, pair) -> None:
        assert await debit_hearts(db, pair.alice, 40)
        db.add(
            Gift(
                id=new_id(),
                couple_id=pair.couple_id,
                sender_id=pair.alice,
                receiver_id=pair.bob,
                gift_id="bear",
                emoji="🧸",
                label="Bear",
                hearts=40,
                status=GIFT_PENDING,
                created_at=utcnow() - timedelta(hours=1),
            )
        )
        await db.commit()

        assert await recover_gifts({}) == 1
        assert await get_balance(db, pair.alice) == 100

    def test_cron_schedule(self) -> None:
        names = {job.name for job in WorkerSettings.cron_jobs}
        assert names == {"cron:decay_pets", "cron:recover_gifts"}
