"""Tests for anniversary and custom dates."""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.couples.couple_service import get_couple
from pairly.db.models import Notification, SpecialDate
from pairly.results import ErrorCode
from pairly.sharing import dates_service


class TestAnniversary:
    @pytest.mark.asyncio
    async def test_save_is_an_upsert(self, db: AsyncSession, pair) -> None:
        await dates_service.save_anniversary_date(db, pair.couple_id, date(2020, 5, 1))
        result = await dates_service.save_anniversary_date(db, pair.couple_id, date(2020, 6, 1))
        assert result.success
        assert result["anniversary"]["id"] == f"{pair.couple_id}_anniversary"

        count = (await db.execute(select(func.count()).select_from(SpecialDate))).scalar_one()
        assert count == 1
        assert (await dates_service.get_anniversary_date(db, pair.couple_id))["date"] == date(2020, 6, 1)
        assert (await get_couple(db, pair.couple_id))["couple"]["anniversary"] == date(2020, 6, 1)

    @pytest.mark.asyncio
    async def test_no_anniversary(self, db: AsyncSession, pair) -> None:
        assert (await dates_service.get_anniversary_date(db, pair.couple_id))["date"] is None

    @pytest.mark.asyncio
    async def test_missing_couple(self, db: AsyncSession) -> None:
        result = await dates_service.save_anniversary_date(db, "nope", date(2020, 5, 1))
        assert result.code == ErrorCode.COUPLE_NOT_FOUND


class TestImportantDates:
    @pytest.mark.asyncio
    async def test_add_notifies_partner(self, db: AsyncSession, pair) -> None:
        result = await dates_service.add_important_date(
            db, pair.couple_id, "Picnic", date(2026, 7, 4), note="bring cake", created_by=pair.bob
        )
        assert result.success
        rows = (await db.execute(select(Notification).where(Notification.user_id == pair.alice, Notification.type == "date"))).scalars().all()
        assert len(rows) == 1
        assert rows[0].related_id == result["id"]

    @pytest.mark.asyncio
    async def test_listed_earliest_first_without_anniversary(self, db: AsyncSession, pair) -> None:
        await dates_service.save_anniversary_date(db, pair.couple_id, date(2020, 1, 1))
        await dates_service.add_important_date(db, pair.couple_id, "Trip", date(2026, 9, 1))
        await dates_service.add_important_date(db, pair.couple_id, "Concert", date(2026, 3, 1))

        dates = (await dates_service.get_important_dates(db, pair.couple_id))["dates"]
        assert [d["title"] for d in dates] == ["Concert", "Trip"]

    @pytest.mark.asyncio
    async def test_update(self, db: AsyncSession, pair) -> None:
        added = await dates_service.add_important_date(db, pair.couple_id, "Trip", date(2026, 9, 1))
        result = await dates_service.update_important_date(
            db, pair.couple_id, added["id"], {"title": "Road trip", "date": date(2026, 9, 2)}
        )
        assert result["date"]["title"] == "Road trip"
        assert result["date"]["date"] == date(2026, 9, 2)
        assert result["date"]["note"] == ""

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, db: AsyncSession, pair) -> None:
        added = await dates_service.add_important_date(db, pair.couple_id, "Trip", date(2026, 9, 1))
        result = await dates_service.update_important_date(db, pair.couple_id, added["id"], {"coupleId": "x"})
        assert result.code == ErrorCode.INVALID_FIELD

    @pytest.mark.asyncio
    async def test_anniversary_is_not_a_custom_date(self, db: AsyncSession, pair) -> None:
        await dates_service.save_anniversary_date(db, pair.couple_id, date(2020, 1, 1))
        result = await dates_service.update_important_date(
            db, pair.couple_id, dates_service.anniversary_id(pair.couple_id), {"title": "x"}
        )
        assert result.code == ErrorCode.DATE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete(self, db: AsyncSession, pair) -> None:
        added = await dates_service.add_important_date(db, pair.couple_id, "Trip", date(2026, 9, 1))
        assert (await dates_service.delete_important_date(db, pair.couple_id, added["id"])).success
        again = await dates_service.delete_important_date(db, pair.couple_id, added["id"])
        assert again.code == ErrorCode.DATE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_empty_title(self, db: AsyncSession, pair) -> None:
        result = await dates_service.add_important_date(db, pair.couple_id, "", date(2026, 9, 1))
        assert result.code == ErrorCode.INVALID_FIELD
