"""Tests for the pairing protocol."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.couples import pairing_service
from pairly.couples.pairing_service import connect_with_partner, disconnect_couple
from pairly.db.models import Couple, Notification
from pairly.profiles import invite_codes
from pairly.profiles.service import get_profile
from pairly.results import ErrorCode


async def _couple_count(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(Couple))).scalar_one()


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_links_both_profiles(self, db: AsyncSession, make_user, monkeypatch) -> None:
        monkeypatch.setattr(invite_codes, "generate_invite_code", lambda: "AB12CD")
        await make_user("bob", "Bob")
        monkeypatch.undo()
        await make_user("alice", "Alice")

        result = await connect_with_partner(db, "alice", "ab12cd")
        assert result.success
        couple_id = result["coupleId"]
        assert result["partner"]["id"] == "bob"
        assert result["partner"]["coupleId"] == couple_id

        alice = await get_profile(db, "alice")
        bob = await get_profile(db, "bob")
        assert alice["coupleId"] == bob["coupleId"] == couple_id
        assert alice["partnerId"] == "bob"
        assert bob["partnerId"] == "alice"

        couple = await db.get(Couple, couple_id)
        assert set(couple.member_ids()) == {"alice", "bob"}
        assert couple.couple_name == "Alice & Bob"
        assert couple.pet["name"] == "Piggy"
        assert couple.pet["happiness"] == 80
        assert couple.love_zone == {"level": 1, "unlockedItems": [], "placedItems": []}

    @pytest.mark.asyncio
    async def test_partner_is_notified(self, db: AsyncSession, pair) -> None:
        rows = (
            await db.execute(select(Notification).where(Notification.user_id == pair.bob, Notification.type == "partner"))
        ).scalars().all()
        assert len(rows) == 1
        assert rows[0].related_id == pair.couple_id

    @pytest.mark.asyncio
    async def test_invalid_code(self, db: AsyncSession, make_user) -> None:
        await make_user("alice")
        result = await connect_with_partner(db, "alice", "NOPE00")
        assert not result.success
        assert result.code == ErrorCode.INVALID_INVITE_CODE
        assert result["coupleId"] is None
        assert result["partner"] is None

    @pytest.mark.asyncio
    async def test_self_pairing(self, db: AsyncSession, make_user) -> None:
        alice = await make_user("alice")
        result = await connect_with_partner(db, "alice", alice["inviteCode"])
        assert result.code == ErrorCode.SELF_PAIRING
        assert await _couple_count(db) == 0

    @pytest.mark.asyncio
    async def test_partner_already_paired(self, db: AsyncSession, pair, make_user) -> None:
        await make_user("carol")
        bob = await get_profile(db, pair.bob)
        result = await connect_with_partner(db, "carol", bob["inviteCode"])
        assert result.code == ErrorCode.PARTNER_ALREADY_PAIRED
        assert await _couple_count(db) == 1
        assert (await get_profile(db, "carol"))["coupleId"] is None

    @pytest.mark.asyncio
    async def test_caller_already_paired(self, db: AsyncSession, pair, make_user) -> None:
        carol = await make_user("carol")
        result = await connect_with_partner(db, pair.alice, carol["inviteCode"])
        assert result.code == ErrorCode.CALLER_ALREADY_PAIRED
        assert await _couple_count(db) == 1

    @pytest.mark.asyncio
    async def test_caller_without_profile(self, db: AsyncSession, make_user) -> None:
        bob = await make_user("bob")
        result = await connect_with_partner(db, "ghost", bob["inviteCode"])
        assert result.code == ErrorCode.USER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_lost_race_leaves_nothing_behind(self, db: AsyncSession, make_user, monkeypatch) -> None:
        """If the partner gets claimed mid-transaction, no half-linked couple survives."""
        await make_user("alice")
        bob = await make_user("bob")
        real_link = pairing_service._link_profile
        calls = {"n": 0}

        async def flaky_link(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                return False
            return await real_link(*args, **kwargs)

        monkeypatch.setattr(pairing_service, "_link_profile", flaky_link)
        result = await connect_with_partner(db, "alice", bob["inviteCode"])
        assert result.code == ErrorCode.PARTNER_ALREADY_PAIRED
        assert await _couple_count(db) == 0
        assert (await get_profile(db, "alice"))["coupleId"] is None

    @pytest.mark.asyncio
    async def test_backend_failure_rolls_back(self, db: AsyncSession, make_user, monkeypatch) -> None:
        await make_user("alice")
        bob = await make_user("bob")
        real_link = pairing_service._link_profile
        calls = {"n": 0}

        async def failing_link(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise OperationalError("UPDATE users", {}, Exception("connection reset"))
            return await real_link(*args, **kwargs)

        monkeypatch.setattr(pairing_service, "_link_profile", failing_link)
        result = await connect_with_partner(db, "alice", bob["inviteCode"])
        assert result.code == ErrorCode.BACKEND_ERROR
        assert await _couple_count(db) == 0
        assert (await get_profile(db, "alice"))["coupleId"] is None
        assert (await get_profile(db, "bob"))["coupleId"] is None


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_clears_both(self, db: AsyncSession, pair) -> None:
        result = await disconnect_couple(db, pair.couple_id)
        assert result.success
        for uid in (pair.alice, pair.bob):
            profile = await get_profile(db, uid)
            assert profile["coupleId"] is None
            assert profile["partnerId"] is None
        assert await _couple_count(db) == 0

    @pytest.mark.asyncio
    async def test_disconnect_missing(self, db: AsyncSession) -> None:
        result = await disconnect_couple(db, "nope")
        assert result.code == ErrorCode.COUPLE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_can_pair_again_after_disconnect(self, db: AsyncSession, pair, make_user) -> None:
        await disconnect_couple(db, pair.couple_id)
        carol = await make_user("carol")
        result = await connect_with_partner(db, pair.alice, carol["inviteCode"])
        assert result.success
