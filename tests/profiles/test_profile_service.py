"""Tests for the profile store."""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.db.models import Notification
from pairly.profiles import invite_codes, service
from pairly.results import ErrorCode


class TestCreateProfile:
    @pytest.mark.asyncio
    async def test_defaults(self, db: AsyncSession) -> None:
        result = await service.create_profile(db, "u1", "u1@example.com", display_name="Alice")
        assert result.success
        assert result["created"] is True
        profile = result["profile"]
        assert profile["id"] == "u1"
        assert profile["displayName"] == "Alice"
        assert profile["hearts"] == 100
        assert profile["coupleId"] is None
        assert profile["partnerId"] is None
        assert profile["isPremium"] is False
        assert profile["settings"] == {"notifications": True, "soundEnabled": True, "theme": "light"}
        assert invite_codes.is_well_formed(profile["inviteCode"])

    @pytest.mark.asyncio
    async def test_display_name_defaults_to_user(self, db: AsyncSession) -> None:
        result = await service.create_profile(db, "u1", None)
        assert result["profile"]["displayName"] == "User"

    @pytest.mark.asyncio
    async def test_writes_welcome_notification(self, db: AsyncSession) -> None:
        result = await service.create_profile(db, "u1", "u1@example.com", display_name="Alice")
        rows = (await db.execute(select(Notification).where(Notification.user_id == "u1"))).scalars().all()
        assert len(rows) == 1
        assert rows[0].type == "welcome"
        assert result["profile"]["inviteCode"] in rows[0].message

    @pytest.mark.asyncio
    async def test_is_idempotent(self, db: AsyncSession) -> None:
        first = await service.create_profile(db, "u1", "u1@example.com", display_name="Alice")
        second = await service.create_profile(db, "u1", "other@example.com", display_name="Changed")
        assert second.success
        assert second["created"] is False
        assert second["profile"]["inviteCode"] == first["profile"]["inviteCode"]
        assert second["profile"]["displayName"] == "Alice"

    @pytest.mark.asyncio
    async def test_invite_codes_are_unique(self, db: AsyncSession) -> None:
        codes = set()
        for i in range(20):
            result = await service.create_profile(db, f"u{i}", None)
            codes.add(result["profile"]["inviteCode"])
        assert len(codes) == 20


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_profile_missing(self, db: AsyncSession) -> None:
        assert await service.get_profile(db, "nobody") is None

    @pytest.mark.asyncio
    async def test_find_by_invite_code_is_case_insensitive(self, db: AsyncSession, make_user) -> None:
        profile = await make_user("alice", "Alice")
        found = await service.find_by_invite_code(db, profile["inviteCode"].lower())
        assert found is not None
        assert found["id"] == "alice"

    @pytest.mark.asyncio
    async def test_find_by_unknown_code(self, db: AsyncSession, make_user) -> None:
        await make_user("alice")
        assert await service.find_by_invite_code(db, "") is None
        assert await service.find_by_invite_code(db, "??????") is None


class TestUpdateProfile:
    @pytest.mark.asyncio
    async def test_merge_patch_keeps_other_fields(self, db: AsyncSession, make_user) -> None:
        before = await make_user("alice", "Alice")
        result = await service.update_display_name(db, "alice", "Ally")
        assert result.success
        after = result["profile"]
        assert after["displayName"] == "Ally"
        assert after["inviteCode"] == before["inviteCode"]
        assert after["hearts"] == before["hearts"]
        assert after["updatedAt"] >= before["updatedAt"]

    @pytest.mark.asyncio
    async def test_settings_are_merged(self, db: AsyncSession, make_user) -> None:
        await make_user("alice")
        result = await service.update_user_settings(db, "alice", {"theme": "dark"})
        assert result["profile"]["settings"] == {"notifications": True, "soundEnabled": True, "theme": "dark"}

    @pytest.mark.asyncio
    async def test_premium_and_push_token(self, db: AsyncSession, make_user) -> None:
        await make_user("alice")
        assert (await service.update_premium_status(db, "alice", True)).success
        assert (await service.update_expo_push_token(db, "alice", "ExponentPushToken[x]")).success
        user = await service.get_user(db, "alice")
        assert user.is_premium is True
        assert user.expo_push_token == "ExponentPushToken[x]"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["inviteCode", "coupleId", "partnerId", "hearts"])
    async def test_managed_fields_are_rejected(self, db: AsyncSession, make_user, field: str) -> None:
        await make_user("alice")
        result = await service.update_profile(db, "alice", {field: "x"})
        assert not result.success
        assert result.code == ErrorCode.INVALID_FIELD

    @pytest.mark.asyncio
    async def test_unknown_field_is_rejected(self, db: AsyncSession, make_user) -> None:
        await make_user("alice")
        result = await service.update_profile(db, "alice", {"favoriteColor": "red"})
        assert result.code == ErrorCode.INVALID_FIELD

    @pytest.mark.asyncio
    async def test_missing_user(self, db: AsyncSession) -> None:
        result = await service.update_display_name(db, "nobody", "X")
        assert result.code == ErrorCode.USER_NOT_FOUND


class TestDeleteAccount:
    @pytest.mark.asyncio
    async def test_delete_unpaired(self, db: AsyncSession, make_user) -> None:
        await make_user("alice")
        assert (await service.delete_account(db, "alice")).success
        assert await service.get_profile(db, "alice") is None

    @pytest.mark.asyncio
    async def test_delete_dissolves_couple(self, db: AsyncSession, pair) -> None:
        assert (await service.delete_account(db, pair.alice)).success
        bob = await service.get_profile(db, pair.bob)
        assert bob["coupleId"] is None
        assert bob["partnerId"] is None

    @pytest.mark.asyncio
    async def test_delete_missing(self, db: AsyncSession) -> None:
        result = await service.delete_account(db, "nobody")
        assert result.code == ErrorCode.USER_NOT_FOUND
