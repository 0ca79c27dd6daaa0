"""API tests for notes, moods, gifts, special dates and pet endpoints."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import AsyncClient


@pytest_asyncio.fixture
async def couple(client: AsyncClient, auth_headers) -> dict[str, dict[str, str]]:
    """Alice and Bob paired through the API; returns their headers."""
    headers = {"alice": auth_headers("alice"), "bob": auth_headers("bob")}
    await client.post("/api/v1/profiles", json={"displayName": "Alice"}, headers=headers["alice"])
    bob = (await client.post("/api/v1/profiles", json={"displayName": "Bob"}, headers=headers["bob"])).json()
    response = await client.post(
        "/api/v1/couples/connect", json={"inviteCode": bob["profile"]["inviteCode"]}, headers=headers["alice"]
    )
    assert response.status_code == 201
    return headers


class TestNotesApi:
    @pytest.mark.asyncio
    async def test_send_and_read(self, client: AsyncClient, couple) -> None:
        sent = await client.post("/api/v1/notes", json={"content": "miss you"}, headers=couple["alice"])
        assert sent.status_code == 201
        note_id = sent.json()["noteId"]

        count = await client.get("/api/v1/notes/unread-count", headers=couple["bob"])
        assert count.json()["count"] == 1

        received = await client.get("/api/v1/notes", params={"box": "received"}, headers=couple["bob"])
        assert [n["id"] for n in received.json()["notes"]] == [note_id]

        liked = await client.post(f"/api/v1/notes/{note_id}/like", json={"isLiked": True}, headers=couple["bob"])
        assert liked.status_code == 200
        read_all = await client.post("/api/v1/notes/read-all", headers=couple["bob"])
        assert read_all.json()["count"] == 1

        notes = (await client.get("/api/v1/notes", headers=couple["alice"])).json()["notes"]
        assert notes[0]["isRead"] is True
        assert notes[0]["isLiked"] is True

    @pytest.mark.asyncio
    async def test_invalid_type(self, client: AsyncClient, couple) -> None:
        response = await client.post("/api/v1/notes", json={"type": "video"}, headers=couple["alice"])
        assert response.status_code == 422
        assert response.json()["errorCode"] == "InvalidField"

    @pytest.mark.asyncio
    async def test_delete_missing_note(self, client: AsyncClient, couple) -> None:
        response = await client.delete("/api/v1/notes/nope", headers=couple["alice"])
        assert response.status_code == 404
        assert response.json()["errorCode"] == "NoteNotFound"

    @pytest.mark.asyncio
    async def test_unpaired_caller(self, client: AsyncClient, auth_headers) -> None:
        headers = auth_headers("solo")
        await client.post("/api/v1/profiles", json={"displayName": "Solo"}, headers=headers)
        response = await client.post("/api/v1/notes", json={"content": "hi"}, headers=headers)
        assert response.status_code == 404


class TestMoodsApi:
    @pytest.mark.asyncio
    async def test_current_and_stats(self, client: AsyncClient, couple) -> None:
        body = {"moodId": "happy", "emoji": ":)", "label": "Happy"}
        assert (await client.post("/api/v1/moods", json=body, headers=couple["alice"])).status_code == 201

        current = (await client.get("/api/v1/moods/current", headers=couple["bob"])).json()
        assert current["partnerMood"]["moodId"] == "happy"
        assert current["userMood"] is None

        stats = (await client.get("/api/v1/moods/stats", headers=couple["alice"])).json()
        assert stats["todayCount"] == 1

        history = (await client.get("/api/v1/moods/history", params={"scope": "couple"}, headers=couple["bob"])).json()
        assert len(history["moods"]) == 1


class TestGiftsApi:
    @pytest.mark.asyncio
    async def test_send_gift_moves_hearts(self, client: AsyncClient, couple) -> None:
        body = {"giftId": "rose", "emoji": "R", "label": "Rose", "hearts": 30}
        response = await client.post("/api/v1/gifts", json=body, headers=couple["alice"])
        assert response.status_code == 201
        assert response.json()["senderBalance"] == 70

        bob = (await client.get("/api/v1/profiles/me", headers=couple["bob"])).json()["profile"]
        assert bob["hearts"] == 115

        stats = (await client.get("/api/v1/gifts/stats", headers=couple["bob"])).json()["stats"]
        assert stats["totalGifts"] == 1
        assert stats["totalHeartsSpent"] == 30

    @pytest.mark.asyncio
    async def test_insufficient_hearts(self, client: AsyncClient, couple) -> None:
        body = {"giftId": "car", "emoji": "C", "label": "Car", "hearts": 1000}
        response = await client.post("/api/v1/gifts", json=body, headers=couple["alice"])
        assert response.status_code == 402
        assert response.json()["errorCode"] == "InsufficientHearts"

    @pytest.mark.asyncio
    async def test_negative_cost_rejected_by_schema(self, client: AsyncClient, couple) -> None:
        body = {"giftId": "rose", "emoji": "R", "label": "Rose", "hearts": -5}
        response = await client.post("/api/v1/gifts", json=body, headers=couple["alice"])
        assert response.status_code == 422


class TestDatesApi:
    @pytest.mark.asyncio
    async def test_dates_lifecycle(self, client: AsyncClient, couple) -> None:
        saved = await client.put("/api/v1/dates/anniversary", json={"date": "2020-06-01"}, headers=couple["alice"])
        assert saved.status_code == 200

        added = await client.post(
            "/api/v1/dates", json={"title": "Trip", "date": "2030-01-01"}, headers=couple["bob"]
        )
        assert added.status_code == 201
        date_id = added.json()["id"]

        patched = await client.patch(f"/api/v1/dates/{date_id}", json={"note": "pack"}, headers=couple["alice"])
        assert patched.json()["date"]["note"] == "pack"

        listing = (await client.get("/api/v1/dates", headers=couple["alice"])).json()
        assert listing["anniversary"] == "2020-06-01"
        assert listing["yearsTogether"] >= 5
        assert any(d["id"] == date_id for d in listing["dates"])

        assert (await client.delete(f"/api/v1/dates/{date_id}", headers=couple["bob"])).status_code == 200
        missing = await client.delete(f"/api/v1/dates/{date_id}", headers=couple["bob"])
        assert missing.status_code == 404


class TestPetApi:
    @pytest.mark.asyncio
    async def test_pet(self, client: AsyncClient, couple) -> None:
        pet = (await client.get("/api/v1/pet", headers=couple["alice"])).json()["pet"]
        assert (pet["happiness"], pet["hunger"]) == (80, 50)

        fed = (await client.post("/api/v1/pet/feed", headers=couple["bob"])).json()["pet"]
        assert (fed["happiness"], fed["hunger"]) == (85, 70)
        assert fed["lastFed"] is not None

        renamed = (await client.patch("/api/v1/pet", json={"name": "Oink"}, headers=couple["alice"])).json()["pet"]
        assert renamed["name"] == "Oink"
        assert renamed["hunger"] == 70

    @pytest.mark.asyncio
    async def test_unknown_action(self, client: AsyncClient, couple) -> None:
        response = await client.post("/api/v1/pet/dance", headers=couple["alice"])
        assert response.status_code == 422
