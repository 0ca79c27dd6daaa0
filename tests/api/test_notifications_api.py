"""API tests for the notification inbox."""

from __future__ import annotations

import pytest
from httpx import AsyncClient


class TestNotificationsApi:
    @pytest.mark.asyncio
    async def test_welcome_then_read(self, client: AsyncClient, auth_headers) -> None:
        headers = auth_headers("alice")
        await client.post("/api/v1/profiles", json={"displayName": "Alice"}, headers=headers)

        inbox = (await client.get("/api/v1/notifications", headers=headers)).json()
        assert inbox["total"] == 1
        welcome = inbox["notifications"][0]
        assert welcome["type"] == "welcome"
        assert welcome["read"] is False

        assert (await client.get("/api/v1/notifications/unread-count", headers=headers)).json()["count"] == 1
        marked = await client.post(f"/api/v1/notifications/{welcome['id']}/read", headers=headers)
        assert marked.status_code == 200
        assert (await client.get("/api/v1/notifications/unread-count", headers=headers)).json()["count"] == 0

    @pytest.mark.asyncio
    async def test_cannot_read_someone_elses(self, client: AsyncClient, auth_headers) -> None:
        await client.post("/api/v1/profiles", json={"displayName": "Alice"}, headers=auth_headers("alice"))
        inbox = (await client.get("/api/v1/notifications", headers=auth_headers("alice"))).json()
        response = await client.post(
            f"/api/v1/notifications/{inbox['notifications'][0]['id']}/read", headers=auth_headers("mallory")
        )
        assert response.status_code == 404
        assert response.json()["errorCode"] == "NotificationNotFound"

    @pytest.mark.asyncio
    async def test_partner_events_and_read_all(self, client: AsyncClient, auth_headers) -> None:
        await client.post("/api/v1/profiles", json={"displayName": "Alice"}, headers=auth_headers("alice"))
        bob = (await client.post("/api/v1/profiles", json={"displayName": "Bob"}, headers=auth_headers("bob"))).json()
        await client.post(
            "/api/v1/couples/connect", json={"inviteCode": bob["profile"]["inviteCode"]}, headers=auth_headers("alice")
        )
        await client.post("/api/v1/notes", json={"content": "hey"}, headers=auth_headers("alice"))

        inbox = (await client.get("/api/v1/notifications", headers=auth_headers("bob"))).json()
        assert [n["type"] for n in inbox["notifications"]] == ["note", "partner", "welcome"]

        paged = (await client.get("/api/v1/notifications", params={"per_page": 1, "page": 2}, headers=auth_headers("bob"))).json()
        assert paged["total"] == 3
        assert [n["type"] for n in paged["notifications"]] == ["partner"]

        read_all = await client.post("/api/v1/notifications/read-all", headers=auth_headers("bob"))
        assert read_all.json()["count"] == 3
