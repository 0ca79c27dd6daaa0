"""API tests for profile endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient


async def signup(client: AsyncClient, headers: dict, name: str) -> dict:
    response = await client.post("/api/v1/profiles", json={"email": f"{name}@example.com", "displayName": name}, headers=headers)
    assert response.status_code in (200, 201), response.text
    return response.json()["profile"]


class TestProfilesApi:
    @pytest.mark.asyncio
    async def test_requires_token(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/profiles/me")
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_rejects_bad_token(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/profiles/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_token_without_profile(self, client: AsyncClient, auth_headers) -> None:
        response = await client.get("/api/v1/profiles/me", headers=auth_headers("ghost"))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_create_then_read(self, client: AsyncClient, auth_headers) -> None:
        headers = auth_headers("alice")
        response = await client.post("/api/v1/profiles", json={"displayName": "Alice"}, headers=headers)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["profile"]["hearts"] == 100

        again = await client.post("/api/v1/profiles", json={"displayName": "Other"}, headers=headers)
        assert again.status_code == 200
        assert again.json()["created"] is False

        me = await client.get("/api/v1/profiles/me", headers=headers)
        assert me.json()["profile"]["displayName"] == "Alice"

    @pytest.mark.asyncio
    async def test_patch_me(self, client: AsyncClient, auth_headers) -> None:
        headers = auth_headers("alice")
        await signup(client, headers, "Alice")
        response = await client.patch(
            "/api/v1/profiles/me", json={"displayName": "Ally", "settings": {"theme": "dark"}}, headers=headers
        )
        assert response.status_code == 200
        profile = response.json()["profile"]
        assert profile["displayName"] == "Ally"
        assert profile["settings"]["theme"] == "dark"
        assert profile["settings"]["soundEnabled"] is True

    @pytest.mark.asyncio
    async def test_adjust_hearts(self, client: AsyncClient, auth_headers) -> None:
        headers = auth_headers("alice")
        await signup(client, headers, "Alice")
        response = await client.post("/api/v1/profiles/me/hearts", json={"delta": -250}, headers=headers)
        assert response.json() == {"success": True, "newBalance": 0, "error": None, "errorCode": None}

    @pytest.mark.asyncio
    async def test_hearts_cannot_be_minted(self, client: AsyncClient, auth_headers) -> None:
        headers = auth_headers("alice")
        await signup(client, headers, "Alice")
        response = await client.post("/api/v1/profiles/me/hearts", json={"delta": 1000}, headers=headers)
        assert response.status_code == 422
        me = await client.get("/api/v1/profiles/me", headers=headers)
        assert me.json()["profile"]["hearts"] == 100

    @pytest.mark.asyncio
    async def test_invite_preview(self, client: AsyncClient, auth_headers) -> None:
        bob = await signup(client, auth_headers("bob"), "Bob")
        await signup(client, auth_headers("alice"), "Alice")
        response = await client.get(f"/api/v1/profiles/invite/{bob['inviteCode'].lower()}", headers=auth_headers("alice"))
        assert response.json()["profile"] == {"id": "bob", "displayName": "Bob", "photoURL": None, "isConnected": False}

        missing = await client.get("/api/v1/profiles/invite/ZZZZZZ", headers=auth_headers("alice"))
        assert missing.json()["profile"] is None

    @pytest.mark.asyncio
    async def test_delete_me(self, client: AsyncClient, auth_headers) -> None:
        headers = auth_headers("alice")
        await signup(client, headers, "Alice")
        assert (await client.delete("/api/v1/profiles/me", headers=headers)).status_code == 200
        assert (await client.get("/api/v1/profiles/me", headers=headers)).status_code == 401
