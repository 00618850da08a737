"""Tests for authentication, the user profile and the error envelope."""

from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient
from jose import jwt

from app.config import settings
from app.core.security import create_access_token

SUPABASE_SECRET = "test-supabase-secret"


def _supabase_token(sub: str = "supabase-user-1", **claims) -> str:
    payload = {
        "sub": sub,
        "aud": "authenticated",
        "exp": datetime.now(UTC) + timedelta(hours=1),
        **claims,
    }
    return jwt.encode(payload, SUPABASE_SECRET, algorithm="HS256")


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient) -> None:
        response = await client.get("/api/users/me")
        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "UNAUTHORIZED"
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient) -> None:
        response = await client.get("/api/users/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self, client: AsyncClient, test_user: dict) -> None:
        token = create_access_token({"sub": str(test_user["id"])}, expires_delta=timedelta(minutes=-1))
        response = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_deactivated_account(self, client: AsyncClient, make_user, token_headers) -> None:
        user = await make_user("+15125550400", "Former Member", is_active=False)
        response = await client.get("/api/users/me", headers=token_headers(user))
        assert response.status_code == 403
        assert response.json()["error"] == "ACCOUNT_DEACTIVATED"

    @pytest.mark.asyncio
    async def test_supabase_token_creates_user(self, client: AsyncClient) -> None:
        token = _supabase_token(
            email="ana@example.com",
            email_confirmed_at="2025-07-01T00:00:00Z",
            user_metadata={"full_name": "Ana Diaz", "avatar_url": "https://cdn.example.com/ana.png"},
        )
        headers = {"Authorization": f"Bearer {token}"}

        first = await client.get("/api/users/me", headers=headers)
        assert first.status_code == 200
        data = first.json()["data"]
        assert data["provider"] == "supabase"
        assert data["name"] == "Ana Diaz"
        assert data["email"] == "ana@example.com"
        assert data["emailVerified"] is True

        second = await client.get("/api/users/me", headers=headers)
        assert second.json()["data"]["id"] == data["id"]

    @pytest.mark.asyncio
    async def test_supabase_token_wrong_audience(self, client: AsyncClient) -> None:
        token = _supabase_token(aud="anon")
        response = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_placeholder_supabase_secret_is_not_trusted(self, client: AsyncClient, monkeypatch) -> None:
        placeholder = "your_supabase_jwt_secret_here"
        monkeypatch.setattr(settings, "supabase_jwt_secret", placeholder)
        payload = {"sub": "forged-user", "aud": "authenticated", "exp": datetime.now(UTC) + timedelta(hours=1)}
        token = jwt.encode(payload, placeholder, algorithm="HS256")

        response = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestProfile:
    @pytest.mark.asyncio
    async def test_get_profile(self, client: AsyncClient, auth_headers: dict, test_user: dict) -> None:
        response = await client.get("/api/users/me", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == str(test_user["id"])
        assert data["phone"] == test_user["phone"]
        assert data["isAdmin"] is False

    @pytest.mark.asyncio
    async def test_update_profile(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.patch(
            "/api/users/me",
            json={"name": "Taylor Swift-Food", "avatarUrl": "https://cdn.example.com/t.png"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Taylor Swift-Food"
        assert data["avatarUrl"] == "https://cdn.example.com/t.png"

    @pytest.mark.asyncio
    async def test_update_rejects_empty_name(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.patch("/api/users/me", json={"name": ""}, headers=auth_headers)
        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "name"


class TestErrorEnvelope:
    @pytest.mark.asyncio
    async def test_unknown_route(self, client: AsyncClient) -> None:
        response = await client.get("/api/does-not-exist")
        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_method_not_allowed(self, client: AsyncClient) -> None:
        response = await client.delete("/api/cities")
        assert response.status_code == 405
        assert response.json()["error"] == "METHOD_NOT_ALLOWED"

    @pytest.mark.asyncio
    async def test_malformed_uuid(self, client: AsyncClient) -> None:
        response = await client.get("/api/restaurants/not-a-uuid")
        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"
