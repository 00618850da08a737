"""Tests for admin endpoints."""

import pytest
from httpx import AsyncClient

from app.config import settings
from app.services.featured_service import city_today, week_start


class TestAdminAuthRequirement:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("post", "/api/admin/featured"),
            ("post", "/api/admin/rotation/run"),
            ("get", "/api/admin/featured/history"),
            ("get", "/api/admin/yelp/status"),
            ("delete", "/api/admin/cache"),
        ],
    )
    async def test_admin_endpoints_require_secret(self, client: AsyncClient, method: str, path: str) -> None:
        response = await client.request(method, path, json={})
        assert response.status_code == 403
        assert response.json()["error"] == "ADMIN_REQUIRED"

    @pytest.mark.asyncio
    async def test_wrong_secret(self, client: AsyncClient) -> None:
        response = await client.get("/api/admin/yelp/status", headers={"X-Admin-Secret": "guess"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_placeholder_secret_is_refused(self, client: AsyncClient, monkeypatch) -> None:
        monkeypatch.setattr(settings, "admin_api_secret", "your_admin_secret_here")
        response = await client.get("/api/admin/yelp/status", headers={"X-Admin-Secret": "your_admin_secret_here"})
        assert response.status_code == 403
        assert response.json()["error"] == "ADMIN_REQUIRED"

    @pytest.mark.asyncio
    async def test_regular_user_is_refused(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.get("/api/admin/yelp/status", headers=auth_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_user_is_allowed(self, client: AsyncClient, make_user, token_headers) -> None:
        admin = await make_user("+15125550500", "Admin", is_admin=True)
        response = await client.get("/api/admin/yelp/status", headers=token_headers(admin))
        assert response.status_code == 200


class TestAdminFeatured:
    @pytest.mark.asyncio
    async def test_set_featured(
        self,
        client: AsyncClient,
        admin_headers: dict,
        austin: dict,
        restaurant: dict,
    ) -> None:
        response = await client.post(
            "/api/admin/featured",
            json={"restaurantId": str(restaurant["id"]), "customDescription": "Brisket week"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["selectionSource"] == "manual"
        assert data["customDescription"] == "Brisket week"
        assert data["weekStartDate"] == week_start(city_today(austin)).isoformat()

        current = await client.get("/api/restaurants/current")
        assert current.json()["data"]["id"] == str(restaurant["id"])

    @pytest.mark.asyncio
    async def test_history_and_stats(
        self,
        client: AsyncClient,
        admin_headers: dict,
        restaurant: dict,
    ) -> None:
        await client.post(
            "/api/admin/featured",
            json={"restaurantId": str(restaurant["id"])},
            headers=admin_headers,
        )

        history = await client.get("/api/admin/featured/history?city=austin", headers=admin_headers)
        assert [record["restaurant"]["name"] for record in history.json()["data"]] == [restaurant["name"]]

        stats = await client.get("/api/admin/featured/stats", headers=admin_headers)
        data = stats.json()["data"]
        assert data["totalFeatured"] == 1
        assert data["current"] == restaurant["name"]

    @pytest.mark.asyncio
    async def test_run_rotation_for_city(
        self,
        client: AsyncClient,
        admin_headers: dict,
        restaurant: dict,
    ) -> None:
        response = await client.post(
            "/api/admin/rotation/run",
            json={"citySlug": "austin", "weekStartDate": "2025-07-09"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["results"] == {"austin": "ok"}
        assert data["featured"]["weekStartDate"] == "2025-07-07"
        assert data["featured"]["restaurant"]["id"] == str(restaurant["id"])

    @pytest.mark.asyncio
    async def test_run_rotation_for_all_cities(
        self,
        client: AsyncClient,
        admin_headers: dict,
        restaurant: dict,
    ) -> None:
        response = await client.post("/api/admin/rotation/run", json={}, headers=admin_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["results"] == {"austin": "ok"}

    @pytest.mark.asyncio
    async def test_run_rotation_reports_failed_cities(self, client: AsyncClient, admin_headers: dict) -> None:
        response = await client.post("/api/admin/rotation/run", json={}, headers=admin_headers)
        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Rotation failed for: austin"
        assert body["data"]["results"] == {"austin": "No restaurant data available"}

    @pytest.mark.asyncio
    async def test_archive(self, client: AsyncClient, admin_headers: dict) -> None:
        response = await client.post("/api/admin/featured/archive", json={"monthsToKeep": 3}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"] == {"archived": 0}


class TestAdminYelp:
    @pytest.mark.asyncio
    async def test_sync_restaurant(self, client: AsyncClient, admin_headers: dict, yelp, austin: dict) -> None:
        yelp.add_business(
            "kemuri-tatsu-ya",
            "Kemuri Tatsu-Ya",
            alias="japanese",
            title="Japanese",
            hours=[{"open": [{"day": 4, "start": "1700", "end": "2200"}]}],
        )

        response = await client.post(
            "/api/admin/restaurants/sync",
            json={"yelpId": "kemuri-tatsu-ya"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["yelpId"] == "kemuri-tatsu-ya"
        assert data["cuisine"] == "Japanese"
        assert data["cityId"] == str(austin["id"])
        assert data["hours"] == {"friday": "5:00 PM - 10:00 PM"}
        assert data["address"] == "100 Congress Ave, Austin, TX 78701"

        again = await client.post(
            "/api/admin/restaurants/sync",
            json={"yelpId": "kemuri-tatsu-ya"},
            headers=admin_headers,
        )
        assert again.json()["data"]["id"] == data["id"]

    @pytest.mark.asyncio
    async def test_yelp_status_and_cache(self, client: AsyncClient, admin_headers: dict, yelp) -> None:
        await client.get("/api/restaurants/search?term=tacos")

        status = (await client.get("/api/admin/yelp/status", headers=admin_headers)).json()["data"]
        assert status["configured"] is True
        assert status["health"]["down"] is False
        assert status["rateLimit"]["minute"]["current"] == 1
        assert status["queue"]["length"] == 0

        cleared = await client.delete("/api/admin/cache", headers=admin_headers)
        assert cleared.json()["data"] == {"cleared": 1}
