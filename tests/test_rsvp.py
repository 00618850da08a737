"""Tests for RSVP endpoints and the one-RSVP-per-restaurant rule."""

import asyncio
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import AsyncSessionLocal
from app.models.rsvps import rsvps
from app.schemas.rsvp import DAYS, Day, RSVPStatus
from app.services.featured_service import FeaturedRestaurantService, city_today
from app.services.rsvp_service import RSVPService


async def _rsvp_rows(db_session: AsyncSession, user_id) -> list[dict]:
    result = await db_session.execute(select(rsvps).where(rsvps.c.user_id == user_id))
    return [dict(row) for row in result.mappings().all()]


class TestCreateRSVP:
    @pytest.mark.asyncio
    async def test_create_rsvp_for_restaurant(
        self,
        client: AsyncClient,
        auth_headers: dict,
        restaurant: dict,
    ) -> None:
        response = await client.post(
            "/api/rsvp",
            json={"day": "friday", "restaurantId": str(restaurant["id"])},
            headers=auth_headers,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["day"] == "friday"
        assert body["data"]["status"] == "going"
        assert body["data"]["restaurantId"] == str(restaurant["id"])

    @pytest.mark.asyncio
    async def test_second_rsvp_replaces_first(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        auth_headers: dict,
        test_user: dict,
        restaurant: dict,
    ) -> None:
        await client.post(
            "/api/rsvp",
            json={"day": "friday", "restaurantId": str(restaurant["id"])},
            headers=auth_headers,
        )
        response = await client.post(
            "/api/rsvp",
            json={"day": "saturday", "status": "maybe", "restaurantId": str(restaurant["id"])},
            headers=auth_headers,
        )
        assert response.status_code == 201

        rows = await _rsvp_rows(db_session, test_user["id"])
        assert len(rows) == 1
        assert rows[0]["day"] == "saturday"
        assert rows[0]["status"] == "maybe"

        counts = await client.get(f"/api/rsvp/counts?restaurantId={restaurant['id']}")
        data = counts.json()["data"]
        assert data["counts"]["friday"] == 0
        assert data["counts"]["saturday"] == 0
        assert data["totalGoing"] == 0

    @pytest.mark.asyncio
    async def test_defaults_to_current_featured_restaurant(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        auth_headers: dict,
        austin: dict,
        restaurant: dict,
    ) -> None:
        await FeaturedRestaurantService(db_session).set_custom_featured(
            restaurant["id"], city_today(austin), None, austin["id"]
        )

        response = await client.post("/api/rsvp", json={"day": "wednesday"}, headers=auth_headers)
        assert response.status_code == 201
        assert response.json()["data"]["restaurantId"] == str(restaurant["id"])

    @pytest.mark.asyncio
    async def test_no_current_restaurant(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.post("/api/rsvp", json={"day": "monday"}, headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "NO_CURRENT_RESTAURANT"

    @pytest.mark.asyncio
    async def test_unknown_restaurant(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.post(
            "/api/rsvp",
            json={"day": "monday", "restaurantId": str(uuid4())},
            headers=auth_headers,
        )
        assert response.status_code == 404
        assert response.json()["error"] == "RESTAURANT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_invalid_day(self, client: AsyncClient, auth_headers: dict, restaurant: dict) -> None:
        response = await client.post(
            "/api/rsvp",
            json={"day": "someday", "restaurantId": str(restaurant["id"])},
            headers=auth_headers,
        )
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["errors"][0]["field"] == "day"

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient, restaurant: dict) -> None:
        response = await client.post(
            "/api/rsvp",
            json={"day": "friday", "restaurantId": str(restaurant["id"])},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHORIZED"


class TestConcurrentRSVP:
    @pytest.mark.asyncio
    async def test_concurrent_requests_leave_one_row(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        auth_headers: dict,
        test_user: dict,
        restaurant: dict,
    ) -> None:
        responses = await asyncio.gather(
            client.post(
                "/api/rsvp",
                json={"day": "thursday", "restaurantId": str(restaurant["id"])},
                headers=auth_headers,
            ),
            client.post(
                "/api/rsvp",
                json={"day": "friday", "restaurantId": str(restaurant["id"])},
                headers=auth_headers,
            ),
        )
        assert [response.status_code for response in responses] == [201, 201]

        rows = await _rsvp_rows(db_session, test_user["id"])
        assert len(rows) == 1
        assert rows[0]["day"] in {"thursday", "friday"}

    @pytest.mark.asyncio
    async def test_concurrent_service_calls_in_separate_sessions(
        self,
        db_session: AsyncSession,
        test_user: dict,
        restaurant: dict,
    ) -> None:
        async def save(day: Day) -> dict:
            async with AsyncSessionLocal() as session:
                return await RSVPService(session).create_or_replace_rsvp(
                    test_user["id"], day, RSVPStatus.GOING, restaurant_id=restaurant["id"]
                )

        await asyncio.gather(*(save(day) for day in (Day.MONDAY, Day.TUESDAY, Day.SUNDAY)))

        count = (
            await db_session.execute(
                select(func.count())
                .select_from(rsvps)
                .where(rsvps.c.user_id == test_user["id"], rsvps.c.restaurant_id == restaurant["id"])
            )
        ).scalar_one()
        assert count == 1


class TestRSVPCounts:
    @pytest.mark.asyncio
    async def test_counts_include_every_day(self, client: AsyncClient, restaurant: dict) -> None:
        response = await client.get(f"/api/rsvp/counts?restaurantId={restaurant['id']}")
        assert response.status_code == 200
        data = response.json()["data"]
        assert list(data["counts"]) == DAYS
        assert set(data["counts"].values()) == {0}
        assert data["totalGoing"] == 0

    @pytest.mark.asyncio
    async def test_counts_only_going(
        self,
        client: AsyncClient,
        make_user,
        token_headers,
        restaurant: dict,
    ) -> None:
        plans = [("friday", "going"), ("friday", "going"), ("saturday", "going"), ("saturday", "maybe")]
        for index, (day, status) in enumerate(plans):
            user = await make_user(f"+1512555020{index}", f"Guest {index}")
            response = await client.post(
                "/api/rsvp",
                json={"day": day, "status": status, "restaurantId": str(restaurant["id"])},
                headers=token_headers(user),
            )
            assert response.status_code == 201

        response = await client.get(f"/api/rsvp/counts?restaurantId={restaurant['id']}")
        data = response.json()["data"]
        assert data["counts"]["friday"] == 2
        assert data["counts"]["saturday"] == 1
        assert data["counts"]["monday"] == 0
        assert data["totalGoing"] == 3


class TestListAndDeleteRSVP:
    @pytest.mark.asyncio
    async def test_list_includes_restaurant_summary(
        self,
        client: AsyncClient,
        auth_headers: dict,
        restaurant: dict,
    ) -> None:
        await client.post(
            "/api/rsvp",
            json={"day": "friday", "restaurantId": str(restaurant["id"])},
            headers=auth_headers,
        )

        response = await client.get("/api/rsvp", headers=auth_headers)
        assert response.status_code == 200
        items = response.json()["data"]
        assert len(items) == 1
        assert items[0]["restaurant"]["name"] == "Franklin Barbecue"

    @pytest.mark.asyncio
    async def test_delete_rsvp(self, client: AsyncClient, auth_headers: dict, restaurant: dict) -> None:
        await client.post(
            "/api/rsvp",
            json={"day": "friday", "restaurantId": str(restaurant["id"])},
            headers=auth_headers,
        )

        response = await client.delete(f"/api/rsvp/{restaurant['id']}", headers=auth_headers)
        assert response.status_code == 200

        response = await client.delete(f"/api/rsvp/{restaurant['id']}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "RSVP_NOT_FOUND"
