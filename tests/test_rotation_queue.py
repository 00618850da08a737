"""Tests for the admin rotation queue and the stored rotation schedule."""

import uuid
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestException, ConflictException, NotFoundException
from app.jobs.rotation import run_due_rotations
from app.services.featured_service import FeaturedRestaurantService
from app.services.rotation_service import RotationConfigService, RotationQueueService, queue_health
from app.services.yelp_service import build_yelp_service

CHICAGO = ZoneInfo("America/Chicago")
WEEK = date(2025, 7, 7)
# Monday morning before the default Tuesday 09:00 slot
MONDAY = datetime(2025, 7, 7, 10, 0, tzinfo=CHICAGO)


async def _names(queue: RotationQueueService, city_id) -> list[tuple[str, int]]:
    return [
        (item["restaurant"]["name"], item["position"])
        for item in await queue.list_queue(city_id)
        if item["status"] == "pending"
    ]


@pytest.fixture
def lineup(make_restaurant):
    """Create restaurants by name."""

    async def _make(*names: str) -> list[dict]:
        return [await make_restaurant(name=name) for name in names]

    return _make


class TestQueueHealth:
    def test_thresholds(self) -> None:
        assert queue_health(4) == "healthy"
        assert queue_health(2) == "low"
        assert queue_health(1) == "critical"
        assert queue_health(0) == "critical"


class TestQueueService:
    @pytest.mark.asyncio
    async def test_add_appends_and_inserts(self, db_session: AsyncSession, austin: dict, lineup) -> None:
        uchi, ramen, franklin, veracruz = await lineup("Uchi", "Ramen Tatsu-Ya", "Franklin", "Veracruz")
        queue = RotationQueueService(db_session)

        for restaurant in (uchi, ramen, franklin):
            await queue.add(austin["id"], restaurant["id"])
        item = await queue.add(austin["id"], veracruz["id"], position=2, notes="Taco week")

        assert item["position"] == 2
        assert item["notes"] == "Taco week"
        assert await _names(queue, austin["id"]) == [
            ("Uchi", 1),
            ("Veracruz", 2),
            ("Ramen Tatsu-Ya", 3),
            ("Franklin", 4),
        ]

    @pytest.mark.asyncio
    async def test_position_past_end_appends(self, db_session: AsyncSession, austin: dict, restaurant: dict) -> None:
        item = await RotationQueueService(db_session).add(austin["id"], restaurant["id"], position=9)
        assert item["position"] == 1

    @pytest.mark.asyncio
    async def test_duplicate_is_rejected(self, db_session: AsyncSession, austin: dict, restaurant: dict) -> None:
        queue = RotationQueueService(db_session)
        await queue.add(austin["id"], restaurant["id"])

        with pytest.raises(ConflictException) as exc_info:
            await queue.add(austin["id"], restaurant["id"])
        assert exc_info.value.error_code == "ALREADY_IN_QUEUE"

    @pytest.mark.asyncio
    async def test_unknown_restaurant(self, db_session: AsyncSession, austin: dict) -> None:
        with pytest.raises(NotFoundException) as exc_info:
            await RotationQueueService(db_session).add(austin["id"], uuid.uuid4())
        assert exc_info.value.error_code == "RESTAURANT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_remove_closes_gap(self, db_session: AsyncSession, austin: dict, lineup) -> None:
        uchi, ramen, franklin = await lineup("Uchi", "Ramen Tatsu-Ya", "Franklin")
        queue = RotationQueueService(db_session)
        await queue.add(austin["id"], uchi["id"])
        middle = await queue.add(austin["id"], ramen["id"])
        await queue.add(austin["id"], franklin["id"])

        await queue.remove(middle["id"])

        assert await _names(queue, austin["id"]) == [("Uchi", 1), ("Franklin", 2)]
        with pytest.raises(NotFoundException):
            await queue.remove(middle["id"])

    @pytest.mark.asyncio
    async def test_reorder(self, db_session: AsyncSession, austin: dict, lineup) -> None:
        queue = RotationQueueService(db_session)
        items = [await queue.add(austin["id"], r["id"]) for r in await lineup("Uchi", "Ramen Tatsu-Ya", "Franklin")]

        await queue.reorder(austin["id"], [items[2]["id"], items[0]["id"], items[1]["id"]])
        assert await _names(queue, austin["id"]) == [("Franklin", 1), ("Uchi", 2), ("Ramen Tatsu-Ya", 3)]

    @pytest.mark.asyncio
    async def test_reorder_must_list_every_pending_item(
        self,
        db_session: AsyncSession,
        austin: dict,
        lineup,
    ) -> None:
        queue = RotationQueueService(db_session)
        items = [await queue.add(austin["id"], r["id"]) for r in await lineup("Uchi", "Ramen Tatsu-Ya")]

        for order in ([items[0]["id"]], [items[0]["id"], items[0]["id"]]):
            with pytest.raises(BadRequestException) as exc_info:
                await queue.reorder(austin["id"], order)
            assert exc_info.value.error_code == "INVALID_QUEUE_ORDER"
        assert await _names(queue, austin["id"]) == [("Uchi", 1), ("Ramen Tatsu-Ya", 2)]

    @pytest.mark.asyncio
    async def test_skip_moves_to_end(self, db_session: AsyncSession, austin: dict, lineup) -> None:
        queue = RotationQueueService(db_session)
        items = [await queue.add(austin["id"], r["id"]) for r in await lineup("Uchi", "Ramen Tatsu-Ya", "Franklin")]

        skipped = await queue.skip(items[0]["id"], reason="Closed for renovation")

        assert skipped["position"] == 3
        assert skipped["notes"] == "Skipped: Closed for renovation"
        assert await _names(queue, austin["id"]) == [("Ramen Tatsu-Ya", 1), ("Franklin", 2), ("Uchi", 3)]

    @pytest.mark.asyncio
    async def test_skip_and_remove(self, db_session: AsyncSession, austin: dict, lineup) -> None:
        queue = RotationQueueService(db_session)
        items = [await queue.add(austin["id"], r["id"]) for r in await lineup("Uchi", "Ramen Tatsu-Ya")]

        assert await queue.skip(items[0]["id"], action="remove") is None
        assert await _names(queue, austin["id"]) == [("Ramen Tatsu-Ya", 1)]

    @pytest.mark.asyncio
    async def test_insert_urgent(self, db_session: AsyncSession, austin: dict, lineup) -> None:
        uchi, ramen, franklin = await lineup("Uchi", "Ramen Tatsu-Ya", "Franklin")
        queue = RotationQueueService(db_session)
        await queue.add(austin["id"], uchi["id"])
        await queue.add(austin["id"], ramen["id"])

        await queue.insert_urgent(austin["id"], franklin["id"], notes="Anniversary")
        assert await _names(queue, austin["id"]) == [("Franklin", 1), ("Uchi", 2), ("Ramen Tatsu-Ya", 3)]

        # Already queued further back: moved to the front
        await queue.insert_urgent(austin["id"], ramen["id"])
        assert await _names(queue, austin["id"]) == [("Ramen Tatsu-Ya", 1), ("Franklin", 2), ("Uchi", 3)]

        with pytest.raises(ConflictException) as exc_info:
            await queue.insert_urgent(austin["id"], ramen["id"])
        assert exc_info.value.error_code == "ALREADY_NEXT"

    @pytest.mark.asyncio
    async def test_stats(self, db_session: AsyncSession, austin: dict, lineup) -> None:
        queue = RotationQueueService(db_session)
        for restaurant in await lineup("Uchi", "Ramen Tatsu-Ya"):
            await queue.add(austin["id"], restaurant["id"])

        stats = await queue.queue_stats(austin["id"], min_queue_size=3)
        assert stats == {
            "pending": 2,
            "active": 0,
            "completed": 0,
            "health": "low",
            "minQueueSize": 3,
            "belowMinimum": True,
        }


class TestQueueSelection:
    @pytest.mark.asyncio
    async def test_queue_head_is_featured(self, db_session: AsyncSession, austin: dict, lineup) -> None:
        uchi, ramen = await lineup("Uchi", "Ramen Tatsu-Ya")
        queue = RotationQueueService(db_session)
        head = await queue.add(austin["id"], uchi["id"])
        await queue.add(austin["id"], ramen["id"])
        service = FeaturedRestaurantService(db_session)

        featured = await service.select_featured_restaurant(WEEK, austin)

        assert featured["selection_source"] == "queue"
        assert featured["restaurant_id"] == uchi["id"]
        active = await queue.get_item(head["id"])
        assert (active["status"], active["position"]) == ("active", 0)
        assert await _names(queue, austin["id"]) == [("Ramen Tatsu-Ya", 1)]

        following = await service.select_featured_restaurant(WEEK + timedelta(weeks=1), austin)
        assert following["restaurant_id"] == ramen["id"]
        assert (await queue.get_item(head["id"]))["status"] == "completed"
        assert await _names(queue, austin["id"]) == []

    @pytest.mark.asyncio
    async def test_queue_wins_over_yelp(
        self,
        db_session: AsyncSession,
        austin: dict,
        yelp,
        yelp_client,
        restaurant: dict,
    ) -> None:
        yelp.add_business("la-barbecue", "LA Barbecue", rating=4.7, review_count=1800)
        await RotationQueueService(db_session).add(austin["id"], restaurant["id"])
        service = FeaturedRestaurantService(db_session, build_yelp_service(db_session, yelp_client))

        featured = await service.select_featured_restaurant(WEEK, austin)

        assert featured["selection_source"] == "queue"
        assert featured["restaurant_id"] == restaurant["id"]
        assert yelp.search_calls == 0

    @pytest.mark.asyncio
    async def test_scheduled_week_is_respected(self, db_session: AsyncSession, austin: dict, lineup) -> None:
        holiday, uchi = await lineup("Holiday Pick", "Uchi")
        queue = RotationQueueService(db_session)
        await queue.add(austin["id"], holiday["id"], scheduled_week=WEEK + timedelta(weeks=2))
        await queue.add(austin["id"], uchi["id"])

        featured = await FeaturedRestaurantService(db_session).select_featured_restaurant(WEEK, austin)

        assert featured["restaurant_id"] == uchi["id"]
        assert await _names(queue, austin["id"]) == [("Holiday Pick", 1)]

    @pytest.mark.asyncio
    async def test_active_item_cannot_be_removed(
        self,
        db_session: AsyncSession,
        austin: dict,
        restaurant: dict,
    ) -> None:
        queue = RotationQueueService(db_session)
        item = await queue.add(austin["id"], restaurant["id"])
        await FeaturedRestaurantService(db_session).select_featured_restaurant(WEEK, austin)

        with pytest.raises(BadRequestException) as exc_info:
            await queue.remove(item["id"])
        assert exc_info.value.error_code == "QUEUE_ITEM_ACTIVE"
        with pytest.raises(BadRequestException):
            await queue.skip(item["id"], reason="Too late")


class TestRotationConfig:
    @pytest.mark.asyncio
    async def test_defaults_are_not_saved(self, db_session: AsyncSession, austin: dict) -> None:
        config = await RotationConfigService(db_session).get_config(austin, now=MONDAY)

        assert config["id"] is None
        assert config["mode"] == "automatic"
        assert config["timezone"] == "America/Chicago"
        assert config["next_rotation_at"] == datetime(2025, 7, 8, 9, 0, tzinfo=CHICAGO)

    @pytest.mark.asyncio
    async def test_update_reschedules(self, db_session: AsyncSession, austin: dict) -> None:
        service = RotationConfigService(db_session)
        saved = await service.update_config(
            austin,
            {"rotation_weekday": 0, "rotation_hour": 6, "rotation_minute": 30},
            now=MONDAY,
        )

        assert saved["id"] is not None
        assert saved["next_rotation_at"] == datetime(2025, 7, 14, 6, 30, tzinfo=CHICAGO)

        again = await service.update_config(austin, {"mode": "manual"}, now=MONDAY)
        assert again["id"] == saved["id"]
        assert (await service.get_config(austin))["mode"] == "manual"

    @pytest.mark.asyncio
    async def test_preview(self, db_session: AsyncSession, austin: dict, lineup) -> None:
        queue = RotationQueueService(db_session)
        for restaurant in await lineup("Uchi", "Ramen Tatsu-Ya"):
            await queue.add(austin["id"], restaurant["id"])

        preview = await RotationConfigService(db_session).preview(austin, weeks=3, now=MONDAY)

        assert [slot["weekStartDate"] for slot in preview] == ["2025-07-07", "2025-07-14", "2025-07-21"]
        assert [slot["restaurant"] for slot in preview] == ["Uchi", "Ramen Tatsu-Ya", None]
        assert [slot["source"] for slot in preview] == ["queue", "queue", "auto"]
        assert preview[0]["rotationAt"] == "2025-07-08T09:00:00-05:00"


class TestDueRotations:
    @pytest.mark.asyncio
    async def test_first_check_only_schedules(self, db_session: AsyncSession, austin: dict, yelp_client) -> None:
        assert await run_due_rotations(now=MONDAY, yelp_client=yelp_client) == {}

        config = await RotationConfigService(db_session).get_config(austin)
        assert config["id"] is not None
        assert config["next_rotation_at"] == datetime(2025, 7, 8, 9, 0, tzinfo=CHICAGO)

    @pytest.mark.asyncio
    async def test_due_city_rotates_from_queue(
        self,
        db_session: AsyncSession,
        austin: dict,
        yelp_client,
        restaurant: dict,
    ) -> None:
        await RotationQueueService(db_session).add(austin["id"], restaurant["id"])
        await RotationConfigService(db_session).update_config(austin, {}, now=MONDAY)

        tuesday = datetime(2025, 7, 8, 9, 5, tzinfo=CHICAGO)
        assert await run_due_rotations(now=tuesday, yelp_client=yelp_client) == {"austin": "ok"}

        featured = await FeaturedRestaurantService(db_session).get_featured_for_week(austin["id"], WEEK)
        assert featured["selection_source"] == "queue"
        config = await RotationConfigService(db_session).get_config(austin)
        assert config["last_rotation_at"] == tuesday
        assert config["next_rotation_at"] == datetime(2025, 7, 15, 9, 0, tzinfo=CHICAGO)

        # Nothing is due again until next week
        assert await run_due_rotations(now=tuesday + timedelta(hours=1), yelp_client=yelp_client) == {}

    @pytest.mark.asyncio
    async def test_manual_mode_is_skipped(
        self,
        db_session: AsyncSession,
        austin: dict,
        yelp_client,
        restaurant: dict,
    ) -> None:
        await RotationConfigService(db_session).update_config(austin, {"mode": "manual"}, now=MONDAY)

        assert await run_due_rotations(now=MONDAY + timedelta(days=2), yelp_client=yelp_client) == {}
        assert await FeaturedRestaurantService(db_session).get_featured_for_week(austin["id"], WEEK) is None

    @pytest.mark.asyncio
    async def test_failure_keeps_slot(self, db_session: AsyncSession, austin: dict, yelp_client) -> None:
        await RotationConfigService(db_session).update_config(austin, {}, now=MONDAY)

        tuesday = datetime(2025, 7, 8, 9, 5, tzinfo=CHICAGO)
        results = await run_due_rotations(now=tuesday, yelp_client=yelp_client)

        assert results == {"austin": "No restaurant data available"}
        config = await RotationConfigService(db_session).get_config(austin)
        assert config["next_rotation_at"] == datetime(2025, 7, 8, 9, 0, tzinfo=CHICAGO)
        assert config["last_rotation_at"] is None


class TestQueueEndpoints:
    @pytest.mark.asyncio
    async def test_queue_requires_admin(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.get("/api/admin/queue", headers=auth_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_add_list_and_remove(
        self,
        client: AsyncClient,
        make_user,
        token_headers,
        lineup,
    ) -> None:
        admin = await make_user("+15125550500", "Admin", is_admin=True)
        headers = token_headers(admin)
        uchi, ramen = await lineup("Uchi", "Ramen Tatsu-Ya")

        added = await client.post("/api/admin/queue", json={"restaurantId": str(uchi["id"])}, headers=headers)
        assert added.status_code == 201
        data = added.json()["data"]
        assert data["position"] == 1
        assert data["status"] == "pending"
        assert data["addedBy"] == str(admin["id"])
        assert data["restaurant"]["name"] == "Uchi"

        await client.post("/api/admin/queue", json={"restaurantId": str(ramen["id"])}, headers=headers)
        duplicate = await client.post("/api/admin/queue", json={"restaurantId": str(uchi["id"])}, headers=headers)
        assert duplicate.status_code == 409
        assert duplicate.json()["error"] == "ALREADY_IN_QUEUE"

        listing = (await client.get("/api/admin/queue", headers=headers)).json()["data"]
        assert [item["restaurant"]["name"] for item in listing["items"]] == ["Uchi", "Ramen Tatsu-Ya"]
        assert [item["estimatedWeek"] is not None for item in listing["items"]] == [True, True]
        assert listing["stats"]["pending"] == 2
        assert listing["stats"]["health"] == "low"

        removed = await client.delete(f"/api/admin/queue/{data['id']}", headers=headers)
        assert removed.status_code == 200
        missing = await client.delete(f"/api/admin/queue/{data['id']}", headers=headers)
        assert missing.status_code == 404
        assert missing.json()["error"] == "QUEUE_ITEM_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_reorder_skip_and_urgent(self, client: AsyncClient, admin_headers: dict, lineup) -> None:
        uchi, ramen, franklin = await lineup("Uchi", "Ramen Tatsu-Ya", "Franklin")
        ids = []
        for restaurant in (uchi, ramen):
            response = await client.post(
                "/api/admin/queue", json={"restaurantId": str(restaurant["id"])}, headers=admin_headers
            )
            ids.append(response.json()["data"]["id"])

        reordered = await client.post(
            "/api/admin/queue/reorder", json={"itemIds": list(reversed(ids))}, headers=admin_headers
        )
        assert reordered.status_code == 200
        assert [item["id"] for item in reordered.json()["data"]["items"]] == list(reversed(ids))

        bad = await client.post("/api/admin/queue/reorder", json={"itemIds": ids[:1]}, headers=admin_headers)
        assert bad.status_code == 400
        assert bad.json()["error"] == "INVALID_QUEUE_ORDER"

        skipped = await client.post(
            f"/api/admin/queue/{ids[1]}/skip", json={"reason": "Closed Monday"}, headers=admin_headers
        )
        assert skipped.json()["data"]["position"] == 2
        assert skipped.json()["data"]["notes"] == "Skipped: Closed Monday"

        urgent = await client.post(
            "/api/admin/queue/urgent", json={"restaurantId": str(franklin["id"])}, headers=admin_headers
        )
        assert urgent.status_code == 201
        assert urgent.json()["data"]["position"] == 1
        assert urgent.json()["data"]["addedBy"] is None

        invalid_action = await client.post(
            f"/api/admin/queue/{ids[0]}/skip", json={"action": "postpone"}, headers=admin_headers
        )
        assert invalid_action.status_code == 422


class TestRotationConfigEndpoints:
    @pytest.mark.asyncio
    async def test_get_and_update_config(self, client: AsyncClient, admin_headers: dict) -> None:
        current = (await client.get("/api/admin/rotation/config", headers=admin_headers)).json()["data"]
        assert current["mode"] == "automatic"
        assert current["rotationWeekday"] == 1
        assert current["rotationHour"] == 9

        response = await client.put(
            "/api/admin/rotation/config",
            json={"mode": "manual", "rotationWeekday": 0, "rotationHour": 6, "timezone": "America/New_York"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["mode"] == "manual"
        assert data["timezone"] == "America/New_York"
        assert data["nextRotationAt"] is not None

        status = (await client.get("/api/admin/rotation/status", headers=admin_headers)).json()["data"]
        assert status["mode"] == "manual"
        assert status["queue"]["pending"] == 0

    @pytest.mark.asyncio
    async def test_invalid_timezone(self, client: AsyncClient, admin_headers: dict) -> None:
        response = await client.put(
            "/api/admin/rotation/config", json={"timezone": "Mars/Olympus_Mons"}, headers=admin_headers
        )
        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_preview(self, client: AsyncClient, admin_headers: dict, restaurant: dict) -> None:
        await client.post("/api/admin/queue", json={"restaurantId": str(restaurant["id"])}, headers=admin_headers)

        response = await client.get("/api/admin/rotation/preview?weeks=2", headers=admin_headers)
        slots = response.json()["data"]
        assert len(slots) == 2
        assert slots[0]["restaurant"] == restaurant["name"]
        assert slots[1]["source"] == "auto"

    @pytest.mark.asyncio
    async def test_manual_mode_stops_auto_selection(
        self,
        client: AsyncClient,
        admin_headers: dict,
        restaurant: dict,
    ) -> None:
        await client.put("/api/admin/rotation/config", json={"mode": "manual"}, headers=admin_headers)

        response = await client.get("/api/restaurants/current")
        assert response.status_code == 404
        assert response.json()["error"] == "NO_CURRENT_RESTAURANT"
