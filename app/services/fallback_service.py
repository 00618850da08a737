"""Yelp outage tracking and local-database answers while Yelp is down."""

import json
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.store import KeyValueStore
from app.models.restaurants import restaurants

logger = structlog.get_logger()

HEALTH_KEY = "health:yelp"


def local_to_business(row: dict[str, Any]) -> dict[str, Any]:
    """Shape a local restaurant like a Yelp business so clients render both alike."""
    return {
        "id": row["yelp_id"] or str(row["id"]),
        "localId": str(row["id"]),
        "name": row["name"],
        "image_url": row["image_url"],
        "url": row["website"],
        "price": row["price"],
        "rating": row["rating"],
        "review_count": row["review_count"],
        "categories": [{"title": title} for title in (row["categories"] or [])],
        "coordinates": {"latitude": row["latitude"], "longitude": row["longitude"]},
        "location": {"display_address": [row["address"]] if row["address"] else []},
        "display_phone": row["phone"],
        "photos": row["photos"] or [],
        "hours": row["hours"] or {},
    }


class FallbackService:
    """Tracks whether Yelp is reachable and serves local data when it is not.

    Health state lives in the shared store so every API instance agrees on
    whether Yelp is down.
    """

    def __init__(
        self,
        db: AsyncSession,
        store: KeyValueStore,
        clock: Callable[[], float] = time.time,
    ):
        self.db = db
        self.store = store
        self.clock = clock
        self.recheck_interval = settings.yelp_recheck_interval_seconds

    def get_health(self) -> dict[str, Any]:
        raw = self.store.get(HEALTH_KEY)
        if raw:
            return json.loads(raw)
        return {"down": False, "down_since": None, "last_check": None, "consecutive_failures": 0}

    def _save(self, health: dict[str, Any]) -> None:
        self.store.set(HEALTH_KEY, json.dumps(health))

    def is_down(self) -> bool:
        return self.get_health()["down"]

    def should_retry_yelp(self) -> bool:
        """While down, let one call through per recheck interval."""
        health = self.get_health()
        if not health["down"]:
            return True
        last_check = health["last_check"] or 0
        return self.clock() - last_check >= self.recheck_interval

    def mark_down(self, error: str) -> None:
        health = self.get_health()
        now = self.clock()
        if not health["down"]:
            logger.warning("yelp_marked_down", error=error)
            health["down_since"] = now
        health.update(down=True, last_check=now, consecutive_failures=health["consecutive_failures"] + 1)
        self._save(health)

    def mark_up(self) -> None:
        health = self.get_health()
        if health["down"]:
            logger.info("yelp_recovered", down_since=health["down_since"])
        if health["down"] or health["consecutive_failures"] or health["last_check"] is None:
            self._save({"down": False, "down_since": None, "last_check": self.clock(), "consecutive_failures": 0})

    def status(self) -> dict[str, Any]:
        health = self.get_health()

        def iso(value: float | None) -> str | None:
            return datetime.fromtimestamp(value, UTC).isoformat() if value else None

        return {
            "down": health["down"],
            "downSince": iso(health["down_since"]),
            "lastCheck": iso(health["last_check"]),
            "consecutiveFailures": health["consecutive_failures"],
        }

    async def search(self, params: dict[str, Any], city_id: UUID | None = None) -> dict[str, Any] | None:
        """Best rated local restaurants matching the search; None when there are none."""
        conditions = []
        if city_id:
            conditions.append(restaurants.c.city_id == city_id)
        term = params.get("term")
        if term and term != "restaurants":
            pattern = f"%{term}%"
            conditions.append(or_(restaurants.c.name.ilike(pattern), restaurants.c.cuisine.ilike(pattern)))
        if params.get("categories"):
            conditions.append(restaurants.c.cuisine.ilike(f"%{params['categories'].split(',')[0]}%"))

        query = (
            select(restaurants)
            .where(*conditions)
            .order_by(restaurants.c.rating.desc().nulls_last(), restaurants.c.review_count.desc())
            .offset(params.get("offset") or 0)
            .limit(params.get("limit") or 20)
        )
        rows = (await self.db.execute(query)).mappings().all()
        if not rows:
            return None

        return {
            "businesses": [local_to_business(dict(row)) for row in rows],
            "total": len(rows),
            "region": None,
        }

    async def details(self, yelp_id: str) -> dict[str, Any] | None:
        result = await self.db.execute(select(restaurants).where(restaurants.c.yelp_id == yelp_id))
        row = result.mappings().first()
        return local_to_business(dict(row)) if row else None
