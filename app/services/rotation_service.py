"""Admin-curated rotation queue and per-city rotation schedule."""

from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import BadRequestException, ConflictException, NotFoundException
from app.models.restaurants import restaurants
from app.models.rotation import rotation_configs, rotation_queue
from app.services.restaurant_service import RestaurantService

logger = structlog.get_logger()

SKIP_ACTIONS = ("move_to_end", "remove")


def next_run_time(
    now: datetime,
    weekday: int | None = None,
    hour: int | None = None,
    timezone: str | None = None,
    minute: int | None = None,
) -> datetime:
    """Next rotation slot strictly after ``now`` (Tuesday 09:00 Central by default)."""
    weekday = settings.rotation_weekday if weekday is None else weekday
    hour = settings.rotation_hour if hour is None else hour
    minute = settings.rotation_minute if minute is None else minute
    tz = ZoneInfo(timezone or settings.rotation_timezone)

    local = now.astimezone(tz)
    candidate = datetime.combine(local.date(), time(hour, minute), tzinfo=tz)
    candidate += timedelta(days=(weekday - local.weekday()) % 7)
    if candidate <= local:
        candidate += timedelta(weeks=1)
    return candidate


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive values; everything is stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def queue_health(pending: int) -> str:
    if pending > 3:
        return "healthy"
    if pending > 1:
        return "low"
    return "critical"


def _with_restaurant(row: dict) -> dict:
    item = {column: row[column] for column in rotation_queue.c.keys()}
    item["restaurant"] = {
        "id": row["restaurant_id"],
        "name": row["name"],
        "cuisine": row["cuisine"],
        "price": row["price"],
        "area": row["area"],
        "image_url": row["image_url"],
    }
    return item


class RotationQueueService:
    """Service for the ordered list of restaurants admins line up for upcoming weeks.

    Pending items hold positions ``1..n`` per city with no gaps. The item
    currently featured is ``active`` and every earlier one is ``completed``;
    both sit at position 0.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    def _query(self):
        return select(
            rotation_queue,
            restaurants.c.name,
            restaurants.c.cuisine,
            restaurants.c.price,
            restaurants.c.area,
            restaurants.c.image_url,
        ).join(restaurants, restaurants.c.id == rotation_queue.c.restaurant_id)

    async def get_item(self, item_id: UUID) -> dict | None:
        result = await self.db.execute(self._query().where(rotation_queue.c.id == item_id))
        row = result.mappings().first()
        return _with_restaurant(dict(row)) if row else None

    async def get_item_or_404(self, item_id: UUID) -> dict:
        item = await self.get_item(item_id)
        if not item:
            raise NotFoundException("Queue item not found", error_code="QUEUE_ITEM_NOT_FOUND")
        return item

    async def list_queue(
        self,
        city_id: UUID,
        first_week: date | None = None,
        include_completed: bool = False,
    ) -> list[dict]:
        """
        Queue items for a city: the active item, then pending ones in order.

        When ``first_week`` is given, pending items get an ``estimated_week``
        counting one week per item from it.
        """
        statuses = ["active", "pending"] + (["completed"] if include_completed else [])
        query = (
            self._query()
            .where(rotation_queue.c.city_id == city_id, rotation_queue.c.status.in_(statuses))
            .order_by(rotation_queue.c.position, rotation_queue.c.updated_at.desc())
        )
        items = [_with_restaurant(dict(row)) for row in (await self.db.execute(query)).mappings().all()]

        for item in items:
            item["estimated_week"] = None
            if item["status"] == "pending" and first_week is not None:
                item["estimated_week"] = max(
                    first_week + timedelta(weeks=item["position"] - 1),
                    item["scheduled_week"] or first_week,
                )
        return items

    async def _pending_ids(self, city_id: UUID) -> list[UUID]:
        result = await self.db.execute(
            select(rotation_queue.c.id)
            .where(rotation_queue.c.city_id == city_id, rotation_queue.c.status == "pending")
            .order_by(rotation_queue.c.position)
        )
        return list(result.scalars().all())

    async def queue_stats(self, city_id: UUID, min_queue_size: int | None = None) -> dict[str, Any]:
        result = await self.db.execute(
            select(rotation_queue.c.status, func.count())
            .where(rotation_queue.c.city_id == city_id)
            .group_by(rotation_queue.c.status)
        )
        counts = dict(result.all())
        pending = counts.get("pending", 0)
        minimum = settings.rotation_min_queue_size if min_queue_size is None else min_queue_size
        return {
            "pending": pending,
            "active": counts.get("active", 0),
            "completed": counts.get("completed", 0),
            "health": queue_health(pending),
            "minQueueSize": minimum,
            "belowMinimum": pending < minimum,
        }

    async def _shift(self, city_id: UUID, from_position: int, delta: int) -> None:
        await self.db.execute(
            update(rotation_queue)
            .where(
                rotation_queue.c.city_id == city_id,
                rotation_queue.c.status == "pending",
                rotation_queue.c.position >= from_position,
            )
            .values(position=rotation_queue.c.position + delta)
        )

    async def _open_item(self, city_id: UUID, restaurant_id: UUID) -> dict | None:
        result = await self.db.execute(
            select(rotation_queue).where(
                rotation_queue.c.city_id == city_id,
                rotation_queue.c.restaurant_id == restaurant_id,
                rotation_queue.c.status.in_(["pending", "active"]),
            )
        )
        row = result.mappings().first()
        return dict(row) if row else None

    async def add(
        self,
        city_id: UUID,
        restaurant_id: UUID,
        position: int | None = None,
        notes: str | None = None,
        scheduled_week: date | None = None,
        added_by: UUID | None = None,
    ) -> dict:
        """
        Queue a restaurant, at the end or at ``position`` shifting later items down.

        Raises:
            NotFoundException: Unknown restaurant
            ConflictException: Restaurant is already pending or active in the queue
        """
        await RestaurantService(self.db).get_restaurant_or_404(restaurant_id)
        if await self._open_item(city_id, restaurant_id):
            raise ConflictException("Restaurant is already in the rotation queue", error_code="ALREADY_IN_QUEUE")

        size = len(await self._pending_ids(city_id))
        if position is None or position > size:
            position = size + 1
        else:
            await self._shift(city_id, position, 1)

        try:
            result = await self.db.execute(
                rotation_queue.insert()
                .values(
                    city_id=city_id,
                    restaurant_id=restaurant_id,
                    position=position,
                    status="pending",
                    notes=notes,
                    scheduled_week=scheduled_week,
                    added_by=added_by,
                )
                .returning(rotation_queue.c.id)
            )
            item_id = result.scalar_one()
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException(
                "Restaurant is already in the rotation queue", error_code="ALREADY_IN_QUEUE"
            ) from None

        logger.info("queue_item_added", city_id=str(city_id), restaurant_id=str(restaurant_id), position=position)
        return await self.get_item_or_404(item_id)

    async def _detach(self, item: dict) -> None:
        """Delete a pending or completed item and close the gap it leaves."""
        await self.db.execute(delete(rotation_queue).where(rotation_queue.c.id == item["id"]))
        if item["status"] == "pending":
            await self._shift(item["city_id"], item["position"] + 1, -1)

    async def remove(self, item_id: UUID) -> None:
        """
        Remove an item from the queue.

        Raises:
            NotFoundException: Unknown item
            BadRequestException: The item is this week's pick
        """
        item = await self.get_item_or_404(item_id)
        if item["status"] == "active":
            raise BadRequestException("Cannot remove the active queue item", error_code="QUEUE_ITEM_ACTIVE")

        await self._detach(item)
        await self.db.commit()
        logger.info("queue_item_removed", item_id=str(item_id), city_id=str(item["city_id"]))

    async def reorder(self, city_id: UUID, item_ids: list[UUID]) -> list[dict]:
        """
        Rewrite pending positions to follow ``item_ids``.

        Raises:
            BadRequestException: ``item_ids`` is not exactly the city's pending items
        """
        pending = await self._pending_ids(city_id)
        if len(item_ids) != len(set(item_ids)) or set(item_ids) != set(pending):
            raise BadRequestException(
                "Item ids must list every pending queue item exactly once",
                error_code="INVALID_QUEUE_ORDER",
                details={"expected": len(pending), "received": len(item_ids)},
            )

        for position, item_id in enumerate(item_ids, start=1):
            await self.db.execute(
                update(rotation_queue).where(rotation_queue.c.id == item_id).values(position=position)
            )
        await self.db.commit()
        logger.info("queue_reordered", city_id=str(city_id), items=len(item_ids))
        return await self.list_queue(city_id)

    async def skip(self, item_id: UUID, reason: str | None = None, action: str = "move_to_end") -> dict | None:
        """
        Skip a pending item, either to the back of the queue or out of it.

        Returns:
            The moved item, or ``None`` when it was removed

        Raises:
            NotFoundException: Unknown item
            BadRequestException: The item is not pending
        """
        item = await self.get_item_or_404(item_id)
        if item["status"] != "pending":
            raise BadRequestException("Only pending items can be skipped", error_code="QUEUE_ITEM_NOT_PENDING")

        if action == "remove":
            await self._detach(item)
            await self.db.commit()
            logger.info("queue_item_skipped", item_id=str(item_id), action=action, reason=reason)
            return None

        last = len(await self._pending_ids(item["city_id"]))
        await self._shift(item["city_id"], item["position"] + 1, -1)
        note = f"Skipped: {reason}" if reason else "Skipped"
        await self.db.execute(
            update(rotation_queue)
            .where(rotation_queue.c.id == item_id)
            .values(position=last, notes=f"{item['notes']}\n{note}" if item["notes"] else note)
        )
        await self.db.commit()
        logger.info("queue_item_skipped", item_id=str(item_id), action=action, reason=reason)
        return await self.get_item_or_404(item_id)

    async def insert_urgent(
        self,
        city_id: UUID,
        restaurant_id: UUID,
        notes: str | None = None,
        added_by: UUID | None = None,
    ) -> dict:
        """
        Put a restaurant at the head of the queue, moving it there if already queued.

        Raises:
            NotFoundException: Unknown restaurant
            ConflictException: Restaurant is already next or currently featured
        """
        await RestaurantService(self.db).get_restaurant_or_404(restaurant_id)
        existing = await self._open_item(city_id, restaurant_id)
        if existing and existing["status"] == "active":
            raise ConflictException("Restaurant is currently featured", error_code="QUEUE_ITEM_ACTIVE")
        if existing and existing["position"] == 1:
            raise ConflictException("Restaurant is already next in the queue", error_code="ALREADY_NEXT")

        if existing:
            await self._detach(existing)
        await self._shift(city_id, 1, 1)
        result = await self.db.execute(
            rotation_queue.insert()
            .values(
                city_id=city_id,
                restaurant_id=restaurant_id,
                position=1,
                status="pending",
                notes=notes or (existing or {}).get("notes"),
                added_by=added_by,
            )
            .returning(rotation_queue.c.id)
        )
        item_id = result.scalar_one()
        await self.db.commit()

        logger.info("queue_item_urgent", city_id=str(city_id), restaurant_id=str(restaurant_id))
        return await self.get_item_or_404(item_id)

    async def next_in_queue(self, city_id: UUID, week_start_date: date) -> dict | None:
        """First pending item that may run in the given week."""
        result = await self.db.execute(
            select(rotation_queue)
            .where(
                rotation_queue.c.city_id == city_id,
                rotation_queue.c.status == "pending",
                (rotation_queue.c.scheduled_week.is_(None))
                | (rotation_queue.c.scheduled_week <= week_start_date),
            )
            .order_by(rotation_queue.c.position)
            .limit(1)
        )
        row = result.mappings().first()
        return dict(row) if row else None

    async def promote(self, item: dict) -> None:
        """Make ``item`` the active entry; the caller commits."""
        await self.db.execute(
            update(rotation_queue)
            .where(rotation_queue.c.city_id == item["city_id"], rotation_queue.c.status == "active")
            .values(status="completed")
        )
        await self.db.execute(
            update(rotation_queue).where(rotation_queue.c.id == item["id"]).values(status="active", position=0)
        )
        await self._shift(item["city_id"], item["position"] + 1, -1)


class RotationConfigService:
    """Service for each city's rotation schedule and manual/automatic switch."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    @staticmethod
    def defaults(city: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": None,
            "city_id": city["id"],
            "mode": "automatic",
            "rotation_weekday": settings.rotation_weekday,
            "rotation_hour": settings.rotation_hour,
            "rotation_minute": settings.rotation_minute,
            "timezone": city.get("timezone") or settings.rotation_timezone,
            "is_active": True,
            "min_queue_size": settings.rotation_min_queue_size,
            "next_rotation_at": None,
            "last_rotation_at": None,
        }

    @staticmethod
    def next_slot(config: dict[str, Any], now: datetime) -> datetime:
        return next_run_time(
            now,
            weekday=config["rotation_weekday"],
            hour=config["rotation_hour"],
            timezone=config["timezone"],
            minute=config["rotation_minute"],
        )

    async def get_config(self, city: dict[str, Any], now: datetime | None = None) -> dict[str, Any]:
        """Stored config for the city, or the settings defaults when none is saved yet."""
        result = await self.db.execute(select(rotation_configs).where(rotation_configs.c.city_id == city["id"]))
        row = result.mappings().first()
        config = dict(row) if row else self.defaults(city)
        config["next_rotation_at"] = _aware(config["next_rotation_at"])
        config["last_rotation_at"] = _aware(config["last_rotation_at"])
        if config["next_rotation_at"] is None:
            config["next_rotation_at"] = self.next_slot(config, now or datetime.now(UTC))
        return config

    async def _save(self, config: dict[str, Any]) -> dict[str, Any]:
        values = {
            key: config[key]
            for key in rotation_configs.c.keys()
            if key not in {"id", "created_at", "updated_at"} and key in config
        }
        for key in ("next_rotation_at", "last_rotation_at"):
            if values.get(key) is not None:
                values[key] = values[key].astimezone(UTC)

        try:
            if config.get("id"):
                result = await self.db.execute(
                    update(rotation_configs)
                    .where(rotation_configs.c.id == config["id"])
                    .values(**values)
                    .returning(rotation_configs)
                )
            else:
                result = await self.db.execute(rotation_configs.insert().values(**values).returning(rotation_configs))
            saved = dict(result.mappings().one())
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException(
                "Rotation config was changed concurrently", error_code="ROTATION_CONFIG_CONFLICT"
            ) from None

        saved["next_rotation_at"] = _aware(saved["next_rotation_at"])
        saved["last_rotation_at"] = _aware(saved["last_rotation_at"])
        return saved

    async def update_config(
        self,
        city: dict[str, Any],
        changes: dict[str, Any],
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Apply ``changes`` and reschedule the next rotation from ``now``."""
        config = await self.get_config(city, now)
        config.update({key: value for key, value in changes.items() if value is not None})
        config["next_rotation_at"] = self.next_slot(config, now or datetime.now(UTC))

        saved = await self._save(config)
        logger.info(
            "rotation_config_updated",
            city=city["slug"],
            mode=saved["mode"],
            is_active=saved["is_active"],
            next_rotation_at=saved["next_rotation_at"].isoformat(),
        )
        return saved

    async def ensure_saved(self, city: dict[str, Any], now: datetime | None = None) -> dict[str, Any]:
        config = await self.get_config(city, now)
        if config["id"] is None:
            config = await self._save(config)
        return config

    async def mark_rotated(self, city: dict[str, Any], now: datetime | None = None) -> dict[str, Any]:
        """Record a rotation and schedule the following one."""
        now = now or datetime.now(UTC)
        config = await self.get_config(city, now)
        config["last_rotation_at"] = now
        config["next_rotation_at"] = self.next_slot(config, now)
        return await self._save(config)

    @staticmethod
    def is_due(config: dict[str, Any], now: datetime) -> bool:
        return (
            config["mode"] == "automatic"
            and config["is_active"]
            and config["next_rotation_at"] is not None
            and config["next_rotation_at"] <= now
        )

    async def preview(
        self,
        city: dict[str, Any],
        weeks: int = 8,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Upcoming rotation slots and the queued restaurant expected for each."""
        config = await self.get_config(city, now)
        tz = ZoneInfo(config["timezone"])
        pending = [
            item
            for item in await RotationQueueService(self.db).list_queue(city["id"])
            if item["status"] == "pending"
        ]

        upcoming = []
        run_at = config["next_rotation_at"]
        for _ in range(weeks):
            local_day = run_at.astimezone(tz).date()
            week = local_day - timedelta(days=local_day.weekday())
            item = next(
                (item for item in pending if item["scheduled_week"] is None or item["scheduled_week"] <= week),
                None,
            )
            if item is not None:
                pending.remove(item)
            upcoming.append(
                {
                    "rotationAt": run_at.astimezone(tz).isoformat(),
                    "weekStartDate": week.isoformat(),
                    "queueItemId": str(item["id"]) if item else None,
                    "restaurant": item["restaurant"]["name"] if item else None,
                    "source": "queue" if item else ("auto" if config["mode"] == "automatic" else None),
                }
            )
            run_at = self.next_slot(config, run_at)
        return upcoming

    async def status(self, city: dict[str, Any], now: datetime | None = None) -> dict[str, Any]:
        config = await self.get_config(city, now)
        stats = await RotationQueueService(self.db).queue_stats(city["id"], config["min_queue_size"])
        return {
            "city": city["slug"],
            "mode": config["mode"],
            "isActive": config["is_active"],
            "nextRotationAt": config["next_rotation_at"].isoformat(),
            "lastRotationAt": config["last_rotation_at"].isoformat() if config["last_rotation_at"] else None,
            "timezone": config["timezone"],
            "queue": stats,
        }
