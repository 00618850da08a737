"""Weekly featured-restaurant rotation."""

import asyncio
from datetime import UTC, date, datetime
from typing import Any
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.yelp_client import YelpClient
from app.database import AsyncSessionLocal
from app.services.city_service import CityService
from app.services.featured_service import FeaturedRestaurantService, city_today, week_start
from app.services.rotation_service import RotationConfigService
from app.services.yelp_service import build_yelp_service

logger = structlog.get_logger()


def _local_date(city: dict[str, Any], now: datetime) -> date:
    return now.astimezone(ZoneInfo(city.get("timezone") or settings.rotation_timezone)).date()


async def run_weekly_rotation(
    db: AsyncSession,
    city: dict[str, Any],
    yelp_client: YelpClient | None = None,
    today: date | None = None,
    force_new: bool = False,
) -> dict:
    """Select this week's pick for one city and archive expired picks."""
    featured_service = FeaturedRestaurantService(db, build_yelp_service(db, yelp_client))
    week = week_start(today or city_today(city))

    featured = await featured_service.select_featured_restaurant(week, city, force_new=force_new)
    archived = await featured_service.archive_old_featured(settings.featured_retention_months, today=week)

    logger.info(
        "rotation_completed",
        city=city["slug"],
        week=week.isoformat(),
        restaurant_id=str(featured["restaurant_id"]),
        source=featured["selection_source"],
        archived=archived,
    )
    return featured


async def rotate_all_cities(
    yelp_client: YelpClient | None = None,
    force_new: bool = False,
    today: date | None = None,
) -> dict[str, str]:
    """
    Rotate every active city, each in its own session.

    Returns:
        Mapping of city slug to ``"ok"`` or the error message
    """
    async with AsyncSessionLocal() as db:
        active = await CityService(db).list_active()

    results: dict[str, str] = {}
    for city in active:
        async with AsyncSessionLocal() as db:
            try:
                await run_weekly_rotation(db, city, yelp_client, today=today, force_new=force_new)
                results[city["slug"]] = "ok"
            except Exception as e:
                await db.rollback()
                logger.error("rotation_failed", city=city["slug"], error=str(e), exc_info=True)
                results[city["slug"]] = str(e)
    return results


async def run_due_rotations(
    now: datetime | None = None,
    yelp_client: YelpClient | None = None,
) -> dict[str, str]:
    """
    Rotate every city whose stored schedule has come due.

    Cities in manual mode or with rotation paused are left alone. A failed
    rotation keeps its slot so the next check retries it.

    Returns:
        Mapping of city slug to ``"ok"`` or the error message, for cities that were due
    """
    now = now or datetime.now(UTC)
    async with AsyncSessionLocal() as db:
        active = await CityService(db).list_active()

    results: dict[str, str] = {}
    for city in active:
        async with AsyncSessionLocal() as db:
            config_service = RotationConfigService(db)
            config = await config_service.ensure_saved(city, now)
            if not config_service.is_due(config, now):
                continue

            try:
                await run_weekly_rotation(db, city, yelp_client, today=_local_date(city, now))
                await config_service.mark_rotated(city, now)
                results[city["slug"]] = "ok"
            except Exception as e:
                await db.rollback()
                logger.error("rotation_failed", city=city["slug"], error=str(e), exc_info=True)
                results[city["slug"]] = str(e)
    return results


async def rotation_scheduler_loop() -> None:
    """Background task checking the stored rotation schedules at a fixed interval."""
    interval = settings.rotation_check_interval_seconds
    logger.info("rotation_scheduler_polling", interval_seconds=interval)
    while True:
        try:
            results = await run_due_rotations()
            if results:
                logger.info("rotation_due_run", results=results)
        except Exception as e:
            logger.error("rotation_loop_error", error=str(e), exc_info=True)
        await asyncio.sleep(interval)
