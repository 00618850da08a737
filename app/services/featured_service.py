"""Weekly featured restaurant selection."""

import calendar
import math
from datetime import date, datetime, timedelta
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import AppException, ConflictException, NotFoundException
from app.models.featured_restaurants import featured_restaurants
from app.models.restaurants import restaurants
from app.services.restaurant_service import RestaurantService, primary_cuisine
from app.services.rotation_service import RotationQueueService
from app.services.yelp_service import YelpService

logger = structlog.get_logger()

# Search terms favoured in each month
SEASONAL_CUISINES: dict[int, list[str]] = {
    1: ["soup", "hotpot", "comfort", "warm"],
    2: ["soup", "hotpot", "comfort", "warm"],
    3: ["spring", "fresh", "salad", "light"],
    4: ["spring", "fresh", "salad", "light"],
    5: ["bbq", "grill", "outdoor", "summer"],
    6: ["bbq", "grill", "outdoor", "summer"],
    7: ["bbq", "grill", "outdoor", "summer"],
    8: ["bbq", "grill", "outdoor", "summer"],
    9: ["fall", "harvest", "comfort", "warm"],
    10: ["fall", "harvest", "comfort", "warm"],
    11: ["thanksgiving", "comfort", "warm", "holiday"],
    12: ["holiday", "comfort", "warm", "celebration"],
}

MIN_RATING = 4.0
MIN_REVIEW_COUNT = 20
DIVERSITY_WINDOW = 6

WEIGHTS = {"quality": 0.3, "diversity": 0.3, "seasonal": 0.25, "availability": 0.15}


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def week_end(start: date) -> date:
    """Sunday closing the week that starts on ``start``."""
    return start + timedelta(days=6)


def subtract_months(day: date, months: int) -> date:
    month_index = day.year * 12 + day.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def city_today(city: dict[str, Any]) -> date:
    return datetime.now(ZoneInfo(city.get("timezone") or settings.rotation_timezone)).date()


def select_diverse_cuisine(seasonal: list[str], history: list[str]) -> str:
    """Least used seasonal cuisine over the recent picks; ties keep table order."""
    recent = [item.lower() for item in history[-DIVERSITY_WINDOW:] if item]
    return min(seasonal, key=lambda cuisine: sum(cuisine in item for item in recent))


def quality_score(rating: float | None, review_count: int | None) -> float:
    if not rating or not review_count:
        return 0.0
    normalized_rating = (rating - 1) / 4
    normalized_reviews = min(math.log10(review_count + 1) / 4, 1.0)
    return normalized_rating * 0.7 + normalized_reviews * 0.3


def diversity_score(cuisine: str, history: list[str]) -> float:
    recent = [item.lower() for item in history[-DIVERSITY_WINDOW:] if item]
    return max(0.0, 1 - recent.count(cuisine.lower()) / DIVERSITY_WINDOW)


def seasonal_score(categories: list[dict], month: int) -> float:
    seasonal = SEASONAL_CUISINES.get(month, [])
    labels = " ".join(f"{c.get('alias', '')} {c.get('title', '')}".lower() for c in categories)
    return 1.0 if any(term in labels for term in seasonal) else 0.5


def availability_score(business: dict[str, Any]) -> float:
    score = 0.5
    if not business.get("is_closed"):
        score += 0.3
    if business.get("is_claimed"):
        score += 0.2
    if (business.get("location") or {}).get("address1"):
        score += 0.1
    if business.get("phone"):
        score += 0.1
    return min(score, 1.0)


def score_candidates(
    businesses: list[dict[str, Any]],
    week_start_date: date,
    cuisine_history: list[str],
    excluded_yelp_ids: set[str],
) -> list[tuple[float, dict[str, Any]]]:
    """Filter Yelp businesses and rank them, best first."""
    ranked = []
    for business in businesses:
        if (business.get("rating") or 0) < MIN_RATING:
            continue
        if (business.get("review_count") or 0) < MIN_REVIEW_COUNT:
            continue
        if business.get("id") in excluded_yelp_ids:
            continue

        categories = business.get("categories") or []
        total = (
            quality_score(business.get("rating"), business.get("review_count")) * WEIGHTS["quality"]
            + diversity_score(primary_cuisine(categories), cuisine_history) * WEIGHTS["diversity"]
            + seasonal_score(categories, week_start_date.month) * WEIGHTS["seasonal"]
            + availability_score(business) * WEIGHTS["availability"]
        )
        ranked.append((total, business))

    ranked.sort(key=lambda item: item[0], reverse=True)
    return ranked


class FeaturedRestaurantService:
    """Service for the per-city weekly pick.

    ``featured_restaurants`` holds at most one active row per city and week;
    the restaurant's ``is_featured``/``week_of`` columns mirror it.
    """

    def __init__(self, db: AsyncSession, yelp_service: YelpService | None = None):
        """Initialize service with database session and optional Yelp access."""
        self.db = db
        self.yelp = yelp_service
        self.restaurant_service = RestaurantService(db, cache=yelp_service.cache if yelp_service else None)

    async def _attach_restaurants(self, records: list[dict]) -> list[dict]:
        if not records:
            return []
        ids = {record["restaurant_id"] for record in records}
        result = await self.db.execute(select(restaurants).where(restaurants.c.id.in_(ids)))
        by_id = {row["id"]: dict(row) for row in result.mappings().all()}
        return [{**record, "restaurant": by_id.get(record["restaurant_id"])} for record in records]

    async def get_featured_for_week(self, city_id: UUID, week_start_date: date) -> dict | None:
        query = select(featured_restaurants).where(
            featured_restaurants.c.city_id == city_id,
            featured_restaurants.c.week_start_date == week_start_date,
            featured_restaurants.c.is_active.is_(True),
        )
        row = (await self.db.execute(query)).mappings().first()
        if not row:
            return None
        return (await self._attach_restaurants([dict(row)]))[0]

    async def get_current_featured(self, city_id: UUID, today: date | None = None) -> dict | None:
        return await self.get_featured_for_week(city_id, week_start(today or date.today()))

    async def get_featured_history(self, city_id: UUID | None = None, limit: int = 12) -> list[dict]:
        query = select(featured_restaurants).where(featured_restaurants.c.is_active.is_(True))
        if city_id:
            query = query.where(featured_restaurants.c.city_id == city_id)
        query = query.order_by(featured_restaurants.c.week_start_date.desc()).limit(limit)
        rows = [dict(row) for row in (await self.db.execute(query)).mappings().all()]
        return await self._attach_restaurants(rows)

    async def get_featured_stats(self, city_id: UUID, today: date | None = None) -> dict[str, Any]:
        today = today or date.today()
        total = (
            await self.db.execute(
                select(func.count())
                .select_from(featured_restaurants)
                .where(featured_restaurants.c.city_id == city_id, featured_restaurants.c.is_active.is_(True))
            )
        ).scalar_one()
        recent = [
            record
            for record in await self.get_featured_history(city_id, limit=12)
            if record["week_start_date"] >= week_start(today) - timedelta(weeks=12)
        ]
        current = await self.get_current_featured(city_id, today)
        return {
            "totalFeatured": total,
            "current": current["restaurant"]["name"] if current and current["restaurant"] else None,
            "recentWeeks": [
                {
                    "weekStart": record["week_start_date"].isoformat(),
                    "restaurant": record["restaurant"]["name"] if record["restaurant"] else None,
                    "cuisine": record["restaurant"]["cuisine"] if record["restaurant"] else None,
                }
                for record in recent
            ],
        }

    async def _recent_picks(self, city_id: UUID, week_start_date: date) -> list[dict]:
        """Active picks within the retention window, oldest first."""
        cutoff = subtract_months(week_start_date, settings.featured_retention_months)
        query = (
            select(
                restaurants.c.id,
                restaurants.c.yelp_id,
                restaurants.c.cuisine,
            )
            .select_from(
                featured_restaurants.join(
                    restaurants, restaurants.c.id == featured_restaurants.c.restaurant_id
                )
            )
            .where(
                featured_restaurants.c.city_id == city_id,
                featured_restaurants.c.is_active.is_(True),
                featured_restaurants.c.week_start_date >= cutoff,
            )
            .order_by(featured_restaurants.c.week_start_date)
        )
        return [dict(row) for row in (await self.db.execute(query)).mappings().all()]

    async def select_featured_restaurant(
        self,
        week_start_date: date,
        city: dict[str, Any],
        custom_restaurant_id: UUID | None = None,
        custom_description: str | None = None,
        force_new: bool = False,
    ) -> dict:
        """
        Pick (or return) the featured restaurant for a city's week.

        Order: explicit custom choice, the week's existing pick, a restaurant
        already flagged for the week, the head of the city's rotation queue,
        the best Yelp candidate, then the newest local restaurant not
        featured recently.

        Raises:
            NotFoundException: No restaurant data is available
        """
        week_start_date = week_start(week_start_date)
        city_id = city["id"]

        if custom_restaurant_id:
            return await self.set_custom_featured(
                custom_restaurant_id, week_start_date, custom_description, city_id
            )

        existing = await self.get_featured_for_week(city_id, week_start_date)
        if existing and not force_new:
            return existing

        if not existing:
            flagged = (
                (
                    await self.db.execute(
                        select(restaurants.c.id).where(
                            restaurants.c.city_id == city_id,
                            restaurants.c.is_featured.is_(True),
                            restaurants.c.week_of == week_start_date,
                        )
                    )
                )
                .scalars()
                .first()
            )
            if flagged:
                return await self._activate(flagged, week_start_date, city_id, custom_description, "existing")

        queue_service = RotationQueueService(self.db)
        queued = await queue_service.next_in_queue(city_id, week_start_date)
        if queued and not (existing and queued["restaurant_id"] == existing["restaurant_id"]):
            featured = await self._activate(
                queued["restaurant_id"],
                week_start_date,
                city_id,
                custom_description,
                "queue",
                queue_item=queued,
            )
            stats = await queue_service.queue_stats(city_id)
            if stats["belowMinimum"]:
                logger.warning("rotation_queue_low", city=city["slug"], pending=stats["pending"])
            return featured

        picks = await self._recent_picks(city_id, week_start_date)
        if existing:
            current = existing["restaurant"] or {}
            picks.append({"id": existing["restaurant_id"], "yelp_id": current.get("yelp_id"), "cuisine": None})

        restaurant_id = await self._select_from_yelp(week_start_date, city, picks)
        source = "yelp"
        if restaurant_id is None:
            restaurant_id = await self._select_local(city_id, picks)
            source = "local"
        if restaurant_id is None:
            logger.warning("featured_no_candidates", city=city["slug"], week=week_start_date.isoformat())
            raise NotFoundException("No restaurant data available", error_code="NO_RESTAURANT_DATA")

        return await self._activate(restaurant_id, week_start_date, city_id, custom_description, source)

    async def _select_from_yelp(
        self,
        week_start_date: date,
        city: dict[str, Any],
        picks: list[dict],
    ) -> UUID | None:
        if self.yelp is None or not self.yelp.client.configured:
            return None

        history = [pick["cuisine"] for pick in picks if pick["cuisine"]]
        cuisine = select_diverse_cuisine(SEASONAL_CUISINES[week_start_date.month], history)
        location = f"{city['name']}, {city['state']}" if city.get("state") else city["name"]

        try:
            result = await self.yelp.search(
                {"term": cuisine, "categories": "restaurants", "location": location, "limit": 20},
                city_id=city["id"],
                defer=True,
            )
        except AppException as e:
            logger.warning("featured_yelp_search_failed", cuisine=cuisine, error=e.message)
            return None

        if result.source == "fallback":
            return None

        excluded = {pick["yelp_id"] for pick in picks if pick["yelp_id"]}
        ranked = score_candidates(result.data.get("businesses", []), week_start_date, history, excluded)
        if not ranked:
            logger.info("featured_no_yelp_candidates", cuisine=cuisine)
            return None

        score, business = ranked[0]
        restaurant = await self.restaurant_service.upsert_from_yelp(business, city["id"])
        if restaurant["id"] in {pick["id"] for pick in picks}:
            return None

        logger.info("featured_yelp_candidate", cuisine=cuisine, yelp_id=business["id"], score=round(score, 3))
        return restaurant["id"]

    async def _select_local(self, city_id: UUID, picks: list[dict]) -> UUID | None:
        excluded = {pick["id"] for pick in picks}
        query = select(restaurants.c.id).where(restaurants.c.city_id == city_id)
        if excluded:
            query = query.where(restaurants.c.id.not_in(excluded))
        query = query.order_by(restaurants.c.created_at.desc()).limit(1)
        return (await self.db.execute(query)).scalars().first()

    async def set_custom_featured(
        self,
        restaurant_id: UUID,
        week_start_date: date,
        custom_description: str | None,
        city_id: UUID,
    ) -> dict:
        """Force a restaurant as the week's pick, replacing any existing one."""
        await self.restaurant_service.get_restaurant_or_404(restaurant_id)
        return await self._activate(restaurant_id, week_start(week_start_date), city_id, custom_description, "manual")

    async def _activate(
        self,
        restaurant_id: UUID,
        week_start_date: date,
        city_id: UUID,
        custom_description: str | None,
        source: str,
        queue_item: dict | None = None,
    ) -> dict:
        """Swap the week's active pick in one transaction."""
        try:
            if queue_item is not None:
                await RotationQueueService(self.db).promote(queue_item)
            await self.db.execute(
                update(featured_restaurants)
                .where(
                    featured_restaurants.c.city_id == city_id,
                    featured_restaurants.c.week_start_date == week_start_date,
                    featured_restaurants.c.is_active.is_(True),
                )
                .values(is_active=False)
            )
            await self.db.execute(
                update(restaurants)
                .where(restaurants.c.city_id == city_id, restaurants.c.week_of == week_start_date)
                .values(is_featured=False)
            )
            await self.db.execute(
                update(restaurants)
                .where(restaurants.c.id == restaurant_id)
                .values(is_featured=True, week_of=week_start_date)
            )
            await self.db.execute(
                update(restaurants)
                .where(restaurants.c.id == restaurant_id, restaurants.c.city_id.is_(None))
                .values(city_id=city_id)
            )
            result = await self.db.execute(
                featured_restaurants.insert()
                .values(
                    city_id=city_id,
                    restaurant_id=restaurant_id,
                    week_start_date=week_start_date,
                    week_end_date=week_end(week_start_date),
                    custom_description=custom_description,
                    is_active=True,
                    selection_source=source,
                )
                .returning(featured_restaurants)
            )
            record = dict(result.mappings().one())
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("featured_activation_conflict", city_id=str(city_id), week=week_start_date.isoformat())
            raise ConflictException(
                "Featured restaurant for this week was changed concurrently",
                error_code="FEATURED_CONFLICT",
            ) from e

        logger.info(
            "featured_restaurant_set",
            city_id=str(city_id),
            restaurant_id=str(restaurant_id),
            week=week_start_date.isoformat(),
            source=source,
        )
        return (await self._attach_restaurants([record]))[0]

    async def archive_old_featured(self, months_to_keep: int = 6, today: date | None = None) -> int:
        """Deactivate picks whose week started before the retention cutoff."""
        cutoff = subtract_months(today or date.today(), months_to_keep)
        result = await self.db.execute(
            update(featured_restaurants)
            .where(
                and_(
                    featured_restaurants.c.week_start_date < cutoff,
                    featured_restaurants.c.is_active.is_(True),
                )
            )
            .values(is_active=False)
        )
        await self.db.commit()
        logger.info("featured_archived", count=result.rowcount, cutoff=cutoff.isoformat())
        return result.rowcount
