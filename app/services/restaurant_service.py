"""Local restaurant catalogue and Yelp sync."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.core.maps import build_static_map_url, geocode_address
from app.core.store import CacheManager
from app.models.restaurants import restaurants

logger = structlog.get_logger()

DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

# Checked in order; the first category matching one of these names the cuisine
CUISINE_PRIORITY = [
    "bbq",
    "barbeque",
    "mexican",
    "tex-mex",
    "italian",
    "pizza",
    "chinese",
    "japanese",
    "sushi",
    "indian",
    "thai",
    "vietnamese",
    "tradamerican",
    "american",
    "french",
    "mediterranean",
    "seafood",
    "steakhouses",
    "vegetarian",
    "vegan",
]


def format_time(value: str | None) -> str:
    """Yelp ``HHMM`` to ``h:MM AM``."""
    if not value or len(value) < 4:
        return "Closed"
    hour = int(value[:2])
    minute = value[2:4]
    period = "PM" if hour >= 12 else "AM"
    display = hour - 12 if hour > 12 else (12 if hour == 0 else hour)
    return f"{display}:{minute} {period}"


def format_hours(hours: list[dict] | None) -> dict[str, str]:
    """Collapse Yelp's ``hours[0].open`` list into ``{day: "start - end"}``."""
    if not hours:
        return {}
    formatted: dict[str, str] = {}
    for slot in hours[0].get("open", []):
        day = slot.get("day")
        if day is None or not 0 <= day < 7:
            continue
        span = f"{format_time(slot.get('start'))} - {format_time(slot.get('end'))}"
        name = DAY_NAMES[day]
        formatted[name] = f"{formatted[name]}, {span}" if name in formatted else span
    return formatted


def primary_cuisine(categories: list[dict] | None) -> str:
    """Pick the cuisine label shown for a restaurant."""
    if not categories:
        return "Restaurant"
    for wanted in CUISINE_PRIORITY:
        for category in categories:
            alias = (category.get("alias") or "").lower()
            title = category.get("title") or ""
            if alias == wanted or wanted in title.lower():
                return title
    return categories[0].get("title") or "Restaurant"


def yelp_to_restaurant(business: dict[str, Any]) -> dict[str, Any]:
    """Column values for a Yelp business payload."""
    location = business.get("location") or {}
    coordinates = business.get("coordinates") or {}
    categories = business.get("categories") or []
    address = ", ".join(location.get("display_address") or []) or None
    photos = business.get("photos") or ([business["image_url"]] if business.get("image_url") else [])

    return {
        "yelp_id": business["id"],
        "name": business.get("name") or "Unknown",
        "cuisine": primary_cuisine(categories),
        "price": business.get("price"),
        "area": (business.get("neighborhoods") or [None])[0] or location.get("city"),
        "address": address,
        "phone": business.get("display_phone") or business.get("phone") or None,
        "website": business.get("url"),
        "image_url": business.get("image_url") or (photos[0] if photos else None),
        "latitude": coordinates.get("latitude"),
        "longitude": coordinates.get("longitude"),
        "hours": format_hours(business.get("hours")) or None,
        "photos": photos,
        "categories": [category.get("title") for category in categories if category.get("title")],
        "rating": business.get("rating"),
        "review_count": business.get("review_count") or 0,
    }


def serialize_restaurant(row: dict[str, Any]) -> dict[str, Any]:
    """Restaurant row plus derived fields for API responses."""
    data = dict(row)
    data["static_map_url"] = build_static_map_url(data.get("latitude"), data.get("longitude"))
    return data


class RestaurantService:
    """Service for locally stored restaurants."""

    def __init__(self, db: AsyncSession, cache: CacheManager | None = None):
        """Initialize service with database session and optional cache for geocoding."""
        self.db = db
        self.cache = cache

    async def get_restaurant(self, restaurant_id: UUID) -> dict | None:
        result = await self.db.execute(select(restaurants).where(restaurants.c.id == restaurant_id))
        row = result.mappings().first()
        return dict(row) if row else None

    async def get_restaurant_or_404(self, restaurant_id: UUID) -> dict:
        restaurant = await self.get_restaurant(restaurant_id)
        if not restaurant:
            raise NotFoundException("Restaurant not found", error_code="RESTAURANT_NOT_FOUND")
        return restaurant

    async def get_by_yelp_id(self, yelp_id: str) -> dict | None:
        result = await self.db.execute(select(restaurants).where(restaurants.c.yelp_id == yelp_id))
        row = result.mappings().first()
        return dict(row) if row else None

    async def list_restaurants(
        self,
        city_id: UUID | None = None,
        page: int = 1,
        limit: int = 20,
        cuisine: str | None = None,
        search: str | None = None,
    ) -> tuple[list[dict], int]:
        """Paginated local restaurants, best rated first."""
        conditions = []
        if city_id:
            conditions.append(restaurants.c.city_id == city_id)
        if cuisine:
            conditions.append(restaurants.c.cuisine.ilike(f"%{cuisine}%"))
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(restaurants.c.name.ilike(pattern), restaurants.c.cuisine.ilike(pattern)))

        count_query = select(func.count()).select_from(restaurants).where(*conditions)
        total = (await self.db.execute(count_query)).scalar_one()

        query = (
            select(restaurants)
            .where(*conditions)
            .order_by(
                restaurants.c.rating.desc().nulls_last(),
                restaurants.c.review_count.desc(),
                restaurants.c.name,
            )
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [dict(row) for row in result.mappings().all()], total

    async def upsert_from_yelp(self, business: dict[str, Any], city_id: UUID | None) -> dict:
        """Insert or refresh the local copy of a Yelp business."""
        values = yelp_to_restaurant(business)
        values["last_synced_at"] = datetime.now(UTC)

        if values["latitude"] is None and values["address"]:
            coordinates = await geocode_address(values["address"], cache=self.cache)
            if coordinates:
                values["latitude"] = coordinates["latitude"]
                values["longitude"] = coordinates["longitude"]

        existing = await self.get_by_yelp_id(values["yelp_id"])
        if existing is None:
            try:
                result = await self.db.execute(
                    restaurants.insert().values(city_id=city_id, **values).returning(restaurants)
                )
                await self.db.commit()
                restaurant = dict(result.mappings().one())
                logger.info("restaurant_synced", yelp_id=values["yelp_id"], created=True)
                return restaurant
            except IntegrityError:
                # A concurrent sync inserted it first
                await self.db.rollback()
                existing = await self.get_by_yelp_id(values["yelp_id"])
                if existing is None:
                    raise

        if existing["city_id"] is None and city_id is not None:
            values["city_id"] = city_id
        result = await self.db.execute(
            update(restaurants)
            .where(restaurants.c.id == existing["id"])
            .values(**values, updated_at=datetime.now(UTC))
            .returning(restaurants)
        )
        await self.db.commit()
        logger.info("restaurant_synced", yelp_id=values["yelp_id"], created=False)
        return dict(result.mappings().one())

    async def sync_from_yelp(self, yelp_service, yelp_id: str, city_id: UUID | None) -> dict:
        """Fetch a business from Yelp and store it locally."""
        result = await yelp_service.get_details(yelp_id, defer=True)
        if result.source == "fallback":
            # Local copy served during an outage; nothing new to store
            return await self.get_restaurant_or_404(UUID(result.data["localId"]))
        return await self.upsert_from_yelp(result.data, city_id)
