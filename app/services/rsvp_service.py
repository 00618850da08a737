"""RSVP service for business logic."""

from datetime import UTC, date, datetime
from uuid import UUID

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, NotFoundException
from app.models.restaurants import restaurants
from app.models.rsvps import rsvps
from app.schemas.rsvp import DAYS, Day, RSVPStatus
from app.services.featured_service import FeaturedRestaurantService
from app.services.restaurant_service import RestaurantService

logger = structlog.get_logger()

SUMMARY_COLUMNS = (
    restaurants.c.name,
    restaurants.c.cuisine,
    restaurants.c.price,
    restaurants.c.area,
    restaurants.c.image_url,
)


def _with_restaurant(row: dict) -> dict:
    rsvp = {column: row[column] for column in rsvps.c.keys()}
    rsvp["restaurant"] = {
        "id": row["restaurant_id"],
        "name": row["name"],
        "cuisine": row["cuisine"],
        "price": row["price"],
        "area": row["area"],
        "image_url": row["image_url"],
    }
    return rsvp


class RSVPService:
    """Service for RSVPs.

    A user holds at most one RSVP per restaurant. Replacing deletes the old
    row and inserts the new one in a single transaction; the unique
    constraint on (user_id, restaurant_id) rejects a concurrent duplicate,
    and the loser retries once so the last write wins.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def resolve_restaurant_id(
        self,
        restaurant_id: UUID | None,
        city_id: UUID | None,
        today: date | None = None,
    ) -> UUID:
        """Explicit restaurant, or this week's featured pick for the city."""
        if restaurant_id is not None:
            await RestaurantService(self.db).get_restaurant_or_404(restaurant_id)
            return restaurant_id

        featured = None
        if city_id is not None:
            featured = await FeaturedRestaurantService(self.db).get_current_featured(city_id, today)
        if not featured:
            raise NotFoundException("No current restaurant found", error_code="NO_CURRENT_RESTAURANT")
        return featured["restaurant_id"]

    async def create_or_replace_rsvp(
        self,
        user_id: UUID,
        day: Day,
        status: RSVPStatus = RSVPStatus.GOING,
        restaurant_id: UUID | None = None,
        city_id: UUID | None = None,
        today: date | None = None,
    ) -> dict:
        """
        Record the user's RSVP, replacing any earlier one for the restaurant.

        Args:
            user_id: Caller
            day: Day of the week the user plans to go
            status: going, maybe or not_going
            restaurant_id: Target restaurant; defaults to the city's current pick
            city_id: City used to find the current pick

        Returns:
            The surviving RSVP row
        """
        restaurant_id = await self.resolve_restaurant_id(restaurant_id, city_id, today)

        day_value, status_value = Day(day).value, RSVPStatus(status).value
        try:
            rsvp = await self._replace(user_id, restaurant_id, day_value, status_value)
        except IntegrityError:
            await self.db.rollback()
            logger.info("rsvp_replace_retry", user_id=str(user_id), restaurant_id=str(restaurant_id))
            try:
                rsvp = await self._replace(user_id, restaurant_id, day_value, status_value)
            except IntegrityError:
                await self.db.rollback()
                raise ConflictException("RSVP was modified concurrently, please retry") from None

        logger.info(
            "rsvp_saved",
            user_id=str(user_id),
            restaurant_id=str(restaurant_id),
            day=rsvp["day"],
            status=rsvp["status"],
        )
        return rsvp

    async def _replace(self, user_id: UUID, restaurant_id: UUID, day: str, status: str) -> dict:
        # The DELETE is the first statement of the transaction so competing
        # writers serialize on it.
        await self.db.execute(
            delete(rsvps).where(rsvps.c.user_id == user_id, rsvps.c.restaurant_id == restaurant_id)
        )
        now = datetime.now(UTC)
        result = await self.db.execute(
            rsvps.insert()
            .values(
                user_id=user_id,
                restaurant_id=restaurant_id,
                day=day,
                status=status,
                created_at=now,
                updated_at=now,
            )
            .returning(rsvps)
        )
        rsvp = dict(result.mappings().one())
        await self.db.commit()
        return rsvp

    async def list_user_rsvps(self, user_id: UUID) -> list[dict]:
        """The user's RSVPs with restaurant summaries, newest first."""
        query = (
            select(rsvps, *SUMMARY_COLUMNS)
            .join(restaurants, restaurants.c.id == rsvps.c.restaurant_id)
            .where(rsvps.c.user_id == user_id)
            .order_by(rsvps.c.created_at.desc())
        )
        result = await self.db.execute(query)
        return [_with_restaurant(dict(row)) for row in result.mappings().all()]

    async def get_rsvp_counts(self, restaurant_id: UUID) -> dict[str, int]:
        """Number of ``going`` RSVPs per day; every day is present."""
        query = (
            select(rsvps.c.day, func.count().label("count"))
            .where(rsvps.c.restaurant_id == restaurant_id, rsvps.c.status == RSVPStatus.GOING.value)
            .group_by(rsvps.c.day)
        )
        result = await self.db.execute(query)
        counts = dict.fromkeys(DAYS, 0)
        for day, count in result.all():
            counts[day] = count
        return counts

    async def delete_rsvp(self, user_id: UUID, restaurant_id: UUID) -> None:
        result = await self.db.execute(
            delete(rsvps).where(rsvps.c.user_id == user_id, rsvps.c.restaurant_id == restaurant_id)
        )
        await self.db.commit()
        if not result.rowcount:
            raise NotFoundException("RSVP not found", error_code="RSVP_NOT_FOUND")
        logger.info("rsvp_cancelled", user_id=str(user_id), restaurant_id=str(restaurant_id))
