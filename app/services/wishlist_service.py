"""Wishlist service for business logic."""

from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, NotFoundException
from app.models.restaurants import restaurants
from app.models.wishlists import wishlists
from app.services.restaurant_service import RestaurantService

logger = structlog.get_logger()


def _with_restaurant(row: dict) -> dict:
    item = {column: row[column] for column in wishlists.c.keys()}
    item["restaurant"] = {
        "id": row["restaurant_id"],
        "name": row["name"],
        "cuisine": row["cuisine"],
        "price": row["price"],
        "area": row["area"],
        "image_url": row["image_url"],
    }
    return item


class WishlistService:
    """Service for restaurants a user wants to try."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    def _query(self):
        return select(
            wishlists,
            restaurants.c.name,
            restaurants.c.cuisine,
            restaurants.c.price,
            restaurants.c.area,
            restaurants.c.image_url,
        ).join(restaurants, restaurants.c.id == wishlists.c.restaurant_id)

    async def add(self, user_id: UUID, restaurant_id: UUID, notes: str | None = None) -> dict:
        """
        Add a restaurant to the user's wishlist.

        Raises:
            NotFoundException: Unknown restaurant
            ConflictException: Already on the wishlist
        """
        await RestaurantService(self.db).get_restaurant_or_404(restaurant_id)

        try:
            result = await self.db.execute(
                wishlists.insert()
                .values(
                    user_id=user_id,
                    restaurant_id=restaurant_id,
                    notes=notes,
                    added_at=datetime.now(UTC),
                )
                .returning(wishlists.c.id)
            )
            item_id = result.scalar_one()
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException(
                "Restaurant is already in your wishlist", error_code="ALREADY_IN_WISHLIST"
            ) from None

        logger.info("wishlist_added", user_id=str(user_id), restaurant_id=str(restaurant_id))
        result = await self.db.execute(self._query().where(wishlists.c.id == item_id))
        return _with_restaurant(dict(result.mappings().one()))

    async def list_items(self, user_id: UUID) -> list[dict]:
        """The user's wishlist, most recently added first."""
        result = await self.db.execute(
            self._query().where(wishlists.c.user_id == user_id).order_by(wishlists.c.added_at.desc())
        )
        return [_with_restaurant(dict(row)) for row in result.mappings().all()]

    async def remove(self, user_id: UUID, restaurant_id: UUID) -> None:
        result = await self.db.execute(
            delete(wishlists).where(wishlists.c.user_id == user_id, wishlists.c.restaurant_id == restaurant_id)
        )
        await self.db.commit()
        if not result.rowcount:
            raise NotFoundException("Restaurant is not in your wishlist", error_code="WISHLIST_ITEM_NOT_FOUND")
        logger.info("wishlist_removed", user_id=str(user_id), restaurant_id=str(restaurant_id))
