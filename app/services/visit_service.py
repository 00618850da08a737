"""Verified visits and the rewards earned for them."""

from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenException, NotFoundException
from app.models.restaurants import restaurants
from app.models.users import users
from app.models.verified_visits import verified_visits
from app.schemas.visits import VisitCreate
from app.services.restaurant_service import RestaurantService

logger = structlog.get_logger()

BASE_POINTS = 10
GOOD_RATING_BONUS = 5
PERFECT_RATING_BONUS = 10
REVIEW_BONUS = 5
SHORT_STREAK_BONUS = 5
LONG_STREAK_BONUS = 10

REVIEW_BONUS_LENGTH = 50
DETAILED_REVIEW_LENGTH = 100

FEED_COLUMNS = (
    restaurants.c.name.label("restaurant_name"),
    restaurants.c.cuisine.label("restaurant_cuisine"),
    restaurants.c.price.label("restaurant_price"),
    restaurants.c.area.label("restaurant_area"),
    restaurants.c.image_url.label("restaurant_image_url"),
    users.c.name.label("user_name"),
    users.c.avatar_url.label("user_avatar_url"),
)


def visit_streak(dates: Iterable[date], end: date) -> int:
    """Consecutive calendar days with a visit, counting back from ``end``."""
    days = set(dates)
    streak = 0
    day = end
    while day in days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def summarize_visits(visits: list[dict[str, Any]], today: date) -> dict[str, Any]:
    """Totals for a user's visits, oldest first.

    The streak is current only while the latest visit is today or yesterday.
    """
    if not visits:
        return {
            "total_visits": 0,
            "total_points": 0,
            "current_streak": 0,
            "average_rating": None,
            "badges": [],
        }

    dates = [visit["visit_date"] for visit in visits]
    latest = max(dates)
    streak = visit_streak(dates, latest) if latest >= today - timedelta(days=1) else 0

    badges: list[str] = []
    for visit in visits:
        for badge in visit.get("badges") or []:
            if badge not in badges:
                badges.append(badge)

    return {
        "total_visits": len(visits),
        "total_points": sum(visit.get("points_earned") or 0 for visit in visits),
        "current_streak": streak,
        "average_rating": round(sum(visit["rating"] for visit in visits) / len(visits), 2),
        "badges": badges,
    }


def compute_visit_rewards(visit: dict[str, Any], history: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Points and badges earned by a new visit.

    Args:
        visit: The new visit (``rating``, ``review``, ``visit_date``)
        history: The user's earlier visits, oldest first

    Returns:
        ``{"points", "badges", "stats"}`` where stats include the new visit
    """
    rating = visit["rating"]
    review = visit.get("review") or ""
    visit_date = visit["visit_date"]
    streak = visit_streak([v["visit_date"] for v in history] + [visit_date], visit_date)

    points = BASE_POINTS
    if rating >= 4:
        points += GOOD_RATING_BONUS
    if rating == 5:
        points += PERFECT_RATING_BONUS
    if len(review) > REVIEW_BONUS_LENGTH:
        points += REVIEW_BONUS
    if streak >= 3:
        points += SHORT_STREAK_BONUS
    if streak >= 7:
        points += LONG_STREAK_BONUS

    badges = []
    if not history:
        badges.append("first-verification")
    if rating == 5:
        badges.append("perfect-rating")
    if streak == 3:
        badges.append("streak-3")
    if streak == 7:
        badges.append("streak-7")
    if len(review) > DETAILED_REVIEW_LENGTH:
        badges.append("detailed-review")

    stats = summarize_visits(
        [*history, {**visit, "points_earned": points, "badges": badges}],
        today=visit_date,
    )
    return {"points": points, "badges": badges, "stats": stats}


def serialize_visit(row: dict[str, Any]) -> dict[str, Any]:
    """Visit row joined with ``FEED_COLUMNS`` to the nested response shape."""
    visit = {column: row[column] for column in verified_visits.c.keys()}
    visit["restaurant"] = {
        "id": row["restaurant_id"],
        "name": row["restaurant_name"],
        "cuisine": row["restaurant_cuisine"],
        "price": row["restaurant_price"],
        "area": row["restaurant_area"],
        "image_url": row["restaurant_image_url"],
    }
    visit["user"] = {
        "id": row["user_id"],
        "name": row["user_name"],
        "avatar_url": row["user_avatar_url"],
    }
    return visit


def feed_query():
    return (
        select(verified_visits, *FEED_COLUMNS)
        .join(restaurants, restaurants.c.id == verified_visits.c.restaurant_id)
        .join(users, users.c.id == verified_visits.c.user_id)
    )


class VisitService:
    """Service for verified visits."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def _history(self, user_id: UUID) -> list[dict]:
        result = await self.db.execute(
            select(verified_visits)
            .where(verified_visits.c.user_id == user_id)
            .order_by(verified_visits.c.created_at)
        )
        return [dict(row) for row in result.mappings().all()]

    async def create_visit(
        self,
        user_id: UUID,
        visit_data: VisitCreate,
        today: date | None = None,
    ) -> tuple[dict, dict]:
        """
        Record a verified visit and the rewards it earned.

        Returns:
            The stored visit (with restaurant and user summaries) and the reward
        """
        await RestaurantService(self.db).get_restaurant_or_404(visit_data.restaurant_id)

        visit = {
            "rating": visit_data.rating,
            "review": visit_data.review,
            "visit_date": visit_data.visit_date or today or datetime.now(UTC).date(),
        }
        reward = compute_visit_rewards(visit, await self._history(user_id))

        result = await self.db.execute(
            verified_visits.insert()
            .values(
                user_id=user_id,
                restaurant_id=visit_data.restaurant_id,
                photo_url=visit_data.photo_url,
                points_earned=reward["points"],
                badges=reward["badges"],
                created_at=datetime.now(UTC),
                **visit,
            )
            .returning(verified_visits.c.id)
        )
        visit_id = result.scalar_one()
        await self.db.commit()

        logger.info(
            "visit_verified",
            user_id=str(user_id),
            restaurant_id=str(visit_data.restaurant_id),
            points=reward["points"],
            badges=reward["badges"],
        )
        return await self.get_visit(visit_id), reward

    async def get_visit(self, visit_id: UUID) -> dict | None:
        result = await self.db.execute(feed_query().where(verified_visits.c.id == visit_id))
        row = result.mappings().first()
        return serialize_visit(dict(row)) if row else None

    async def list_user_visits(self, user_id: UUID, page: int = 1, limit: int = 20) -> tuple[list[dict], int]:
        """A user's visits, newest first."""
        count_query = select(func.count()).select_from(verified_visits).where(verified_visits.c.user_id == user_id)
        total = (await self.db.execute(count_query)).scalar_one()

        query = (
            feed_query()
            .where(verified_visits.c.user_id == user_id)
            .order_by(verified_visits.c.visit_date.desc(), verified_visits.c.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [serialize_visit(dict(row)) for row in result.mappings().all()], total

    async def list_visits_for_users(self, user_ids: list[UUID], limit: int = 20) -> list[dict]:
        """Newest visits by any of ``user_ids``."""
        if not user_ids:
            return []
        query = (
            feed_query()
            .where(verified_visits.c.user_id.in_(user_ids))
            .order_by(verified_visits.c.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [serialize_visit(dict(row)) for row in result.mappings().all()]

    async def recent_visits(self, limit: int = 20, city_id: UUID | None = None) -> list[dict]:
        """Community feed of the newest visits, optionally within one city."""
        query = feed_query()
        if city_id:
            query = query.where(restaurants.c.city_id == city_id)
        result = await self.db.execute(query.order_by(verified_visits.c.created_at.desc()).limit(limit))
        return [serialize_visit(dict(row)) for row in result.mappings().all()]

    async def get_stats(self, user_id: UUID, today: date | None = None) -> dict[str, Any]:
        return summarize_visits(await self._history(user_id), today or datetime.now(UTC).date())

    async def delete_visit(self, user_id: UUID, visit_id: UUID) -> None:
        """Delete a visit owned by ``user_id``."""
        result = await self.db.execute(
            select(verified_visits.c.user_id).where(verified_visits.c.id == visit_id)
        )
        owner_id = result.scalar_one_or_none()
        if owner_id is None:
            raise NotFoundException("Verified visit not found", error_code="VISIT_NOT_FOUND")
        if owner_id != user_id:
            raise ForbiddenException("You can only delete your own visits")

        await self.db.execute(delete(verified_visits).where(verified_visits.c.id == visit_id))
        await self.db.commit()
        logger.info("visit_deleted", user_id=str(user_id), visit_id=str(visit_id))
