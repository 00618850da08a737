"""City lookup and request city context."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ForbiddenException, NotFoundException
from app.models.cities import cities


class CityService:
    """Service for cities."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def list_active(self) -> list[dict]:
        query = select(cities).where(cities.c.is_active.is_(True)).order_by(cities.c.name)
        result = await self.db.execute(query)
        return [dict(row) for row in result.mappings().all()]

    async def get_by_slug(self, slug: str) -> dict | None:
        result = await self.db.execute(select(cities).where(cities.c.slug == slug.lower()))
        city = result.mappings().first()
        return dict(city) if city else None

    async def get_by_id(self, city_id: UUID) -> dict | None:
        result = await self.db.execute(select(cities).where(cities.c.id == city_id))
        city = result.mappings().first()
        return dict(city) if city else None

    async def resolve(self, slug: str | None) -> dict:
        """
        Resolve the city a request is scoped to.

        Unknown slugs fall back to the default city; a known but inactive
        city is refused.
        """
        city = await self.get_by_slug(slug) if slug else None
        if city is None:
            city = await self.get_by_slug(settings.default_city_slug)
            if city is None:
                raise NotFoundException("No city configured", error_code="CITY_NOT_FOUND")

        if not city["is_active"]:
            raise ForbiddenException(
                f"{city['display_name']} is not available yet",
                error_code="CITY_INACTIVE",
            )

        return city
