"""Admin request schemas."""

from datetime import date
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel


class CustomFeaturedRequest(CamelModel):
    restaurant_id: UUID
    week_start_date: date | None = None
    custom_description: str | None = Field(None, max_length=1000)
    city_slug: str | None = None


class RotationRunRequest(CamelModel):
    week_start_date: date | None = None
    force_new: bool = False
    city_slug: str | None = None


class ArchiveRequest(CamelModel):
    months_to_keep: int = Field(6, ge=1, le=60)


class RestaurantSyncRequest(CamelModel):
    yelp_id: str = Field(..., min_length=1, max_length=200)
    city_slug: str | None = None
