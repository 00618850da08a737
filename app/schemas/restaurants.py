"""Restaurant and featured-restaurant schemas."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel


class RestaurantSummary(CamelModel):
    """Compact restaurant embedded in RSVP, visit and wishlist responses."""

    id: UUID
    name: str
    cuisine: str | None = None
    price: str | None = None
    area: str | None = None
    image_url: str | None = None


class RestaurantResponse(CamelModel):
    """Restaurant as stored locally."""

    id: UUID
    city_id: UUID | None = None
    yelp_id: str | None = None
    name: str
    cuisine: str | None = None
    price: str | None = None
    area: str | None = None
    description: str | None = None
    address: str | None = None
    phone: str | None = None
    website: str | None = None
    image_url: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    hours: dict[str, str] | None = None
    photos: list[str] | None = None
    categories: list[str] | None = None
    rating: float | None = None
    review_count: int = 0
    is_featured: bool = False
    week_of: date | None = None
    static_map_url: str | None = None
    last_synced_at: datetime | None = None
    created_at: datetime


class FeaturedRestaurantResponse(CamelModel):
    """This week's pick with its week bounds."""

    id: UUID
    city_id: UUID
    week_start_date: date
    week_end_date: date
    custom_description: str | None = None
    selection_source: str
    is_active: bool
    restaurant: RestaurantResponse


class RestaurantSearchParams(CamelModel):
    """Query parameters for the Yelp-backed search."""

    term: str | None = Field(None, max_length=100)
    location: str | None = Field(None, max_length=100)
    categories: str | None = Field(None, max_length=200)
    price: str | None = Field(None, pattern=r"^[1-4](,[1-4])*$")
    limit: int = Field(20, ge=1, le=50)
    offset: int = Field(0, ge=0, le=1000)
    sort_by: str | None = Field(None, pattern=r"^(best_match|rating|review_count|distance)$")

    def to_yelp_params(self) -> dict[str, Any]:
        return {
            "term": self.term,
            "location": self.location,
            "categories": self.categories,
            "price": self.price,
            "limit": self.limit,
            "offset": self.offset,
            "sort_by": self.sort_by,
        }


class SearchResult(CamelModel):
    businesses: list[dict[str, Any]]
    total: int
    region: dict[str, Any] | None = None
