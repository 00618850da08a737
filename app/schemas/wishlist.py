"""Wishlist schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel
from app.schemas.restaurants import RestaurantSummary


class WishlistCreate(CamelModel):
    restaurant_id: UUID
    notes: str | None = Field(None, max_length=500)


class WishlistItemResponse(CamelModel):
    id: UUID
    restaurant_id: UUID
    notes: str | None = None
    added_at: datetime
    restaurant: RestaurantSummary | None = None
