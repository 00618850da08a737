"""Verified visit schemas."""

import re
from datetime import date, datetime
from uuid import UUID

from pydantic import Field, field_validator

from app.config import settings
from app.schemas.common import CamelModel
from app.schemas.restaurants import RestaurantSummary
from app.schemas.users import UserSummary

DATA_URI = re.compile(r"^data:image/(jpeg|jpg|png|webp|heic);base64,[A-Za-z0-9+/=\s]+$")


class VisitCreate(CamelModel):
    """Verification submitted after the photo, rating and review steps."""

    restaurant_id: UUID
    photo_url: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    review: str | None = Field(None, max_length=2000)
    visit_date: date | None = None

    @field_validator("photo_url")
    @classmethod
    def validate_photo(cls, value: str) -> str:
        if value.startswith(("http://", "https://")):
            if len(value) > 2048:
                raise ValueError("Photo URL is too long")
            return value
        if not DATA_URI.match(value):
            raise ValueError("Photo must be an http(s) URL or a base64 image data URI")
        # base64 inflates by 4/3
        if len(value) * 3 // 4 > settings.max_photo_data_bytes:
            raise ValueError("Photo is too large")
        return value

    @field_validator("review")
    @classmethod
    def strip_review(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None


class VisitStats(CamelModel):
    total_visits: int
    total_points: int
    current_streak: int
    average_rating: float | None = None
    badges: list[str] = []


class VisitReward(CamelModel):
    points: int
    badges: list[str]
    stats: VisitStats


class VisitResponse(CamelModel):
    id: UUID
    user_id: UUID
    restaurant_id: UUID
    photo_url: str
    rating: int
    review: str | None = None
    visit_date: date
    points_earned: int
    badges: list[str]
    created_at: datetime
    restaurant: RestaurantSummary | None = None
    user: UserSummary | None = None


class VisitCreatedResponse(CamelModel):
    visit: VisitResponse
    reward: VisitReward
