"""Rotation queue and schedule schemas."""

from datetime import date, datetime
from typing import Literal
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator

from app.schemas.common import CamelModel
from app.schemas.restaurants import RestaurantSummary


class QueueAddRequest(CamelModel):
    restaurant_id: UUID
    position: int | None = Field(None, ge=1)
    notes: str | None = Field(None, max_length=1000)
    scheduled_week: date | None = None
    city_slug: str | None = None


class QueueUrgentRequest(CamelModel):
    restaurant_id: UUID
    notes: str | None = Field(None, max_length=1000)
    city_slug: str | None = None


class QueueReorderRequest(CamelModel):
    item_ids: list[UUID] = Field(..., min_length=1)
    city_slug: str | None = None


class QueueSkipRequest(CamelModel):
    reason: str | None = Field(None, max_length=500)
    action: Literal["move_to_end", "remove"] = "move_to_end"


class QueueItemResponse(CamelModel):
    id: UUID
    city_id: UUID
    position: int
    status: str
    notes: str | None = None
    scheduled_week: date | None = None
    estimated_week: date | None = None
    added_by: UUID | None = None
    created_at: datetime
    restaurant: RestaurantSummary


class QueueStats(CamelModel):
    pending: int
    active: int
    completed: int
    health: Literal["healthy", "low", "critical"]
    min_queue_size: int
    below_minimum: bool


class QueueResponse(CamelModel):
    items: list[QueueItemResponse]
    stats: QueueStats


class RotationConfigUpdate(CamelModel):
    mode: Literal["manual", "automatic"] | None = None
    rotation_weekday: int | None = Field(None, ge=0, le=6, description="Monday=0")
    rotation_hour: int | None = Field(None, ge=0, le=23)
    rotation_minute: int | None = Field(None, ge=0, le=59)
    timezone: str | None = None
    is_active: bool | None = None
    min_queue_size: int | None = Field(None, ge=0, le=52)
    city_slug: str | None = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}") from None
        return v


class RotationConfigResponse(CamelModel):
    city_id: UUID
    mode: str
    rotation_weekday: int
    rotation_hour: int
    rotation_minute: int
    timezone: str
    is_active: bool
    min_queue_size: int
    next_rotation_at: datetime | None = None
    last_rotation_at: datetime | None = None
