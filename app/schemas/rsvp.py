"""RSVP schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from app.schemas.common import CamelModel
from app.schemas.restaurants import RestaurantSummary


class Day(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class RSVPStatus(str, Enum):
    GOING = "going"
    MAYBE = "maybe"
    NOT_GOING = "not_going"


DAYS = [day.value for day in Day]


class RSVPCreate(CamelModel):
    """Create or replace the caller's RSVP.

    ``restaurant_id`` defaults to this week's featured restaurant.
    """

    day: Day
    status: RSVPStatus = RSVPStatus.GOING
    restaurant_id: UUID | None = None


class RSVPResponse(CamelModel):
    id: UUID
    user_id: UUID
    restaurant_id: UUID
    day: Day
    status: RSVPStatus
    created_at: datetime
    updated_at: datetime
    restaurant: RestaurantSummary | None = None


class RSVPCounts(CamelModel):
    restaurant_id: UUID
    counts: dict[str, int]
    total_going: int
