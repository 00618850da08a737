"""RSVPs table model using SQLAlchemy Core."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Table, Text, UniqueConstraint

from app.models.base import created_at_column, id_column, metadata, updated_at_column

rsvps = Table(
    "rsvps",
    metadata,
    id_column(),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column(
        "restaurant_id",
        ForeignKey("restaurants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("day", Text, nullable=False),
    Column("status", Text, nullable=False, server_default="going"),
    created_at_column(),
    updated_at_column(),
    UniqueConstraint("user_id", "restaurant_id", name="uq_rsvps_user_restaurant"),
    CheckConstraint(
        "day IN ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')",
        name="rsvps_day_check",
    ),
    CheckConstraint(
        "status IN ('going', 'maybe', 'not_going')",
        name="rsvps_status_check",
    ),
)
