"""Verified visits table model using SQLAlchemy Core."""

from sqlalchemy import JSON, CheckConstraint, Column, Date, ForeignKey, Integer, Table, Text

from app.models.base import created_at_column, id_column, metadata

verified_visits = Table(
    "verified_visits",
    metadata,
    id_column(),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column(
        "restaurant_id",
        ForeignKey("restaurants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("photo_url", Text, nullable=False),
    Column("rating", Integer, nullable=False),
    Column("review", Text),
    Column("visit_date", Date, nullable=False),
    # Rewards computed when the visit is recorded
    Column("points_earned", Integer, nullable=False, server_default="0"),
    Column("badges", JSON, nullable=False, default=list),
    created_at_column(),
    CheckConstraint("rating BETWEEN 1 AND 5", name="verified_visits_rating_check"),
)
