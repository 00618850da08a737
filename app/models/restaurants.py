"""Restaurants table model using SQLAlchemy Core."""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Table,
    Text,
    false,
)

from app.models.base import created_at_column, id_column, metadata, updated_at_column

restaurants = Table(
    "restaurants",
    metadata,
    id_column(),
    Column("city_id", ForeignKey("cities.id", ondelete="SET NULL"), index=True),
    # Yelp business id, null for restaurants added by hand
    Column("yelp_id", Text, unique=True, index=True),
    Column("name", Text, nullable=False),
    Column("cuisine", Text),
    Column("price", Text),
    Column("area", Text),
    Column("description", Text),
    # Location
    Column("address", Text),
    Column("phone", Text),
    Column("website", Text),
    Column("image_url", Text),
    Column("latitude", Float),
    Column("longitude", Float),
    # Yelp payload fragments
    Column("hours", JSON),
    Column("photos", JSON),
    Column("categories", JSON),
    Column("rating", Float),
    Column("review_count", Integer, nullable=False, server_default="0"),
    # Mirrors the active featured_restaurants row
    Column("is_featured", Boolean, nullable=False, server_default=false()),
    Column("week_of", Date),
    Column("last_synced_at", DateTime(timezone=True)),
    created_at_column(),
    updated_at_column(),
)
