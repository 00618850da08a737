"""Weekly featured restaurant pointer using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Table,
    Text,
    true,
)

from app.models.base import created_at_column, id_column, metadata

featured_restaurants = Table(
    "featured_restaurants",
    metadata,
    id_column(),
    Column("city_id", ForeignKey("cities.id", ondelete="CASCADE"), nullable=False),
    Column("restaurant_id", ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False),
    Column("week_start_date", Date, nullable=False),
    Column("week_end_date", Date, nullable=False),
    Column("custom_description", Text),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("selection_source", Text, nullable=False, server_default="manual"),
    created_at_column(),
    CheckConstraint(
        "selection_source IN ('existing', 'queue', 'yelp', 'local', 'manual')",
        name="featured_restaurants_source_check",
    ),
)

# One current pick per city and week
Index(
    "uq_featured_active_city_week",
    featured_restaurants.c.city_id,
    featured_restaurants.c.week_start_date,
    unique=True,
    postgresql_where=featured_restaurants.c.is_active == true(),
    sqlite_where=featured_restaurants.c.is_active == true(),
)
