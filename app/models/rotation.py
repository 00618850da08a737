"""Admin-curated rotation queue and per-city rotation schedule using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Table,
    Text,
    true,
)

from app.models.base import created_at_column, id_column, metadata, updated_at_column

QUEUE_STATUSES = ("pending", "active", "completed")
ROTATION_MODES = ("manual", "automatic")

rotation_queue = Table(
    "rotation_queue",
    metadata,
    id_column(),
    Column("city_id", ForeignKey("cities.id", ondelete="CASCADE"), nullable=False),
    Column("restaurant_id", ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False),
    Column("position", Integer, nullable=False),
    Column("status", Text, nullable=False, server_default="pending"),
    Column("notes", Text),
    Column("scheduled_week", Date),
    Column("added_by", ForeignKey("users.id", ondelete="SET NULL")),
    created_at_column(),
    updated_at_column(),
    CheckConstraint("status IN ('pending', 'active', 'completed')", name="rotation_queue_status_check"),
)

Index(
    "ix_rotation_queue_city_status_position",
    rotation_queue.c.city_id,
    rotation_queue.c.status,
    rotation_queue.c.position,
)

# A restaurant is queued at most once per city until its turn is over
Index(
    "uq_rotation_queue_open_restaurant",
    rotation_queue.c.city_id,
    rotation_queue.c.restaurant_id,
    unique=True,
    postgresql_where=rotation_queue.c.status.in_(["pending", "active"]),
    sqlite_where=rotation_queue.c.status.in_(["pending", "active"]),
)

rotation_configs = Table(
    "rotation_configs",
    metadata,
    id_column(),
    Column("city_id", ForeignKey("cities.id", ondelete="CASCADE"), nullable=False, unique=True),
    Column("mode", Text, nullable=False, server_default="automatic"),
    Column("rotation_weekday", Integer, nullable=False),  # Monday=0
    Column("rotation_hour", Integer, nullable=False),
    Column("rotation_minute", Integer, nullable=False, server_default="0"),
    Column("timezone", Text, nullable=False),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("min_queue_size", Integer, nullable=False, server_default="2"),
    Column("next_rotation_at", DateTime(timezone=True)),
    Column("last_rotation_at", DateTime(timezone=True)),
    created_at_column(),
    updated_at_column(),
    CheckConstraint("mode IN ('manual', 'automatic')", name="rotation_configs_mode_check"),
    CheckConstraint("rotation_weekday BETWEEN 0 AND 6", name="rotation_configs_weekday_check"),
    CheckConstraint("rotation_hour BETWEEN 0 AND 23", name="rotation_configs_hour_check"),
    CheckConstraint("rotation_minute BETWEEN 0 AND 59", name="rotation_configs_minute_check"),
)
