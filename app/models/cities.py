"""Cities table model using SQLAlchemy Core."""

from sqlalchemy import Boolean, Column, Float, Table, Text, true

from app.models.base import created_at_column, id_column, metadata

cities = Table(
    "cities",
    metadata,
    id_column(),
    Column("slug", Text, nullable=False, unique=True, index=True),
    Column("name", Text, nullable=False),
    Column("display_name", Text, nullable=False),
    Column("state", Text),
    Column("timezone", Text, nullable=False, server_default="America/Chicago"),
    Column("latitude", Float),
    Column("longitude", Float),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    created_at_column(),
)
