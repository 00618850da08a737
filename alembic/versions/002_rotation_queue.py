"""Rotation queue and per-city rotation config

Revision ID: 002
Revises: 001
Create Date: 2025-10-01 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("NOW()"))


def _fk(name: str, target: str, ondelete: str = "CASCADE", nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(f"{target}.id", ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    """Create the rotation queue and config tables."""
    op.create_table(
        "rotation_queue",
        _id(),
        _fk("city_id", "cities"),
        _fk("restaurant_id", "restaurants"),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("scheduled_week", sa.Date(), nullable=True),
        _fk("added_by", "users", ondelete="SET NULL", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("status IN ('pending', 'active', 'completed')", name="rotation_queue_status_check"),
    )
    op.create_index(
        "ix_rotation_queue_city_status_position",
        "rotation_queue",
        ["city_id", "status", "position"],
    )
    op.create_index(
        "uq_rotation_queue_open_restaurant",
        "rotation_queue",
        ["city_id", "restaurant_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'active')"),
    )

    op.create_table(
        "rotation_configs",
        _id(),
        _fk("city_id", "cities"),
        sa.Column("mode", sa.Text(), nullable=False, server_default=sa.text("'automatic'")),
        sa.Column("rotation_weekday", sa.Integer(), nullable=False),
        sa.Column("rotation_hour", sa.Integer(), nullable=False),
        sa.Column("rotation_minute", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("timezone", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("min_queue_size", sa.Integer(), nullable=False, server_default=sa.text("2")),
        sa.Column("next_rotation_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_rotation_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("city_id", name="rotation_configs_city_id_key"),
        sa.CheckConstraint("mode IN ('manual', 'automatic')", name="rotation_configs_mode_check"),
        sa.CheckConstraint("rotation_weekday BETWEEN 0 AND 6", name="rotation_configs_weekday_check"),
        sa.CheckConstraint("rotation_hour BETWEEN 0 AND 23", name="rotation_configs_hour_check"),
        sa.CheckConstraint("rotation_minute BETWEEN 0 AND 59", name="rotation_configs_minute_check"),
    )

    op.drop_constraint("featured_restaurants_source_check", "featured_restaurants", type_="check")
    op.create_check_constraint(
        "featured_restaurants_source_check",
        "featured_restaurants",
        "selection_source IN ('existing', 'queue', 'yelp', 'local', 'manual')",
    )


def downgrade() -> None:
    """Drop the rotation tables."""
    op.execute("UPDATE featured_restaurants SET selection_source = 'manual' WHERE selection_source = 'queue'")
    op.drop_constraint("featured_restaurants_source_check", "featured_restaurants", type_="check")
    op.create_check_constraint(
        "featured_restaurants_source_check",
        "featured_restaurants",
        "selection_source IN ('existing', 'yelp', 'local', 'manual')",
    )
    op.drop_table("rotation_configs")
    op.drop_index("uq_rotation_queue_open_restaurant", table_name="rotation_queue")
    op.drop_index("ix_rotation_queue_city_status_position", table_name="rotation_queue")
    op.drop_table("rotation_queue")
