"""Initial schema

Revision ID: 001
Revises:
Create Date: 2025-09-01 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DAYS = "'monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday'"


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
    """Create all tables and seed the launch city."""
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "users",
        _id(),
        sa.Column("supabase_id", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("provider", sa.Text(), nullable=False, server_default=sa.text("'phone'")),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("last_login_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "provider IN ('phone', 'email', 'google', 'supabase')",
            name="users_provider_check",
        ),
    )
    op.create_index("ix_users_supabase_id", "users", ["supabase_id"], unique=True)
    op.create_index("ix_users_phone", "users", ["phone"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "cities",
        _id(),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("state", sa.Text(), nullable=True),
        sa.Column("timezone", sa.Text(), nullable=False, server_default=sa.text("'America/Chicago'")),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
    )
    op.create_index("ix_cities_slug", "cities", ["slug"], unique=True)

    op.create_table(
        "restaurants",
        _id(),
        _fk("city_id", "cities", ondelete="SET NULL", nullable=True),
        sa.Column("yelp_id", sa.Text(), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("cuisine", sa.Text(), nullable=True),
        sa.Column("price", sa.Text(), nullable=True),
        sa.Column("area", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("website", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("hours", sa.JSON(), nullable=True),
        sa.Column("photos", sa.JSON(), nullable=True),
        sa.Column("categories", sa.JSON(), nullable=True),
        sa.Column("rating", sa.Float(), nullable=True),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("week_of", sa.Date(), nullable=True),
        sa.Column("last_synced_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_restaurants_city_id", "restaurants", ["city_id"])
    op.create_index("ix_restaurants_yelp_id", "restaurants", ["yelp_id"], unique=True)

    op.create_table(
        "featured_restaurants",
        _id(),
        _fk("city_id", "cities"),
        _fk("restaurant_id", "restaurants"),
        sa.Column("week_start_date", sa.Date(), nullable=False),
        sa.Column("week_end_date", sa.Date(), nullable=False),
        sa.Column("custom_description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("selection_source", sa.Text(), nullable=False, server_default=sa.text("'manual'")),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "selection_source IN ('existing', 'yelp', 'local', 'manual')",
            name="featured_restaurants_source_check",
        ),
    )
    # One current pick per city and week
    op.create_index(
        "uq_featured_active_city_week",
        "featured_restaurants",
        ["city_id", "week_start_date"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "rsvps",
        _id(),
        _fk("user_id", "users"),
        _fk("restaurant_id", "restaurants"),
        sa.Column("day", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'going'")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("user_id", "restaurant_id", name="uq_rsvps_user_restaurant"),
        sa.CheckConstraint(f"day IN ({DAYS})", name="rsvps_day_check"),
        sa.CheckConstraint("status IN ('going', 'maybe', 'not_going')", name="rsvps_status_check"),
    )
    op.create_index("ix_rsvps_user_id", "rsvps", ["user_id"])
    op.create_index("ix_rsvps_restaurant_id", "rsvps", ["restaurant_id"])

    op.create_table(
        "verified_visits",
        _id(),
        _fk("user_id", "users"),
        _fk("restaurant_id", "restaurants"),
        sa.Column("photo_url", sa.Text(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("review", sa.Text(), nullable=True),
        sa.Column("visit_date", sa.Date(), nullable=False),
        sa.Column("points_earned", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("badges", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        _timestamp("created_at"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="verified_visits_rating_check"),
    )
    op.create_index("ix_verified_visits_user_id", "verified_visits", ["user_id"])
    op.create_index("ix_verified_visits_restaurant_id", "verified_visits", ["restaurant_id"])

    op.create_table(
        "wishlists",
        _id(),
        _fk("user_id", "users"),
        _fk("restaurant_id", "restaurants"),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("added_at"),
        sa.UniqueConstraint("user_id", "restaurant_id", name="uq_wishlists_user_restaurant"),
    )
    op.create_index("ix_wishlists_user_id", "wishlists", ["user_id"])

    op.create_table(
        "friendships",
        _id(),
        _fk("user_id", "users"),
        _fk("friend_id", "users"),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        _timestamp("created_at"),
        sa.UniqueConstraint("user_id", "friend_id", name="uq_friendships_pair"),
        sa.CheckConstraint("status IN ('pending', 'accepted')", name="friendships_status_check"),
        sa.CheckConstraint("user_id <> friend_id", name="friendships_not_self_check"),
    )
    op.create_index("ix_friendships_user_id", "friendships", ["user_id"])
    op.create_index("ix_friendships_friend_id", "friendships", ["friend_id"])

    op.execute(
        """
        INSERT INTO cities (slug, name, display_name, state, timezone, latitude, longitude, is_active)
        VALUES ('austin', 'Austin', 'Austin Food Club', 'TX', 'America/Chicago', 30.2672, -97.7431, true)
        """
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("friendships")
    op.drop_table("wishlists")
    op.drop_table("verified_visits")
    op.drop_table("rsvps")
    op.drop_index("uq_featured_active_city_week", table_name="featured_restaurants")
    op.drop_table("featured_restaurants")
    op.drop_table("restaurants")
    op.drop_table("cities")
    op.drop_table("users")
