"""User model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    String,
    Table,
    Text,
    false,
    true,
)

from app.models.base import created_at_column, id_column, metadata, updated_at_column

users = Table(
    "users",
    metadata,
    id_column(),
    # Identity (any one of these may be the login handle)
    Column("supabase_id", Text, unique=True, index=True),
    Column("phone", String(20), unique=True, index=True),
    Column("email", Text, unique=True, index=True),
    Column("provider", Text, nullable=False, server_default="phone"),
    Column("email_verified", Boolean, nullable=False, server_default=false()),
    # Profile
    Column("name", Text),
    Column("avatar_url", Text),
    # Account state
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("is_admin", Boolean, nullable=False, server_default=false()),
    # Audit
    created_at_column(),
    updated_at_column(),
    Column("last_login_at", DateTime(timezone=True)),
    CheckConstraint(
        "provider IN ('phone', 'email', 'google', 'supabase')",
        name="users_provider_check",
    ),
)
