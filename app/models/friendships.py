"""Friendships table model using SQLAlchemy Core."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Table, Text, UniqueConstraint

from app.models.base import created_at_column, id_column, metadata

friendships = Table(
    "friendships",
    metadata,
    id_column(),
    # Requester
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    # Addressee
    Column("friend_id", ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("status", Text, nullable=False, server_default="pending"),
    created_at_column(),
    UniqueConstraint("user_id", "friend_id", name="uq_friendships_pair"),
    CheckConstraint("status IN ('pending', 'accepted')", name="friendships_status_check"),
    CheckConstraint("user_id <> friend_id", name="friendships_not_self_check"),
)
