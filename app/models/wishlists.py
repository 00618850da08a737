"""Wishlist table model using SQLAlchemy Core."""

from sqlalchemy import Column, ForeignKey, Table, Text, UniqueConstraint

from app.models.base import created_at_column, id_column, metadata

wishlists = Table(
    "wishlists",
    metadata,
    id_column(),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("restaurant_id", ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False),
    Column("notes", Text),
    created_at_column("added_at"),
    UniqueConstraint("user_id", "restaurant_id", name="uq_wishlists_user_restaurant"),
)
