"""Database models."""

from app.models.base import metadata
from app.models.cities import cities
from app.models.featured_restaurants import featured_restaurants
from app.models.friendships import friendships
from app.models.restaurants import restaurants
from app.models.rotation import rotation_configs, rotation_queue
from app.models.rsvps import rsvps
from app.models.users import users
from app.models.verified_visits import verified_visits
from app.models.wishlists import wishlists

__all__ = [
    "cities",
    "featured_restaurants",
    "friendships",
    "metadata",
    "restaurants",
    "rotation_configs",
    "rotation_queue",
    "rsvps",
    "users",
    "verified_visits",
    "wishlists",
]
