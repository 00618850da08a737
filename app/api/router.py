"""API router configuration."""

from fastapi import APIRouter

from app.api.endpoints import (
    admin,
    cities,
    health,
    restaurants,
    rsvp,
    social,
    users,
    verification,
    visits,
    wishlist,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(verification.router)
api_router.include_router(users.router)
api_router.include_router(cities.router)
api_router.include_router(restaurants.router)
api_router.include_router(rsvp.router)
api_router.include_router(visits.router)
api_router.include_router(wishlist.router)
api_router.include_router(social.router)
api_router.include_router(admin.router)
