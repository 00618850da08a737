"""RSVP endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import CityContext, CurrentUser, DatabaseSession
from app.schemas.common import ApiResponse
from app.schemas.rsvp import RSVPCounts, RSVPCreate, RSVPResponse
from app.services.featured_service import city_today
from app.services.rsvp_service import RSVPService

router = APIRouter(prefix="/rsvp", tags=["RSVP"])


@router.post("", response_model=ApiResponse[RSVPResponse], status_code=status.HTTP_201_CREATED)
async def create_rsvp(
    rsvp_data: RSVPCreate,
    current_user: CurrentUser,
    city: CityContext,
    db: DatabaseSession,
):
    """Create or replace the caller's RSVP for a restaurant (this week's pick by default)."""
    rsvp = await RSVPService(db).create_or_replace_rsvp(
        user_id=current_user["id"],
        day=rsvp_data.day,
        status=rsvp_data.status,
        restaurant_id=rsvp_data.restaurant_id,
        city_id=city["id"],
        today=city_today(city),
    )
    return ApiResponse(message="RSVP saved", data=RSVPResponse.model_validate(rsvp))


@router.get("", response_model=ApiResponse[list[RSVPResponse]])
async def list_rsvps(current_user: CurrentUser, db: DatabaseSession):
    """The caller's RSVPs, newest first."""
    rsvps = await RSVPService(db).list_user_rsvps(current_user["id"])
    return ApiResponse(
        message="RSVPs retrieved",
        data=[RSVPResponse.model_validate(rsvp) for rsvp in rsvps],
    )


@router.get("/counts", response_model=ApiResponse[RSVPCounts])
async def get_rsvp_counts(
    city: CityContext,
    db: DatabaseSession,
    restaurant_id: UUID | None = Query(None, alias="restaurantId"),
):
    """Going count per day; defaults to this week's featured restaurant."""
    rsvp_service = RSVPService(db)
    restaurant_id = await rsvp_service.resolve_restaurant_id(restaurant_id, city["id"], city_today(city))
    counts = await rsvp_service.get_rsvp_counts(restaurant_id)
    return ApiResponse(
        message="RSVP counts retrieved",
        data=RSVPCounts(restaurant_id=restaurant_id, counts=counts, total_going=sum(counts.values())),
    )


@router.delete("/{restaurant_id}", response_model=ApiResponse[None])
async def delete_rsvp(restaurant_id: UUID, current_user: CurrentUser, db: DatabaseSession):
    """Cancel the caller's RSVP for a restaurant."""
    await RSVPService(db).delete_rsvp(current_user["id"], restaurant_id)
    return ApiResponse(message="RSVP cancelled")
