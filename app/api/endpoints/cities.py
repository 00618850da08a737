"""City endpoints."""

from fastapi import APIRouter

from app.core.exceptions import NotFoundException
from app.dependencies import DatabaseSession
from app.schemas.cities import CityResponse
from app.schemas.common import ApiResponse
from app.services.city_service import CityService

router = APIRouter(prefix="/cities", tags=["Cities"])


@router.get("", response_model=ApiResponse[list[CityResponse]])
async def list_cities(db: DatabaseSession):
    """Cities the club is running in."""
    cities = await CityService(db).list_active()
    return ApiResponse(message="Cities retrieved", data=[CityResponse.model_validate(city) for city in cities])


@router.get("/{slug}", response_model=ApiResponse[CityResponse])
async def get_city(slug: str, db: DatabaseSession):
    city = await CityService(db).get_by_slug(slug)
    if not city:
        raise NotFoundException("City not found", error_code="CITY_NOT_FOUND")
    return ApiResponse(message="City retrieved", data=CityResponse.model_validate(city))
