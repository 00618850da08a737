"""Restaurant endpoints: this week's pick, Yelp search and the local catalogue."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query

from app.config import settings
from app.core.exceptions import ConflictException, NotFoundException
from app.dependencies import CityContext, DatabaseSession, YelpServiceDep
from app.schemas.common import ApiResponse, Pagination, ResponseMeta
from app.schemas.restaurants import (
    FeaturedRestaurantResponse,
    RestaurantResponse,
    RestaurantSearchParams,
    SearchResult,
)
from app.services.featured_service import FeaturedRestaurantService, city_today
from app.services.restaurant_service import RestaurantService, serialize_restaurant
from app.services.rotation_service import RotationConfigService

router = APIRouter(prefix="/restaurants", tags=["Restaurants"])


async def _automatic(city: dict[str, Any], featured_service: FeaturedRestaurantService) -> bool:
    config = await RotationConfigService(featured_service.db).get_config(city)
    return config["mode"] == "automatic"


async def _current_featured(city: dict[str, Any], featured_service: FeaturedRestaurantService) -> dict:
    """This week's pick for the city, selecting one when none exists yet."""
    today = city_today(city)
    featured = await featured_service.get_current_featured(city["id"], today)
    if featured is None and settings.auto_select_featured and await _automatic(city, featured_service):
        try:
            featured = await featured_service.select_featured_restaurant(today, city)
        except ConflictException:
            # Another request selected it first
            featured = await featured_service.get_current_featured(city["id"], today)
        except NotFoundException:
            featured = None

    if featured is None or featured["restaurant"] is None:
        raise NotFoundException("No current restaurant found", error_code="NO_CURRENT_RESTAURANT")
    return featured


def _featured_response(featured: dict) -> FeaturedRestaurantResponse:
    return FeaturedRestaurantResponse.model_validate(
        {**featured, "restaurant": serialize_restaurant(featured["restaurant"])}
    )


@router.get("/current", response_model=ApiResponse[RestaurantResponse])
async def get_current_restaurant(city: CityContext, db: DatabaseSession, yelp_service: YelpServiceDep):
    """This week's featured restaurant for the caller's city."""
    featured = await _current_featured(city, FeaturedRestaurantService(db, yelp_service))
    return ApiResponse(
        message="Current restaurant retrieved",
        data=RestaurantResponse.model_validate(serialize_restaurant(featured["restaurant"])),
    )


@router.get("/featured", response_model=ApiResponse[FeaturedRestaurantResponse])
async def get_featured_restaurant(city: CityContext, db: DatabaseSession, yelp_service: YelpServiceDep):
    """This week's featured record with its week bounds and description."""
    featured = await _current_featured(city, FeaturedRestaurantService(db, yelp_service))
    return ApiResponse(message="Featured restaurant retrieved", data=_featured_response(featured))


@router.get("/search", response_model=ApiResponse[SearchResult])
async def search_restaurants(
    city: CityContext,
    yelp_service: YelpServiceDep,
    term: str | None = Query(None, max_length=100),
    location: str | None = Query(None, max_length=100),
    categories: str | None = Query(None, max_length=200),
    price: str | None = Query(None, pattern=r"^[1-4](,[1-4])*$"),
    limit: int = Query(20, ge=1, le=50),
    offset: int = Query(0, ge=0, le=1000),
    sort_by: str | None = Query(None, alias="sortBy", pattern=r"^(best_match|rating|review_count|distance)$"),
    fresh: bool = Query(False, description="Bypass the cache"),
):
    """Search Yelp through the cache, rate limiter and outage fallback."""
    params = RestaurantSearchParams(
        term=term,
        location=location,
        categories=categories,
        price=price,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
    )
    yelp_params = params.to_yelp_params()
    if not location and city.get("state"):
        yelp_params["location"] = f"{city['name']}, {city['state']}"

    result = await yelp_service.search(yelp_params, city_id=city["id"], fresh=fresh)
    return ApiResponse(
        message="Restaurants retrieved",
        data=SearchResult.model_validate(result.data),
        meta=ResponseMeta(source=result.source, cached=result.cached),
    )


@router.get("/yelp/{yelp_id}", response_model=ApiResponse[dict[str, Any]])
async def get_yelp_business(yelp_id: str, yelp_service: YelpServiceDep, fresh: bool = False):
    """Yelp business details."""
    result = await yelp_service.get_details(yelp_id, fresh=fresh)
    return ApiResponse(
        message="Restaurant details retrieved",
        data=result.data,
        meta=ResponseMeta(source=result.source, cached=result.cached),
    )


@router.get("/yelp/{yelp_id}/reviews", response_model=ApiResponse[dict[str, Any]])
async def get_yelp_reviews(yelp_id: str, yelp_service: YelpServiceDep, fresh: bool = False):
    """Yelp reviews; unavailable while Yelp is down."""
    result = await yelp_service.get_reviews(yelp_id, fresh=fresh)
    return ApiResponse(
        message="Reviews retrieved",
        data=result.data,
        meta=ResponseMeta(source=result.source, cached=result.cached),
    )


@router.get("", response_model=ApiResponse[list[RestaurantResponse]])
async def list_restaurants(
    city: CityContext,
    db: DatabaseSession,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    cuisine: str | None = Query(None, max_length=100),
    search: str | None = Query(None, max_length=100),
):
    """Locally stored restaurants in the caller's city, best rated first."""
    rows, total = await RestaurantService(db).list_restaurants(
        city_id=city["id"], page=page, limit=limit, cuisine=cuisine, search=search
    )
    return ApiResponse(
        message="Restaurants retrieved",
        data=[RestaurantResponse.model_validate(serialize_restaurant(row)) for row in rows],
        meta=ResponseMeta(pagination=Pagination.build(page, limit, total)),
    )


@router.get("/{restaurant_id}", response_model=ApiResponse[RestaurantResponse])
async def get_restaurant(restaurant_id: UUID, db: DatabaseSession):
    restaurant = await RestaurantService(db).get_restaurant_or_404(restaurant_id)
    return ApiResponse(
        message="Restaurant retrieved",
        data=RestaurantResponse.model_validate(serialize_restaurant(restaurant)),
    )

