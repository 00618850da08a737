"""Admin-only endpoints for the weekly pick, rotation queue, restaurant sync and Yelp operations."""

from typing import Annotated, Any
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.yelp_client import YelpClient
from app.dependencies import (
    AdminAccess,
    AdminUser,
    CacheManagerDep,
    DatabaseSession,
    YelpServiceDep,
    get_yelp_client,
)
from app.jobs.rotation import rotate_all_cities, run_weekly_rotation
from app.schemas.admin import (
    ArchiveRequest,
    CustomFeaturedRequest,
    RestaurantSyncRequest,
    RotationRunRequest,
)
from app.schemas.common import ApiResponse
from app.schemas.restaurants import FeaturedRestaurantResponse, RestaurantResponse
from app.schemas.rotation import (
    QueueAddRequest,
    QueueItemResponse,
    QueueReorderRequest,
    QueueResponse,
    QueueSkipRequest,
    QueueUrgentRequest,
    RotationConfigResponse,
    RotationConfigUpdate,
)
from app.services.city_service import CityService
from app.services.featured_service import FeaturedRestaurantService, city_today, week_start
from app.services.restaurant_service import RestaurantService, serialize_restaurant
from app.services.rotation_service import RotationConfigService, RotationQueueService

logger = structlog.get_logger()

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[AdminAccess])


def _featured_response(featured: dict) -> FeaturedRestaurantResponse:
    return FeaturedRestaurantResponse.model_validate(
        {**featured, "restaurant": serialize_restaurant(featured["restaurant"])}
    )


@router.post(
    "/featured",
    response_model=ApiResponse[FeaturedRestaurantResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Override this week's pick",
)
async def set_featured(request: CustomFeaturedRequest, db: DatabaseSession, yelp_service: YelpServiceDep):
    city = await CityService(db).resolve(request.city_slug)
    featured_service = FeaturedRestaurantService(db, yelp_service)
    featured = await featured_service.set_custom_featured(
        request.restaurant_id,
        request.week_start_date or city_today(city),
        request.custom_description,
        city["id"],
    )
    logger.info("admin_featured_set", city=city["slug"], restaurant_id=str(request.restaurant_id))
    return ApiResponse(message="Featured restaurant set", data=_featured_response(featured))


@router.post(
    "/rotation/run",
    response_model=ApiResponse[dict[str, Any]],
    summary="Run the weekly rotation now",
)
async def run_rotation(
    request: RotationRunRequest,
    db: DatabaseSession,
    yelp_client: Annotated[YelpClient, Depends(get_yelp_client)],
):
    """
    Select the week's pick for one city, or for every active city.

    Re-running for a week keeps the existing pick unless ``forceNew`` is set.
    """
    if request.city_slug:
        city = await CityService(db).resolve(request.city_slug)
        featured = await run_weekly_rotation(
            db,
            city,
            yelp_client,
            today=request.week_start_date,
            force_new=request.force_new,
        )
        return ApiResponse(
            message="Rotation completed",
            data={"results": {city["slug"]: "ok"}, "featured": _featured_response(featured)},
        )

    results = await rotate_all_cities(yelp_client, force_new=request.force_new, today=request.week_start_date)
    failed = [slug for slug, outcome in results.items() if outcome != "ok"]
    if not failed:
        return ApiResponse(message="Rotation completed", data={"results": results})

    logger.error("admin_rotation_failed", cities=failed)
    body = ApiResponse(
        success=False,
        message=f"Rotation failed for: {', '.join(failed)}",
        data={"results": results},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body.model_dump(mode="json", by_alias=True),
    )


@router.post("/featured/archive", response_model=ApiResponse[dict[str, int]])
async def archive_featured(request: ArchiveRequest, db: DatabaseSession):
    """Deactivate picks older than the retention window."""
    archived = await FeaturedRestaurantService(db).archive_old_featured(request.months_to_keep)
    return ApiResponse(message=f"Archived {archived} featured restaurants", data={"archived": archived})


@router.get("/featured/history", response_model=ApiResponse[list[FeaturedRestaurantResponse]])
async def featured_history(
    db: DatabaseSession,
    city: str | None = Query(None, description="City slug; all cities when omitted"),
    limit: int = Query(12, ge=1, le=52),
):
    city_id = (await CityService(db).resolve(city))["id"] if city else None
    history = await FeaturedRestaurantService(db).get_featured_history(city_id, limit=limit)
    return ApiResponse(
        message="Featured history retrieved",
        data=[_featured_response(record) for record in history if record["restaurant"]],
    )


@router.get("/featured/stats", response_model=ApiResponse[dict[str, Any]])
async def featured_stats(db: DatabaseSession, city: str | None = Query(None, description="City slug")):
    city_record = await CityService(db).resolve(city)
    stats = await FeaturedRestaurantService(db).get_featured_stats(city_record["id"], city_today(city_record))
    return ApiResponse(message="Featured stats retrieved", data=stats)


@router.post("/restaurants/sync", response_model=ApiResponse[RestaurantResponse])
async def sync_restaurant(
    request: RestaurantSyncRequest,
    db: DatabaseSession,
    yelp_service: YelpServiceDep,
    cache_manager: CacheManagerDep,
):
    """Fetch a business from Yelp and store or refresh the local copy."""
    city = await CityService(db).resolve(request.city_slug)
    restaurant = await RestaurantService(db, cache=cache_manager).sync_from_yelp(
        yelp_service, request.yelp_id, city["id"]
    )
    return ApiResponse(
        message="Restaurant synced",
        data=RestaurantResponse.model_validate(serialize_restaurant(restaurant)),
    )


@router.get("/yelp/status", response_model=ApiResponse[dict[str, Any]])
async def yelp_status(yelp_service: YelpServiceDep):
    """Yelp configuration, outage state, rate-limit usage and queue depth."""
    return ApiResponse(message="Yelp status retrieved", data=yelp_service.status())


@router.delete("/cache", response_model=ApiResponse[dict[str, int]])
async def clear_cache(yelp_service: YelpServiceDep):
    """Drop every cached Yelp response."""
    cleared = yelp_service.clear_cache()
    logger.info("admin_cache_cleared", keys=cleared)
    return ApiResponse(message=f"Cleared {cleared} cache entries", data={"cleared": cleared})


async def _queue_response(db: AsyncSession, city: dict) -> QueueResponse:
    config = await RotationConfigService(db).get_config(city)
    next_day = config["next_rotation_at"].astimezone(ZoneInfo(config["timezone"])).date()
    queue_service = RotationQueueService(db)
    items = await queue_service.list_queue(city["id"], first_week=week_start(next_day))
    return QueueResponse(
        items=[QueueItemResponse.model_validate(item) for item in items],
        stats=await queue_service.queue_stats(city["id"], config["min_queue_size"]),
    )


@router.get("/rotation/config", response_model=ApiResponse[RotationConfigResponse])
async def get_rotation_config(db: DatabaseSession, city: str | None = Query(None, description="City slug")):
    city_record = await CityService(db).resolve(city)
    config = await RotationConfigService(db).get_config(city_record)
    return ApiResponse(message="Rotation config retrieved", data=RotationConfigResponse.model_validate(config))


@router.put("/rotation/config", response_model=ApiResponse[RotationConfigResponse])
async def update_rotation_config(request: RotationConfigUpdate, db: DatabaseSession):
    """Change the schedule or switch between manual and automatic rotation."""
    city = await CityService(db).resolve(request.city_slug)
    config = await RotationConfigService(db).update_config(
        city, request.model_dump(exclude={"city_slug"}, exclude_none=True)
    )
    return ApiResponse(message="Rotation config updated", data=RotationConfigResponse.model_validate(config))


@router.get("/rotation/preview", response_model=ApiResponse[list[dict[str, Any]]])
async def rotation_preview(
    db: DatabaseSession,
    city: str | None = Query(None, description="City slug"),
    weeks: int = Query(8, ge=1, le=26),
):
    """Upcoming rotation slots with the queued restaurant for each."""
    city_record = await CityService(db).resolve(city)
    preview = await RotationConfigService(db).preview(city_record, weeks)
    return ApiResponse(message="Rotation preview retrieved", data=preview)


@router.get("/rotation/status", response_model=ApiResponse[dict[str, Any]])
async def rotation_status(db: DatabaseSession, city: str | None = Query(None, description="City slug")):
    city_record = await CityService(db).resolve(city)
    return ApiResponse(message="Rotation status retrieved", data=await RotationConfigService(db).status(city_record))


@router.get("/queue", response_model=ApiResponse[QueueResponse])
async def get_queue(db: DatabaseSession, city: str | None = Query(None, description="City slug")):
    city_record = await CityService(db).resolve(city)
    return ApiResponse(message="Rotation queue retrieved", data=await _queue_response(db, city_record))


@router.post(
    "/queue",
    response_model=ApiResponse[QueueItemResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_to_queue(request: QueueAddRequest, db: DatabaseSession, admin: AdminUser):
    """Queue a restaurant at the end, or at ``position`` pushing later items back."""
    city = await CityService(db).resolve(request.city_slug)
    item = await RotationQueueService(db).add(
        city["id"],
        request.restaurant_id,
        position=request.position,
        notes=request.notes,
        scheduled_week=request.scheduled_week,
        added_by=admin["id"] if admin else None,
    )
    return ApiResponse(message="Restaurant added to queue", data=QueueItemResponse.model_validate(item))


@router.post(
    "/queue/urgent",
    response_model=ApiResponse[QueueItemResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_urgent(request: QueueUrgentRequest, db: DatabaseSession, admin: AdminUser):
    """Put a restaurant next in line."""
    city = await CityService(db).resolve(request.city_slug)
    item = await RotationQueueService(db).insert_urgent(
        city["id"],
        request.restaurant_id,
        notes=request.notes,
        added_by=admin["id"] if admin else None,
    )
    return ApiResponse(
        message="Restaurant moved to the front of the queue",
        data=QueueItemResponse.model_validate(item),
    )


@router.post("/queue/reorder", response_model=ApiResponse[QueueResponse])
async def reorder_queue(request: QueueReorderRequest, db: DatabaseSession):
    city = await CityService(db).resolve(request.city_slug)
    await RotationQueueService(db).reorder(city["id"], request.item_ids)
    return ApiResponse(message="Queue reordered", data=await _queue_response(db, city))


@router.post("/queue/{item_id}/skip", response_model=ApiResponse[QueueItemResponse | None])
async def skip_queue_item(item_id: UUID, request: QueueSkipRequest, db: DatabaseSession):
    item = await RotationQueueService(db).skip(item_id, request.reason, request.action)
    return ApiResponse(
        message="Queue item skipped",
        data=QueueItemResponse.model_validate(item) if item else None,
    )


@router.delete("/queue/{item_id}", response_model=ApiResponse[None])
async def remove_from_queue(item_id: UUID, db: DatabaseSession):
    await RotationQueueService(db).remove(item_id)
    return ApiResponse(message="Queue item removed")
