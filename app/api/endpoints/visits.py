"""Verified visit endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import CityContext, CurrentUser, DatabaseSession
from app.schemas.common import ApiResponse, Pagination, ResponseMeta
from app.schemas.visits import (
    VisitCreate,
    VisitCreatedResponse,
    VisitResponse,
    VisitReward,
    VisitStats,
)
from app.services.city_service import CityService
from app.services.featured_service import city_today
from app.services.visit_service import VisitService

router = APIRouter(prefix="/verified-visits", tags=["Verified Visits"])


@router.post("", response_model=ApiResponse[VisitCreatedResponse], status_code=status.HTTP_201_CREATED)
async def create_visit(
    visit_data: VisitCreate,
    current_user: CurrentUser,
    city: CityContext,
    db: DatabaseSession,
):
    """Record a verified visit; points and badges are computed here."""
    visit, reward = await VisitService(db).create_visit(current_user["id"], visit_data, today=city_today(city))
    return ApiResponse(
        message="Visit verified",
        data=VisitCreatedResponse(
            visit=VisitResponse.model_validate(visit),
            reward=VisitReward.model_validate(reward),
        ),
    )


@router.get("", response_model=ApiResponse[list[VisitResponse]])
async def list_my_visits(
    current_user: CurrentUser,
    db: DatabaseSession,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    visits, total = await VisitService(db).list_user_visits(current_user["id"], page, limit)
    return ApiResponse(
        message="Verified visits retrieved",
        data=[VisitResponse.model_validate(visit) for visit in visits],
        meta=ResponseMeta(pagination=Pagination.build(page, limit, total)),
    )


@router.get("/recent", response_model=ApiResponse[list[VisitResponse]])
async def recent_visits(
    db: DatabaseSession,
    limit: int = Query(20, ge=1, le=50),
    city: str | None = Query(None, description="Only visits in this city"),
):
    """Community feed of the newest visits."""
    city_id = None
    if city:
        city_record = await CityService(db).get_by_slug(city)
        city_id = city_record["id"] if city_record else None
    visits = await VisitService(db).recent_visits(limit=limit, city_id=city_id)
    return ApiResponse(
        message="Recent visits retrieved",
        data=[VisitResponse.model_validate(visit) for visit in visits],
    )


@router.get("/stats", response_model=ApiResponse[VisitStats])
async def visit_stats(current_user: CurrentUser, city: CityContext, db: DatabaseSession):
    """The caller's totals, points, streak and badges."""
    stats = await VisitService(db).get_stats(current_user["id"], today=city_today(city))
    return ApiResponse(message="Visit stats retrieved", data=VisitStats.model_validate(stats))


@router.get("/user/{user_id}", response_model=ApiResponse[list[VisitResponse]])
async def list_user_visits(
    user_id: UUID,
    db: DatabaseSession,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    visits, total = await VisitService(db).list_user_visits(user_id, page, limit)
    return ApiResponse(
        message="Verified visits retrieved",
        data=[VisitResponse.model_validate(visit) for visit in visits],
        meta=ResponseMeta(pagination=Pagination.build(page, limit, total)),
    )


@router.delete("/{visit_id}", response_model=ApiResponse[None])
async def delete_visit(visit_id: UUID, current_user: CurrentUser, db: DatabaseSession):
    """Delete one of the caller's visits."""
    await VisitService(db).delete_visit(current_user["id"], visit_id)
    return ApiResponse(message="Verified visit deleted")
