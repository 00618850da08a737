"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from app.config import settings
from app.core.store import check_store_connection
from app.database import check_database_connection
from app.dependencies import YelpServiceDep
from app.schemas.common import ApiResponse

router = APIRouter()


@router.get(
    "/health",
    response_model=ApiResponse[dict[str, Any]],
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> ApiResponse[dict[str, Any]]:
    """
    Liveness check.

    Returns:
        Basic health status
    """
    return ApiResponse(
        message="Austin Food Club API is running",
        data={
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
        },
    )


@router.get(
    "/monitoring/health",
    response_model=ApiResponse[dict[str, Any]],
    summary="Dependency health check",
)
async def monitoring_health(yelp_service: YelpServiceDep):
    """
    Health of the database, the shared store and Yelp.

    Responds 503 with status ``degraded`` when the database or store is down;
    a Yelp outage alone degrades the status but the API keeps serving
    local data.
    """
    db_healthy = await check_database_connection()
    store_healthy = await check_store_connection()

    yelp_status: dict[str, Any] = {"configured": yelp_service.client.configured}
    if store_healthy:
        yelp_status = yelp_service.status()

    yelp_down = bool(yelp_status.get("health", {}).get("down"))
    healthy = db_healthy and store_healthy and not yelp_down

    body = ApiResponse[dict[str, Any]](
        success=db_healthy and store_healthy,
        message="All systems operational" if healthy else "Some dependencies are unavailable",
        data={
            "status": "healthy" if healthy else "degraded",
            "version": settings.app_version,
            "environment": settings.environment,
            "database": "healthy" if db_healthy else "unhealthy",
            "store": "healthy" if store_healthy else "unhealthy",
            "yelp": yelp_status,
        },
    )
    status_code = status.HTTP_200_OK if db_healthy and store_healthy else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))
