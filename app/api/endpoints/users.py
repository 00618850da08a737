"""User endpoints."""

from fastapi import APIRouter

from app.core.exceptions import NotFoundException
from app.dependencies import CurrentUser, DatabaseSession
from app.schemas.common import ApiResponse
from app.schemas.users import UserResponse, UserUpdate
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_current_user_profile(current_user: CurrentUser):
    """Get current user's profile."""
    return ApiResponse(message="User profile", data=UserResponse.model_validate(current_user))


@router.patch("/me", response_model=ApiResponse[UserResponse])
async def update_current_user_profile(user_data: UserUpdate, current_user: CurrentUser, db: DatabaseSession):
    """Update current user's profile."""
    user = await UserService(db).update_user(current_user["id"], user_data)

    if not user:
        raise NotFoundException("User not found", error_code="USER_NOT_FOUND")

    return ApiResponse(message="Profile updated", data=UserResponse.model_validate(user))
