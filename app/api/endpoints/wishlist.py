"""Wishlist endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from app.dependencies import CurrentUser, DatabaseSession
from app.schemas.common import ApiResponse
from app.schemas.wishlist import WishlistCreate, WishlistItemResponse
from app.services.wishlist_service import WishlistService

router = APIRouter(prefix="/wishlist", tags=["Wishlist"])


@router.post("", response_model=ApiResponse[WishlistItemResponse], status_code=status.HTTP_201_CREATED)
async def add_to_wishlist(item: WishlistCreate, current_user: CurrentUser, db: DatabaseSession):
    entry = await WishlistService(db).add(current_user["id"], item.restaurant_id, item.notes)
    return ApiResponse(message="Added to wishlist", data=WishlistItemResponse.model_validate(entry))


@router.get("", response_model=ApiResponse[list[WishlistItemResponse]])
async def get_wishlist(current_user: CurrentUser, db: DatabaseSession):
    """The caller's wishlist, most recently added first."""
    items = await WishlistService(db).list_items(current_user["id"])
    return ApiResponse(
        message="Wishlist retrieved",
        data=[WishlistItemResponse.model_validate(item) for item in items],
    )


@router.delete("/{restaurant_id}", response_model=ApiResponse[None])
async def remove_from_wishlist(restaurant_id: UUID, current_user: CurrentUser, db: DatabaseSession):
    await WishlistService(db).remove(current_user["id"], restaurant_id)
    return ApiResponse(message="Removed from wishlist")
