"""Friends and social feed endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentUser, DatabaseSession
from app.schemas.common import ApiResponse
from app.schemas.social import FriendRequestCreate, FriendshipResponse
from app.schemas.visits import VisitResponse
from app.services.social_service import SocialService

router = APIRouter(tags=["Social"])


@router.post("/friends", response_model=ApiResponse[FriendshipResponse], status_code=status.HTTP_201_CREATED)
async def send_friend_request(request: FriendRequestCreate, current_user: CurrentUser, db: DatabaseSession):
    """Send a friend request (or accept the one the other user already sent)."""
    friendship = await SocialService(db).send_request(current_user["id"], request.friend_id)
    return ApiResponse(message="Friend request sent", data=FriendshipResponse.model_validate(friendship))


@router.post("/friends/{friendship_id}/accept", response_model=ApiResponse[FriendshipResponse])
async def accept_friend_request(friendship_id: UUID, current_user: CurrentUser, db: DatabaseSession):
    friendship = await SocialService(db).accept_request(current_user["id"], friendship_id)
    return ApiResponse(message="Friend request accepted", data=FriendshipResponse.model_validate(friendship))


@router.get("/friends", response_model=ApiResponse[list[FriendshipResponse]])
async def list_friends(current_user: CurrentUser, db: DatabaseSession):
    """Friends and pending requests, each with the other person's profile."""
    friendships = await SocialService(db).list_friends(current_user["id"])
    return ApiResponse(
        message="Friends retrieved",
        data=[FriendshipResponse.model_validate(friendship) for friendship in friendships],
    )


@router.get("/social-feed", response_model=ApiResponse[list[VisitResponse]])
async def social_feed(
    current_user: CurrentUser,
    db: DatabaseSession,
    limit: int = Query(20, ge=1, le=50),
):
    """Friends' verified visits, newest first."""
    visits = await SocialService(db).get_feed(current_user["id"], limit=limit)
    return ApiResponse(
        message="Social feed retrieved",
        data=[VisitResponse.model_validate(visit) for visit in visits],
    )
