"""Friendship schemas."""

from datetime import datetime
from uuid import UUID

from app.schemas.common import CamelModel
from app.schemas.users import UserSummary


class FriendRequestCreate(CamelModel):
    friend_id: UUID


class FriendshipResponse(CamelModel):
    id: UUID
    user_id: UUID
    friend_id: UUID
    status: str
    created_at: datetime
    friend: UserSummary | None = None
