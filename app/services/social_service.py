"""Friendships and the friends' activity feed."""

from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestException, ConflictException, NotFoundException
from app.models.friendships import friendships
from app.models.users import users
from app.services.user_service import UserService
from app.services.visit_service import VisitService

logger = structlog.get_logger()

PENDING = "pending"
ACCEPTED = "accepted"


def _between(user_id: UUID, other_id: UUID):
    return or_(
        and_(friendships.c.user_id == user_id, friendships.c.friend_id == other_id),
        and_(friendships.c.user_id == other_id, friendships.c.friend_id == user_id),
    )


class SocialService:
    """Service for friend requests and the social feed.

    A friendship row points from requester (``user_id``) to addressee
    (``friend_id``) and is symmetric once accepted.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def _get(self, friendship_id: UUID) -> dict | None:
        result = await self.db.execute(select(friendships).where(friendships.c.id == friendship_id))
        row = result.mappings().first()
        return dict(row) if row else None

    async def send_request(self, user_id: UUID, friend_id: UUID) -> dict:
        """
        Ask ``friend_id`` to become friends.

        A pending request in the other direction is accepted instead.
        """
        if user_id == friend_id:
            raise BadRequestException("You cannot add yourself as a friend", error_code="INVALID_FRIEND")
        if not await UserService(self.db).get_user_by_id(friend_id):
            raise NotFoundException("User not found", error_code="USER_NOT_FOUND")

        result = await self.db.execute(select(friendships).where(_between(user_id, friend_id)))
        existing = result.mappings().first()
        if existing:
            if existing["status"] == ACCEPTED:
                raise ConflictException("You are already friends", error_code="ALREADY_FRIENDS")
            if existing["user_id"] == user_id:
                raise ConflictException("Friend request already sent", error_code="FRIEND_REQUEST_EXISTS")
            return await self.accept_request(user_id, existing["id"])

        try:
            result = await self.db.execute(
                friendships.insert()
                .values(
                    user_id=user_id,
                    friend_id=friend_id,
                    status=PENDING,
                    created_at=datetime.now(UTC),
                )
                .returning(friendships)
            )
            friendship = dict(result.mappings().one())
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException("Friend request already sent", error_code="FRIEND_REQUEST_EXISTS") from None

        logger.info("friend_request_sent", user_id=str(user_id), friend_id=str(friend_id))
        return friendship

    async def accept_request(self, user_id: UUID, friendship_id: UUID) -> dict:
        """Accept a request addressed to ``user_id``."""
        friendship = await self._get(friendship_id)
        if not friendship or friendship["friend_id"] != user_id:
            raise NotFoundException("Friend request not found", error_code="FRIEND_REQUEST_NOT_FOUND")
        if friendship["status"] == ACCEPTED:
            return friendship

        result = await self.db.execute(
            update(friendships)
            .where(friendships.c.id == friendship_id)
            .values(status=ACCEPTED)
            .returning(friendships)
        )
        friendship = dict(result.mappings().one())
        await self.db.commit()
        logger.info("friend_request_accepted", user_id=str(user_id), friend_id=str(friendship["user_id"]))
        return friendship

    async def list_friends(self, user_id: UUID) -> list[dict]:
        """Friendships and pending requests involving the user, with the other person's profile."""
        result = await self.db.execute(
            select(friendships)
            .where(or_(friendships.c.user_id == user_id, friendships.c.friend_id == user_id))
            .order_by(friendships.c.created_at.desc())
        )
        rows = [dict(row) for row in result.mappings().all()]
        if not rows:
            return []

        other_ids = {row["friend_id"] if row["user_id"] == user_id else row["user_id"] for row in rows}
        profiles = await self.db.execute(
            select(users.c.id, users.c.name, users.c.avatar_url).where(users.c.id.in_(other_ids))
        )
        by_id = {profile["id"]: dict(profile) for profile in profiles.mappings().all()}

        for row in rows:
            row["friend"] = by_id.get(row["friend_id"] if row["user_id"] == user_id else row["user_id"])
        return rows

    async def friend_ids(self, user_id: UUID) -> list[UUID]:
        result = await self.db.execute(
            select(friendships.c.user_id, friendships.c.friend_id).where(
                friendships.c.status == ACCEPTED,
                or_(friendships.c.user_id == user_id, friendships.c.friend_id == user_id),
            )
        )
        return [friend_id if requester == user_id else requester for requester, friend_id in result.all()]

    async def get_feed(self, user_id: UUID, limit: int = 20) -> list[dict]:
        """Accepted friends' verified visits, newest first."""
        return await VisitService(self.db).list_visits_for_users(await self.friend_ids(user_id), limit=limit)
