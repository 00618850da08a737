"""User service for business logic."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.users import users
from app.schemas.users import UserUpdate

logger = structlog.get_logger()


class UserService:
    """Service for user accounts."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_user_by_id(self, user_id: UUID) -> dict | None:
        result = await self.db.execute(select(users).where(users.c.id == user_id))
        user = result.mappings().first()
        return dict(user) if user else None

    async def get_user_by_phone(self, phone: str) -> dict | None:
        result = await self.db.execute(select(users).where(users.c.phone == phone))
        user = result.mappings().first()
        return dict(user) if user else None

    async def get_user_by_supabase_id(self, supabase_id: str) -> dict | None:
        result = await self.db.execute(select(users).where(users.c.supabase_id == supabase_id))
        user = result.mappings().first()
        return dict(user) if user else None

    async def _insert_user(self, values: dict[str, Any], lookup) -> tuple[dict, bool]:
        """Insert a user, falling back to the row a concurrent request created."""
        try:
            result = await self.db.execute(users.insert().values(**values).returning(users))
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await lookup()
            if existing is None:
                raise
            return existing, False

        user = dict(result.mappings().one())
        logger.info("user_created", user_id=str(user["id"]), provider=user["provider"])
        return user, True

    async def get_or_create_by_phone(self, phone: str, name: str | None = None) -> tuple[dict, bool]:
        """
        Find the user owning ``phone`` or create one.

        Returns:
            (user, is_new_user)
        """
        user = await self.get_user_by_phone(phone)
        if user:
            user = await self.update_last_login(user["id"]) or user
            if name and name != user["name"]:
                user = await self.update_user(user["id"], UserUpdate(name=name)) or user
            return user, False

        user, created = await self._insert_user(
            {
                "phone": phone,
                "name": name or f"User {phone[-4:]}",
                "provider": "phone",
                "last_login_at": datetime.now(UTC),
            },
            lambda: self.get_user_by_phone(phone),
        )
        return user, created

    async def get_or_create_by_supabase(self, claims: dict[str, Any]) -> dict:
        """Find or create the user behind a verified Supabase token."""
        supabase_id = claims["sub"]
        user = await self.get_user_by_supabase_id(supabase_id)
        if user:
            return await self.update_last_login(user["id"]) or user

        metadata = claims.get("user_metadata") or {}
        email = claims.get("email") or None
        user, _ = await self._insert_user(
            {
                "supabase_id": supabase_id,
                "email": email,
                "phone": claims.get("phone") or None,
                "name": metadata.get("full_name") or metadata.get("name"),
                "avatar_url": metadata.get("avatar_url"),
                "provider": "supabase",
                "email_verified": bool(email and claims.get("email_confirmed_at")),
                "last_login_at": datetime.now(UTC),
            },
            lambda: self.get_user_by_supabase_id(supabase_id),
        )
        return user

    async def update_user(self, user_id: UUID, user_data: UserUpdate) -> dict | None:
        """Update user profile."""
        update_data = user_data.model_dump(exclude_unset=True)
        if not update_data:
            return await self.get_user_by_id(user_id)

        update_data["updated_at"] = datetime.now(UTC)

        query = update(users).where(users.c.id == user_id).values(**update_data).returning(users)
        result = await self.db.execute(query)
        await self.db.commit()
        user = result.mappings().first()

        return dict(user) if user else None

    async def update_last_login(self, user_id: UUID) -> dict | None:
        """Update user's last login timestamp."""
        query = (
            update(users)
            .where(users.c.id == user_id)
            .values(last_login_at=datetime.now(UTC))
            .returning(users)
        )
        result = await self.db.execute(query)
        await self.db.commit()
        user = result.mappings().first()
        return dict(user) if user else None
