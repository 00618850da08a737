"""User schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel


class UserUpdate(CamelModel):
    """Schema for updating the caller's profile."""

    name: str | None = Field(None, min_length=1, max_length=100)
    avatar_url: str | None = Field(None, max_length=2048)


class UserResponse(CamelModel):
    """User schema for API responses."""

    id: UUID
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    avatar_url: str | None = None
    provider: str
    email_verified: bool
    is_admin: bool = False
    created_at: datetime
    last_login_at: datetime | None = None


class UserSummary(CamelModel):
    """Public user profile embedded in feeds."""

    id: UUID
    name: str | None = None
    avatar_url: str | None = None
