"""FastAPI dependencies."""

import secrets
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ForbiddenException, UnauthorizedException
from app.core.rate_limiter import RateLimiter, default_limits
from app.core.security import decode_access_token, decode_supabase_token
from app.core.sms_client import TwilioSMSClient
from app.core.store import CacheManager, KeyValueStore, get_store
from app.core.yelp_client import YelpClient
from app.database import get_db
from app.services.city_service import CityService
from app.services.user_service import UserService
from app.services.verification_service import VerificationService
from app.services.yelp_service import YelpService, build_yelp_service

# Missing credentials are reported through UnauthorizedException, not FastAPI's default 403
security = HTTPBearer(auto_error=False)

DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
BearerCredentials = Annotated[HTTPAuthorizationCredentials | None, Depends(security)]


def get_store_dependency() -> KeyValueStore:
    return get_store()


StoreDep = Annotated[KeyValueStore, Depends(get_store_dependency)]


def get_cache_manager(store: StoreDep) -> CacheManager:
    return CacheManager(store)


def get_rate_limiter(store: StoreDep) -> RateLimiter:
    return RateLimiter(store, default_limits())


def get_yelp_client() -> YelpClient:
    """Yelp client; overridden in tests."""
    return YelpClient()


def get_sms_client() -> TwilioSMSClient:
    """SMS client; overridden in tests."""
    return TwilioSMSClient()


CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]


def get_yelp_service(
    db: DatabaseSession,
    client: Annotated[YelpClient, Depends(get_yelp_client)],
) -> YelpService:
    return build_yelp_service(db, client)


def get_verification_service(
    store: StoreDep,
    limiter: RateLimiterDep,
    sms_client: Annotated[TwilioSMSClient, Depends(get_sms_client)],
) -> VerificationService:
    return VerificationService(store, limiter, sms_client)


YelpServiceDep = Annotated[YelpService, Depends(get_yelp_service)]
VerificationServiceDep = Annotated[VerificationService, Depends(get_verification_service)]


async def _user_from_token(token: str, db: AsyncSession) -> dict | None:
    """Resolve an API session token or a Supabase access token to a user."""
    user_service = UserService(db)

    payload = decode_access_token(token)
    if payload is not None:
        try:
            user_id = UUID(str(payload.get("sub")))
        except ValueError:
            return None
        return await user_service.get_user_by_id(user_id)

    claims = decode_supabase_token(token)
    if claims is not None:
        return await user_service.get_or_create_by_supabase(claims)

    return None


async def get_current_user(credentials: BearerCredentials, db: DatabaseSession) -> dict:
    """
    Authenticated user behind the bearer token.

    Raises:
        UnauthorizedException: Missing, invalid or expired token, or unknown user
        ForbiddenException: Account deactivated
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedException("Authentication required")

    user = await _user_from_token(credentials.credentials, db)
    if not user:
        raise UnauthorizedException("Invalid or expired token")

    if not user["is_active"]:
        raise ForbiddenException("User account is deactivated", error_code="ACCOUNT_DEACTIVATED")

    return user


CurrentUser = Annotated[dict, Depends(get_current_user)]


async def get_current_user_id(user: CurrentUser) -> UUID:
    return user["id"]


CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]


async def get_city(
    db: DatabaseSession,
    x_city_slug: Annotated[str | None, Header()] = None,
    city: Annotated[str | None, Query(description="City slug")] = None,
) -> dict:
    """City a request is scoped to: header, then query parameter, then the default city."""
    return await CityService(db).resolve(x_city_slug or city)


CityContext = Annotated[dict, Depends(get_city)]


async def require_admin(
    credentials: BearerCredentials,
    db: DatabaseSession,
    x_admin_secret: Annotated[str | None, Header()] = None,
) -> dict | None:
    """
    Allow the shared admin secret or a signed-in admin user.

    Returns:
        The admin user, or ``None`` when the shared secret was used
    """
    if (
        x_admin_secret
        and settings.admin_secret_configured
        and secrets.compare_digest(x_admin_secret, settings.admin_api_secret)
    ):
        return None

    if credentials is not None and credentials.credentials:
        user = await _user_from_token(credentials.credentials, db)
        if user and user["is_active"] and user["is_admin"]:
            return user

    raise ForbiddenException("Admin access required", error_code="ADMIN_REQUIRED")


AdminAccess = Depends(require_admin)
AdminUser = Annotated[dict | None, Depends(require_admin)]
