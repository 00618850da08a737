"""Phone one-time-code verification."""

import json
import secrets
import time
from collections.abc import Callable
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import BadRequestException, RateLimitException, ServiceUnavailableException
from app.core.rate_limiter import RateLimiter
from app.core.security import create_access_token
from app.core.sms_client import SMSDeliveryError, TwilioSMSClient
from app.core.store import KeyValueStore
from app.services.user_service import UserService

logger = structlog.get_logger()


class VerificationService:
    """Issue and check six-digit SMS codes kept in the shared store.

    Each phone has at most one outstanding code. The stored record outlives
    the code itself so an expired code can be told apart from one that was
    never sent.
    """

    def __init__(
        self,
        store: KeyValueStore,
        limiter: RateLimiter,
        sms_client: TwilioSMSClient,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.limiter = limiter
        self.sms = sms_client
        self.clock = clock
        self.ttl = settings.verification_code_ttl_seconds
        self.max_attempts = settings.verification_max_attempts

    @staticmethod
    def _key(phone: str) -> str:
        return f"verification:{phone}"

    def _load(self, phone: str) -> dict[str, Any] | None:
        raw = self.store.get(self._key(phone))
        return json.loads(raw) if raw else None

    def _save(self, phone: str, record: dict[str, Any]) -> None:
        self.store.set(self._key(phone), json.dumps(record), ttl=self.ttl * 2)

    @staticmethod
    def generate_code() -> str:
        return f"{secrets.randbelow(900000) + 100000}"

    async def send_code(self, phone: str) -> dict[str, Any]:
        """Generate, store and deliver a code for ``phone``."""
        decision = self.limiter.acquire(f"verification:{phone}")
        if not decision.allowed:
            raise RateLimitException(
                "Please wait before requesting another code",
                retry_after=decision.retry_after,
                reason=decision.reason,
            )

        code = self.generate_code()
        self._save(phone, {"code": code, "expires_at": self.clock() + self.ttl, "attempts": 0})

        result: dict[str, Any] = {"phone": phone, "expires_in": self.ttl}
        message = f"Your Austin Food Club verification code is: {code}. This code expires in 10 minutes."

        if self.sms.configured:
            try:
                await self.sms.send_sms(phone, message)
            except SMSDeliveryError as e:
                self.store.delete(self._key(phone))
                logger.error("verification_sms_failed", phone_suffix=phone[-4:], error=str(e))
                raise ServiceUnavailableException("Could not send verification code") from e
        elif settings.is_production:
            self.store.delete(self._key(phone))
            raise ServiceUnavailableException("SMS delivery is not configured")
        else:
            logger.info("verification_code_mocked", phone_suffix=phone[-4:], code=code)
            result["mock_code"] = code

        logger.info("verification_code_sent", phone_suffix=phone[-4:])
        return result

    def check_code(self, phone: str, code: str) -> None:
        """Validate ``code`` and consume it; raises a 400 with a specific error code."""
        record = self._load(phone)
        if record is None:
            raise BadRequestException(
                "No verification code found for this phone number",
                error_code="CODE_NOT_FOUND",
            )

        if self.clock() > record["expires_at"]:
            self.store.delete(self._key(phone))
            raise BadRequestException("Verification code has expired", error_code="CODE_EXPIRED")

        if record["attempts"] >= self.max_attempts:
            self.store.delete(self._key(phone))
            raise BadRequestException("Too many verification attempts", error_code="TOO_MANY_ATTEMPTS")

        if not secrets.compare_digest(record["code"], code):
            record["attempts"] += 1
            self._save(phone, record)
            raise BadRequestException(
                "Invalid verification code",
                error_code="INVALID_CODE",
                details={"attemptsRemaining": max(0, self.max_attempts - record["attempts"])},
            )

        self.store.delete(self._key(phone))

    async def verify_code(
        self,
        db: AsyncSession,
        phone: str,
        code: str,
        name: str | None = None,
    ) -> tuple[dict, str, bool]:
        """
        Check the code then log the user in.

        Returns:
            (user, access_token, is_new_user)
        """
        self.check_code(phone, code)

        user_service = UserService(db)
        user, is_new = await user_service.get_or_create_by_phone(phone, name)
        token = create_access_token({"sub": str(user["id"])})

        logger.info("phone_verified", user_id=str(user["id"]), is_new_user=is_new)
        return user, token, is_new
