"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    default_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception with message, status code and machine-readable code."""
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    default_code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found", error_code: str | None = None):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404, error_code=error_code)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    default_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required", error_code: str | None = None):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401, error_code=error_code)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    default_code = "FORBIDDEN"

    def __init__(self, message: str = "Access denied", error_code: str | None = None):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403, error_code=error_code)


class BadRequestException(AppException):
    """Bad request exception."""

    default_code = "BAD_REQUEST"

    def __init__(
        self,
        message: str = "Bad request",
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400, error_code=error_code, details=details)


class ConflictException(AppException):
    """Conflict exception."""

    default_code = "CONFLICT"

    def __init__(self, message: str = "Resource conflict", error_code: str | None = None):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, error_code=error_code)


class ValidationException(AppException):
    """Validation error exception."""

    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation failed", errors: list[dict] | None = None):
        """Initialize with 422 status code and optional field errors."""
        super().__init__(message, status_code=422)
        self.errors = errors or []


class RateLimitException(AppException):
    """Rate limit exceeded exception."""

    default_code = "RATE_LIMIT_EXCEEDED"

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int | None = None,
        reason: str | None = None,
    ):
        """Initialize with 429 status code and a retry hint."""
        details: dict[str, Any] = {}
        if retry_after is not None:
            details["retryAfter"] = retry_after
        if reason:
            details["reason"] = reason
        super().__init__(message, status_code=429, details=details)
        self.retry_after = retry_after
        self.reason = reason


class ServiceUnavailableException(AppException):
    """Upstream dependency unavailable."""

    default_code = "SERVICE_UNAVAILABLE"

    def __init__(self, message: str = "Service temporarily unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)
