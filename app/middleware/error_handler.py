"""Exception handlers mapping errors to the response envelope."""

from http import HTTPStatus

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import AppException
from app.schemas.common import error_body

logger = structlog.get_logger()

UNIQUE_VIOLATION = "23505"

STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMIT_EXCEEDED",
    503: "SERVICE_UNAVAILABLE",
}


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == UNIQUE_VIOLATION:
        return True
    message = str(orig).lower()
    return "unique" in message or "duplicate key" in message


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom application exceptions.

    Args:
        request: Request object
        exc: Application exception

    Returns:
        JSON error envelope
    """
    extra = dict(exc.details)
    errors = getattr(exc, "errors", None)
    if errors:
        extra["errors"] = errors

    headers = None
    retry_after = getattr(exc, "retry_after", None)
    if retry_after is not None:
        headers = {"Retry-After": str(retry_after)}

    if exc.status_code >= 500:
        logger.error("app_error", path=request.url.path, error=exc.message, code=exc.error_code)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.error_code, **extra),
        headers=headers,
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Handle HTTP exceptions raised by the framework (404 routes, 405, auth).

    Args:
        request: Request object
        exc: HTTP exception

    Returns:
        JSON error envelope
    """
    code = STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
    if isinstance(exc.detail, str):
        message = exc.detail
    else:
        message = HTTPStatus(exc.status_code).phrase
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, code),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle validation errors.

    Args:
        request: Request object
        exc: Validation exception

    Returns:
        JSON error envelope with field-level errors
    """
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body("Validation failed", "VALIDATION_ERROR", errors=errors),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """
    Translate database constraint violations.

    Unique violations become 409; foreign-key, not-null and check
    violations become 422.
    """
    if _is_unique_violation(exc):
        logger.info("integrity_conflict", path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=error_body("Resource already exists", "CONFLICT"),
        )

    logger.info("integrity_violation", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body("Invalid reference or missing required field", "VALIDATION_ERROR"),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    The stack trace is logged; the client only sees a generic message.
    """
    logger.exception("unhandled_exception", method=request.method, path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error", "INTERNAL_ERROR"),
    )
