"""Shared schemas: camelCase base model and the response envelope."""

import math
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base model exposing camelCase field names on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Pagination(CamelModel):
    """Pagination block carried in ``meta``."""

    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class ResponseMeta(CamelModel):
    """Optional metadata attached to a response."""

    pagination: Pagination | None = None
    source: str | None = None
    cached: bool | None = None


class ApiResponse(CamelModel, Generic[T]):
    """Standard response envelope used by every endpoint."""

    success: bool = True
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: T | None = None
    meta: ResponseMeta | None = None
    error: str | None = None


def error_body(
    message: str,
    error_code: str,
    **extra: Any,
) -> dict[str, Any]:
    """Build the JSON body of an error envelope."""
    body: dict[str, Any] = {
        "success": False,
        "message": message,
        "timestamp": datetime.now(UTC).isoformat(),
        "error": error_code,
    }
    body.update({key: value for key, value in extra.items() if value is not None})
    return body
