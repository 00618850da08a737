"""Shared table metadata and column helpers."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, MetaData, Uuid, func

# Metadata for all tables
metadata = MetaData()


def utcnow() -> datetime:
    return datetime.now(UTC)


def id_column() -> Column:
    """UUID primary key generated on the Python side."""
    return Column("id", Uuid, primary_key=True, default=uuid.uuid4)


def created_at_column(name: str = "created_at") -> Column:
    return Column(
        name,
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )


def updated_at_column() -> Column:
    return Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )
