"""City schemas."""

from uuid import UUID

from app.schemas.common import CamelModel


class CityResponse(CamelModel):
    id: UUID
    slug: str
    name: str
    display_name: str
    state: str | None = None
    timezone: str
    latitude: float | None = None
    longitude: float | None = None
    is_active: bool
