"""Yelp Fusion API client."""

from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.config import is_placeholder, settings

logger = structlog.get_logger()

# Yelp rejects larger pages
MAX_SEARCH_LIMIT = 50


class YelpAPIError(Exception):
    """Yelp request failed.

    ``status_code`` is None for transport failures (timeouts, DNS, refused
    connections).
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    @property
    def is_outage(self) -> bool:
        return self.status_code is None or self.status_code >= 500


class YelpClient:
    """Thin async wrapper over the Yelp Fusion REST endpoints."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.yelp_api_key
        self.base_url = (base_url or settings.yelp_base_url).rstrip("/")
        self.timeout = timeout or settings.yelp_timeout_seconds
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key) and not is_placeholder(self.api_key)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _send(self, path: str, params: dict[str, Any] | None) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"},
        ) as client:
            return await client.get(path, params=params)

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self.configured:
            raise YelpAPIError("Yelp API is not configured", status_code=503)

        try:
            response = await self._send(path, params)
        except httpx.TransportError as e:
            logger.warning("yelp_transport_error", path=path, error=str(e))
            raise YelpAPIError(f"Yelp request failed: {e}") from e

        if response.status_code >= 400:
            try:
                description = response.json().get("error", {}).get("description")
            except ValueError:
                description = None
            message = description or f"Yelp returned HTTP {response.status_code}"
            logger.warning("yelp_http_error", path=path, status_code=response.status_code)
            raise YelpAPIError(message, status_code=response.status_code)

        return response.json()

    async def search(self, params: dict[str, Any]) -> dict[str, Any]:
        """Search businesses; returns ``{businesses, total, region}``."""
        query = {key: value for key, value in params.items() if value is not None}
        query.setdefault("location", settings.yelp_default_location)
        query.setdefault("radius", settings.yelp_search_radius_meters)
        query.setdefault("term", "restaurants")
        query["limit"] = min(int(query.get("limit", 20)), MAX_SEARCH_LIMIT)

        data = await self._get("/businesses/search", query)
        return {
            "businesses": data.get("businesses", []),
            "total": data.get("total", 0),
            "region": data.get("region", {}),
        }

    async def get_business(self, business_id: str) -> dict[str, Any]:
        return await self._get(f"/businesses/{business_id}")

    async def get_reviews(self, business_id: str, limit: int = 20) -> dict[str, Any]:
        data = await self._get(
            f"/businesses/{business_id}/reviews",
            {"limit": limit, "sort_by": "yelp_sort"},
        )
        return {"reviews": data.get("reviews", []), "total": data.get("total", 0)}

    async def ping(self) -> bool:
        """Cheapest possible request; used by the outage recheck."""
        await self.search({"term": "restaurants", "limit": 1})
        return True
