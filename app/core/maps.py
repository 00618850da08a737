"""Google Maps helpers: Static Maps URLs and cached geocoding."""

from urllib.parse import urlencode

import httpx
import structlog

from app.config import settings
from app.core.store import CacheManager

logger = structlog.get_logger()

STATIC_MAP_URL = "https://maps.googleapis.com/maps/api/staticmap"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

# Brand marker colour
MARKER_COLOR = "0xE63946"


def build_static_map_url(
    latitude: float | None,
    longitude: float | None,
    zoom: int = 15,
    size: str = "600x300",
    scale: int = 2,
) -> str | None:
    """Static Maps image URL centred on a single marker.

    Returns None when no Maps key is configured or coordinates are missing.
    """
    if not settings.maps_configured or latitude is None or longitude is None:
        return None

    center = f"{latitude},{longitude}"
    params = {
        "center": center,
        "zoom": zoom,
        "size": size,
        "scale": scale,
        "maptype": "roadmap",
        "markers": f"color:{MARKER_COLOR}|{center}",
        "key": settings.google_maps_api_key,
    }
    return f"{STATIC_MAP_URL}?{urlencode(params)}"


def _geocode_cache_key(address: str) -> str:
    return "geocode:" + "_".join(address.lower().split())


async def geocode_address(
    address: str,
    cache: CacheManager | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict | None:
    """Resolve an address to ``{latitude, longitude, formatted_address}``.

    Results are cached; failures are logged and return None so callers can
    keep the record without coordinates.
    """
    if not address or not settings.maps_configured:
        return None

    cache_key = _geocode_cache_key(address)
    if cache:
        cached = cache.get_json(cache_key)
        if cached:
            return cached

    try:
        async with httpx.AsyncClient(timeout=5.0, transport=transport) as client:
            response = await client.get(
                GEOCODE_URL,
                params={"address": address, "key": settings.google_maps_api_key},
            )
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("geocode_failed", address=address, error=str(e))
        return None

    if data.get("status") != "OK" or not data.get("results"):
        logger.info("geocode_no_result", address=address, status=data.get("status"))
        return None

    result = data["results"][0]
    location = result["geometry"]["location"]
    coordinates = {
        "latitude": location["lat"],
        "longitude": location["lng"],
        "formatted_address": result.get("formatted_address"),
    }

    if cache:
        cache.set_json(cache_key, coordinates, ttl=settings.geocode_cache_ttl)

    return coordinates
