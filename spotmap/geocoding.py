"""Best-effort reverse geocoding: coordinates in, neighbourhood label out."""

import asyncio
import logging

import httpx

from .config import EngineConfig, get_config

logger = logging.getLogger(__name__)

# Most specific first
ADDRESS_KEYS = ("suburb", "city", "town")


def area_from_address(payload: dict) -> str | None:
    address = payload.get("address") or {}
    for key in ADDRESS_KEYS:
        if address.get(key):
            return address[key]
    return None


async def reverse_geocode(
    lat: float,
    lng: float,
    config: EngineConfig | None = None,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Area label for a point, or the configured fallback label on any failure."""
    config = config or get_config()
    if client is None:
        async with httpx.AsyncClient(
            timeout=config.geocoder_timeout_s,
            headers={"User-Agent": config.http_user_agent},
        ) as owned:
            return await reverse_geocode(lat, lng, config, owned)

    params = {"lat": lat, "lon": lng, "format": "json"}
    try:
        response = await asyncio.wait_for(
            client.get(config.geocoder_url, params=params),
            timeout=config.geocoder_timeout_s,
        )
        response.raise_for_status()
        label = area_from_address(response.json())
    except asyncio.TimeoutError:
        logger.warning(f"Reverse geocode timed out for {lat},{lng}")
        return config.fallback_area_label
    except (httpx.HTTPError, ValueError, AttributeError) as e:
        logger.warning(f"Reverse geocode failed for {lat},{lng}: {e}")
        return config.fallback_area_label

    return label or config.fallback_area_label
