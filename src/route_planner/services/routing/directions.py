"""Path drawing through already-ordered stops."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from ...config import settings
from .http import ServiceClient
from .models import PathGeometry, PathRequest

logger = logging.getLogger(__name__)


class PathRenderer(Protocol):
    async def render(self, request: PathRequest) -> PathGeometry:
        ...


class GoogleDirectionsClient(ServiceClient):
    """Directions API client. Waypoint order is never re-optimized."""

    service_name = "Directions"

    def __init__(self, api_key: str | None = None, base_url: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key or settings.google_maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.base_url = base_url or settings.google_directions_url

    async def render(self, request: PathRequest) -> PathGeometry:
        if len(request.coordinates) < 2:
            raise ValueError("At least two coordinates are required for a path.")

        params: dict[str, Any] = {
            "origin": f"{request.origin.latitude},{request.origin.longitude}",
            "destination": f"{request.destination.latitude},{request.destination.longitude}",
            "mode": request.mode.value.lower(),
            "key": self.api_key,
        }
        if request.waypoints:
            params["waypoints"] = "optimize:false|" + "|".join(
                f"{c.latitude},{c.longitude}" for c in request.waypoints
            )

        async with self._session() as client:
            data = await self._get_json(client, self.base_url, params=params)

        status = data.get("status")
        if status != "OK" or not data.get("routes"):
            raise ValueError(f"Directions request failed: {status}")
        encoded = data["routes"][0].get("overview_polyline", {}).get("points")
        if not encoded:
            raise ValueError("Directions response has no overview polyline.")
        return PathGeometry(points=decode_polyline(encoded), source="google")


def build_path_renderer(provider: str | None = None, **kwargs: Any) -> PathRenderer:
    provider = provider or settings.path_provider
    if provider == "osrm":
        from .osrm_client import OSRMClient

        return OSRMClient(**kwargs)
    if provider == "google":
        return GoogleDirectionsClient(**kwargs)
    raise ValueError(f"Unknown path provider '{provider}'.")


async def render_path(renderer: PathRenderer | None, request: PathRequest | None) -> PathGeometry | None:
    """Draw ``request`` with ``renderer``; a failure clears the path instead of raising."""
    if renderer is None or request is None:
        return None
    try:
        return await renderer.render(request)
    except (ConnectionError, httpx.HTTPError, ValueError, KeyError) as exc:
        logger.warning(f"Path rendering failed, clearing path: {exc}")
        return None


def decode_polyline(polyline: str) -> list[tuple[float, float]]:
    """Decode an encoded polyline string to a list of (lat, lon) coordinates.

    Both Google Directions and OSRM (``geometries=polyline``) use this format
    with 5 decimal places of precision.
    """
    coordinates = []
    index = 0
    lat = 0
    lon = 0

    while index < len(polyline):
        shift = 0
        result = 0
        while True:
            b = ord(polyline[index]) - 63
            index += 1
            result |= (b & 0x1f) << shift
            shift += 5
            if b < 0x20:
                break
        lat += ~(result >> 1) if (result & 1) else (result >> 1)

        shift = 0
        result = 0
        while True:
            b = ord(polyline[index]) - 63
            index += 1
            result |= (b & 0x1f) << shift
            shift += 5
            if b < 0x20:
                break
        lon += ~(result >> 1) if (result & 1) else (result >> 1)

        coordinates.append((lat / 1e5, lon / 1e5))

    return coordinates
