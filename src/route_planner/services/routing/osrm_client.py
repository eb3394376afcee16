"""HTTP client for interacting with OSRM services."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx

from ...config import settings
from ...models.domain import Coordinate, TravelMode
from .directions import decode_polyline
from .matrix_client import ChunkedMatrixClient, seconds_to_ms
from .models import UNREACHABLE, PathGeometry, PathRequest

logger = logging.getLogger(__name__)


def _coordinate_path(coordinates: Sequence[Coordinate]) -> str:
    # OSRM expects "lon,lat;lon,lat;..."
    return ";".join(f"{c.longitude},{c.latitude}" for c in coordinates)


class OSRMClient(ChunkedMatrixClient):
    """OSRM ``table`` (matrix) and ``route`` (path) client."""

    service_name = "OSRM"

    def __init__(
        self,
        base_url: str | None = None,
        profiles: dict[TravelMode, str] | None = None,
        max_coordinates_per_request: int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            max_coordinates_per_request=max_coordinates_per_request or settings.osrm_max_coordinates_per_request,
            **kwargs,
        )
        self.base_url = base_url or settings.osrm_base_url
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.base_url = self.base_url.rstrip("/")
        self.profiles = profiles or {
            TravelMode.DRIVING: settings.osrm_driving_profile,
            TravelMode.WALKING: settings.osrm_walking_profile,
            TravelMode.BICYCLING: settings.osrm_bicycling_profile,
        }

    async def _fetch_block(
        self,
        client: httpx.AsyncClient,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate],
        mode: TravelMode,
    ) -> list[list[float]]:
        """Single ``table`` request; sources come first in the coordinate list."""
        coordinates = [*origins, *destinations]
        params = {
            "annotations": "duration",
            "sources": ";".join(str(i) for i in range(len(origins))),
            "destinations": ";".join(str(i) for i in range(len(origins), len(coordinates))),
        }
        url = f"{self.base_url}/table/v1/{self.profiles[mode]}/{_coordinate_path(coordinates)}"
        try:
            data = await self._get_json(client, url, params=params)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 414:
                raise ValueError(
                    f"OSRM request URL too large ({len(coordinates)} coordinates). "
                    f"Try reducing max_coordinates_per_request (current: {self.max_coordinates_per_request})"
                ) from exc
            raise
        if data.get("code") != "Ok" or "durations" not in data:
            raise ValueError(f"OSRM table request failed: {data.get('message', data.get('code'))}")
        return [
            [UNREACHABLE if value is None else seconds_to_ms(value) for value in row]
            for row in data["durations"]
        ]

    async def render(self, request: PathRequest) -> PathGeometry:
        """Street-following geometry through the waypoints, in the given order."""
        if len(request.coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")

        params = {
            "overview": "full",
            "geometries": "polyline",
            "steps": "false",
        }
        url = f"{self.base_url}/route/v1/{self.profiles[request.mode]}/{_coordinate_path(request.coordinates)}"
        async with self._session() as client:
            data = await self._get_json(client, url, params=params)

        if data.get("code") != "Ok" or not data.get("routes"):
            raise ValueError(f"OSRM route request failed: {data.get('message', 'Unknown OSRM route error')}")
        geometry = data["routes"][0].get("geometry")
        if not geometry:
            raise ValueError("OSRM route response has no geometry.")
        return PathGeometry(points=decode_polyline(geometry), source="osrm")


async def check_health(base_url: str | None = None, client: httpx.AsyncClient | None = None) -> bool:
    """Check OSRM service health by making a minimal table request.

    Public OSRM endpoints may not have a /health endpoint, so connectivity is
    tested with two coordinates instead.
    """
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    url = f"{base.rstrip('/')}/table/v1/{settings.osrm_driving_profile}/13.388860,52.517037;13.385983,52.496891"
    try:
        if client is not None:
            response = await client.get(url, params={"annotations": "duration"})
        else:
            async with httpx.AsyncClient(timeout=5.0) as owned:
                response = await owned.get(url, params={"annotations": "duration"})
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError):
        return False
    return isinstance(data.get("durations"), list)
