"""Place reference -> coordinate resolution.

Two lookup strategies sit behind one interface: a field-limited Places API
(New) lookup and the legacy Place Details endpoint. Either can be swapped
independently. Results are not cached; stops that already carry a coordinate
are simply never looked up again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol, Sequence

import httpx

from ...config import settings
from ...models.domain import Coordinate, Stop
from .errors import PlaceNotFoundError
from .http import ServiceClient

logger = logging.getLogger(__name__)

_LOOKUP_ERRORS = (ConnectionError, httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError)


class PlaceLookup(Protocol):
    async def lookup(self, place_id: str) -> Optional[Coordinate]:
        """Return the place's coordinate, or None when this strategy cannot."""
        ...


class PlacesLookup(ServiceClient):
    """Places API (New) lookup restricted to the ``location`` field."""

    service_name = "Places"

    def __init__(self, api_key: str | None = None, base_url: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key or settings.google_maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.base_url = (base_url or settings.google_places_url).rstrip("/")

    async def lookup(self, place_id: str) -> Optional[Coordinate]:
        headers = {"X-Goog-Api-Key": self.api_key, "X-Goog-FieldMask": "location"}
        async with self._session() as client:
            data = await self._get_json(client, f"{self.base_url}/{place_id}", headers=headers)
        location = data.get("location") or {}
        latitude, longitude = location.get("latitude"), location.get("longitude")
        if latitude is None or longitude is None:
            return None
        return Coordinate(latitude=float(latitude), longitude=float(longitude))


class LegacyPlaceDetailsLookup(ServiceClient):
    """Place Details lookup asking only for ``geometry``."""

    service_name = "Place Details"

    def __init__(self, api_key: str | None = None, base_url: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key or settings.google_maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.base_url = base_url or settings.google_place_details_url

    async def lookup(self, place_id: str) -> Optional[Coordinate]:
        params = {"place_id": place_id, "fields": "geometry", "key": self.api_key}
        async with self._session() as client:
            data = await self._get_json(client, self.base_url, params=params)
        if data.get("status") != "OK":
            return None
        location = ((data.get("result") or {}).get("geometry") or {}).get("location") or {}
        if location.get("lat") is None or location.get("lng") is None:
            return None
        return Coordinate(latitude=float(location["lat"]), longitude=float(location["lng"]))


class CoordinateResolver:
    def __init__(self, primary: PlaceLookup, fallback: PlaceLookup | None = None) -> None:
        self.primary = primary
        self.fallback = fallback

    async def resolve(self, place_id: str) -> Coordinate:
        """Try the primary strategy, then the fallback; raise PlaceNotFoundError if both fail."""
        for strategy in (self.primary, self.fallback):
            if strategy is None:
                continue
            try:
                coordinate = await strategy.lookup(place_id)
            except _LOOKUP_ERRORS as exc:
                logger.debug(f"{type(strategy).__name__} failed for place '{place_id}': {exc}")
                continue
            if coordinate is not None:
                return coordinate
        raise PlaceNotFoundError(place_id)

    async def resolve_stops(self, stops: Sequence[Stop]) -> list[Stop]:
        """Fill in missing coordinates concurrently.

        Stops that fail to resolve are returned unchanged (still without a
        coordinate) so they stay in the display list but are not routed.
        """
        pending = [index for index, stop in enumerate(stops) if not stop.is_resolved]
        if not pending:
            return list(stops)

        results = await asyncio.gather(
            *(self.resolve(stops[index].id) for index in pending), return_exceptions=True
        )
        resolved = list(stops)
        for index, result in zip(pending, results):
            if isinstance(result, PlaceNotFoundError):
                logger.warning(f"Stop '{stops[index].label}' could not be resolved and will not be routed")
                continue
            if isinstance(result, BaseException):
                raise result
            resolved[index] = stops[index].with_coordinate(result)
        return resolved


def build_resolver(**kwargs: Any) -> CoordinateResolver:
    return CoordinateResolver(PlacesLookup(**kwargs), LegacyPlaceDetailsLookup(**kwargs))
