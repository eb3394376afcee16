"""Travel-time matrix clients.

Every client turns a list of coordinates plus a travel mode into a square
``CostMatrix`` of integer milliseconds. A cell the provider reports as failed
becomes ``UNREACHABLE`` for that ordered pair only; only a failure of the
request as a whole raises ``MatrixServiceUnavailableError``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Protocol, Sequence

import httpx

from ...config import settings
from ...models.domain import Coordinate, TravelMode
from .errors import MatrixServiceUnavailableError
from .http import ServiceClient
from .models import UNREACHABLE, CostMatrix

logger = logging.getLogger(__name__)

# More than this share of failed chunk requests means the provider is down.
CRITICAL_FAILURE_RATE = 0.5

_BLOCK_ERRORS = (ConnectionError, httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError)


class TravelCostMatrixClient(Protocol):
    async def get_matrix(self, coordinates: Sequence[Coordinate], mode: TravelMode) -> CostMatrix:
        ...


def seconds_to_ms(seconds: float) -> int:
    return int(round(seconds * 1000))


class ChunkedMatrixClient(ServiceClient, ABC):
    """Builds the full matrix from one request, or from parallel block requests
    when the stop set exceeds ``max_coordinates_per_request``."""

    def __init__(
        self,
        *,
        max_coordinates_per_request: int,
        max_parallel_requests: int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.max_coordinates_per_request = max_coordinates_per_request
        self.max_parallel_requests = max_parallel_requests or settings.max_parallel_requests

    @abstractmethod
    async def _fetch_block(
        self,
        client: httpx.AsyncClient,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate],
        mode: TravelMode,
    ) -> list[list[float]]:
        """One origins x destinations block of durations in ms."""

    async def get_matrix(self, coordinates: Sequence[Coordinate], mode: TravelMode) -> CostMatrix:
        n = len(coordinates)
        if n < 2:
            return CostMatrix(values=[[0] * n for _ in range(n)], mode=mode)

        async with self._session() as client:
            if n <= self.max_coordinates_per_request:
                try:
                    values = await self._fetch_block(client, coordinates, coordinates, mode)
                    _check_block_shape(values, n, n)
                except MatrixServiceUnavailableError:
                    raise
                except _BLOCK_ERRORS as exc:
                    raise MatrixServiceUnavailableError(f"{self.service_name} matrix request failed: {exc}") from exc
            else:
                values = await self._get_chunked(client, coordinates, mode)

        for i in range(n):
            values[i][i] = 0
        return CostMatrix(values=values, mode=mode)

    async def _get_chunked(
        self, client: httpx.AsyncClient, coordinates: Sequence[Coordinate], mode: TravelMode
    ) -> list[list[float]]:
        start_time = time.monotonic()
        n = len(coordinates)
        chunk_size = self.max_coordinates_per_request
        chunk_ranges = [(i, min(i + chunk_size, n)) for i in range(0, n, chunk_size)]
        total_requests = len(chunk_ranges) ** 2
        logger.info(
            f"Chunking {self.service_name} matrix request: {n} coordinates in {total_requests} blocks "
            f"(max per request: {chunk_size}, parallel: {self.max_parallel_requests})"
        )

        values: list[list[float]] = [[UNREACHABLE] * n for _ in range(n)]
        semaphore = asyncio.Semaphore(self.max_parallel_requests)

        async def fetch(src: tuple[int, int], dst: tuple[int, int]) -> bool:
            src_start, src_end = src
            dst_start, dst_end = dst
            async with semaphore:
                try:
                    block = await self._fetch_block(
                        client,
                        coordinates[src_start:src_end],
                        coordinates[dst_start:dst_end],
                        mode,
                    )
                    _check_block_shape(block, src_end - src_start, dst_end - dst_start)
                except _BLOCK_ERRORS as exc:
                    logger.warning(
                        f"Failed to get {self.service_name} data for block "
                        f"[{src_start}:{src_end}] -> [{dst_start}:{dst_end}]: {exc}"
                    )
                    return False
            for local_src, row in enumerate(block):
                values[src_start + local_src][dst_start:dst_end] = row
            return True

        results = await asyncio.gather(*(fetch(src, dst) for src in chunk_ranges for dst in chunk_ranges))
        failed = results.count(False)
        elapsed = time.monotonic() - start_time

        if failed / total_requests > CRITICAL_FAILURE_RATE:
            raise MatrixServiceUnavailableError(
                f"Critical failure: {failed}/{total_requests} {self.service_name} block requests failed."
            )
        if failed:
            logger.warning(
                f"Partial failure: {failed}/{total_requests} block requests failed; "
                f"affected pairs are marked unreachable. Elapsed time: {elapsed:.2f}s"
            )
        else:
            logger.info(f"Completed {self.service_name} matrix: {total_requests} block requests in {elapsed:.2f}s")
        return values


def _check_block_shape(block: list[list[float]], rows: int, cols: int) -> None:
    if len(block) != rows or any(len(row) != cols for row in block):
        raise ValueError(f"Matrix response has the wrong shape (expected {rows}x{cols}).")


class GoogleDistanceMatrixClient(ChunkedMatrixClient):
    """Distance Matrix API client. Driving requests are traffic-aware."""

    service_name = "Distance Matrix"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        max_coordinates_per_request: int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            max_coordinates_per_request=max_coordinates_per_request or settings.google_max_coordinates_per_request,
            **kwargs,
        )
        self.api_key = api_key or settings.google_maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.base_url = base_url or settings.google_distance_matrix_url

    def _params(
        self, origins: Sequence[Coordinate], destinations: Sequence[Coordinate], mode: TravelMode
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "origins": _join_coordinates(origins),
            "destinations": _join_coordinates(destinations),
            "mode": mode.value.lower(),
            "units": "metric",
            "key": self.api_key,
        }
        if mode.traffic_aware:
            params["departure_time"] = "now"
            params["traffic_model"] = "best_guess"
        return params

    async def _fetch_block(
        self,
        client: httpx.AsyncClient,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate],
        mode: TravelMode,
    ) -> list[list[float]]:
        data = await self._get_json(client, self.base_url, params=self._params(origins, destinations, mode))
        status = data.get("status")
        if status != "OK":
            message = data.get("error_message", "no error message")
            raise MatrixServiceUnavailableError(f"Distance Matrix request failed with status {status}: {message}")
        return [[_element_duration_ms(element) for element in row["elements"]] for row in data["rows"]]


def _join_coordinates(coordinates: Sequence[Coordinate]) -> str:
    return "|".join(f"{c.latitude},{c.longitude}" for c in coordinates)


def _element_duration_ms(element: dict) -> float:
    if element.get("status") != "OK":
        return UNREACHABLE
    for key in ("duration_in_traffic", "duration"):
        value = (element.get(key) or {}).get("value")
        if isinstance(value, (int, float)):
            return seconds_to_ms(value)
    return UNREACHABLE


def build_matrix_client(provider: str | None = None, **kwargs: Any) -> TravelCostMatrixClient:
    provider = provider or settings.matrix_provider
    if provider == "osrm":
        from .osrm_client import OSRMClient

        return OSRMClient(**kwargs)
    if provider == "google":
        return GoogleDistanceMatrixClient(**kwargs)
    raise ValueError(f"Unknown matrix provider '{provider}'.")
