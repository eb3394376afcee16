"""Shared async HTTP plumbing for the routing service clients."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping

import httpx

from ...config import settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class ServiceClient:
    """Base for clients that talk to one remote service over ``httpx``.

    A caller-supplied ``httpx.AsyncClient`` is reused and left open; otherwise
    a client is created for each operation and closed afterwards.
    """

    service_name = "service"

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
    ) -> None:
        self._client = client
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.http_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.http_backoff_seconds

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout, connect=10.0)) as client:
            yield client

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """GET ``url`` and decode JSON, retrying transient failures with backoff.

        Raises ``ConnectionError`` when the service cannot be reached,
        ``httpx.HTTPStatusError`` for non-retryable or exhausted HTTP errors and
        ``ValueError`` for bodies that are not JSON.
        """
        attempt = 0
        while True:
            try:
                response = await client.get(url, params=params, headers=headers)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as exc:
                attempt += 1
                if exc.response.status_code not in RETRYABLE_STATUS_CODES or attempt > self.max_retries:
                    raise
                await self._backoff(attempt, f"HTTP {exc.response.status_code}")
            except httpx.TimeoutException as exc:
                attempt += 1
                if attempt > self.max_retries:
                    logger.warning(f"{self.service_name} request timed out after {attempt} attempts: {exc}")
                    raise ConnectionError(f"{self.service_name} request timed out: {exc}") from exc
                await self._backoff(attempt, "timeout")
            except (httpx.ConnectError, httpx.NetworkError, OSError) as exc:
                attempt += 1
                if attempt > self.max_retries:
                    raise ConnectionError(f"Failed to connect to {self.service_name} at {url}: {exc}") from exc
                await self._backoff(attempt, f"network error {exc}")

    async def _backoff(self, attempt: int, reason: str) -> None:
        wait_time = self.backoff_seconds * (2 ** (attempt - 1))
        logger.debug(
            f"{self.service_name} {reason}, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})"
        )
        await asyncio.sleep(wait_time)
