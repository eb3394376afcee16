"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings
from ...models.domain import Coordinate, TravelMode

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/providers", status_code=status.HTTP_200_OK)
async def health_providers() -> dict:
    """Check the configured travel-time matrix provider with a two-stop request."""
    from ...services.routing.matrix_client import build_matrix_client
    from ...services.routing.osrm_client import check_health as osrm_health_check

    provider = settings.matrix_provider
    try:
        if provider == "osrm":
            return {"service": provider, "healthy": await osrm_health_check()}
        client = build_matrix_client(provider)
        matrix = await client.get_matrix(
            [Coordinate(52.517037, 13.388860), Coordinate(52.496891, 13.385983)],
            TravelMode.DRIVING,
        )
        return {"service": provider, "healthy": matrix.unreachable_pairs() == 0}
    except Exception as e:
        return {"service": provider, "healthy": False, "error": str(e)}
