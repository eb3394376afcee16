#!/usr/bin/env python3
"""Verify the configured travel-time matrix and path providers are reachable."""

import asyncio
import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / "src"))

from route_planner.config import settings
from route_planner.models.domain import Coordinate, TravelMode
from route_planner.services.routing.directions import build_path_renderer
from route_planner.services.routing.matrix_client import build_matrix_client
from route_planner.services.routing.models import PathRequest

# Two points in central Berlin
TEST_COORDS = [Coordinate(52.517037, 13.388860), Coordinate(52.496891, 13.385983)]


async def run() -> int:
    print("=" * 60)
    print("Route Planner Provider Test")
    print("=" * 60)
    print()

    print("1. Checking configuration...")
    print(f"   [OK] Matrix provider: {settings.matrix_provider}")
    print(f"   [OK] Path provider: {settings.path_provider}")
    if "google" in (settings.matrix_provider, settings.path_provider) and not settings.google_maps_api_key:
        print("   [ERROR] Google Maps API key is not configured")
        print("   Please set ROUTEPLAN_GOOGLE_MAPS_API_KEY in your .env file")
        return 1
    if "osrm" in (settings.matrix_provider, settings.path_provider) and not settings.osrm_base_url:
        print("   [ERROR] OSRM base URL is not configured")
        print("   Please set ROUTEPLAN_OSRM_BASE_URL in your .env file")
        return 1
    print()

    print("2. Testing travel-time matrix request...")
    try:
        matrix = await build_matrix_client().get_matrix(TEST_COORDS, TravelMode.DRIVING)
        print(f"   [OK] Received {matrix.size}x{matrix.size} duration matrix")
        print(f"   [OK] Sample duration: {matrix.values[0][1] / 1000:.0f} seconds")
        if matrix.unreachable_pairs():
            print(f"   [WARN] {matrix.unreachable_pairs()} pair(s) reported unreachable")
    except Exception as e:
        print(f"   [ERROR] Error during matrix request: {e}")
        return 1
    print()

    print("3. Testing path request...")
    try:
        path = await build_path_renderer().render(PathRequest(coordinates=tuple(TEST_COORDS), mode=TravelMode.DRIVING))
        print(f"   [OK] Received path with {len(path.points)} points from {path.source}")
    except Exception as e:
        print(f"   [ERROR] Error during path request: {e}")
        return 1
    print()

    print("=" * 60)
    print("[SUCCESS] Routing providers are connected and working!")
    print("=" * 60)
    return 0


def main():
    return asyncio.run(run())


if __name__ == "__main__":
    sys.exit(main())
