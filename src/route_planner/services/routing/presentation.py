"""Maps a published route plan onto display artifacts."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional

from ...models.domain import Stop
from .models import MarkerLabel, PathGeometry, PathRequest, RoutePlan


def round_minutes(duration_ms: float) -> Optional[int]:
    """Whole minutes, half rounded up; None for durations that are not finite."""
    if not math.isfinite(duration_ms):
        return None
    return math.floor(duration_ms / 60000 + 0.5)


@dataclass(slots=True)
class DisplayStop:
    stop_index: int
    stop: Stop
    sequence: Optional[int] = None  # 1-based visiting position, None when not ordered
    next_leg_ms: Optional[float] = None

    @property
    def next_leg_min(self) -> Optional[int]:
        return None if self.next_leg_ms is None else round_minutes(self.next_leg_ms)


@dataclass(slots=True)
class RouteView:
    status: str
    generation: int
    items: List[DisplayStop]
    total_duration_ms: float
    marker_labels: List[MarkerLabel]
    path_request: Optional[PathRequest] = None
    path: Optional[PathGeometry] = None
    unrouted_stop_indices: List[int] = field(default_factory=list)

    @property
    def total_duration_min(self) -> Optional[int]:
        return round_minutes(self.total_duration_ms)

    def map_overlay(self) -> dict:
        """Polyline overlay for the map: drawn path if available, else straight segments."""
        if self.path is not None and self.path.points:
            coordinates = [[lat, lon] for lat, lon in self.path.points]
            source = self.path.source
        elif self.path_request is not None:
            coordinates = [[c.latitude, c.longitude] for c in self.path_request.coordinates]
            source = "sequence"
        else:
            return {}
        return {"coordinates": coordinates, "source": source}


def build_path_request(plan: RoutePlan) -> Optional[PathRequest]:
    coordinates = tuple(stop.coordinate for stop in plan.ordered_stops if stop.coordinate is not None)
    if len(coordinates) < 2:
        return None
    return PathRequest(coordinates=coordinates, mode=plan.mode)


def present_route(plan: RoutePlan) -> RouteView:
    """Ordered display list, per-leg and total durations, and the path request.

    Without an order (matrix unavailable) the stops keep their original
    display order and no path is requested.
    """
    ordered_indices = plan.ordered_stop_indices
    if ordered_indices:
        items = [
            DisplayStop(
                stop_index=stop_index,
                stop=plan.stops[stop_index],
                sequence=position + 1,
                next_leg_ms=plan.leg_durations[position] if position < len(plan.leg_durations) else None,
            )
            for position, stop_index in enumerate(ordered_indices)
        ]
    else:
        items = [DisplayStop(stop_index=index, stop=stop) for index, stop in enumerate(plan.stops)]

    visited = set(ordered_indices)
    return RouteView(
        status=plan.status,
        generation=plan.generation,
        items=items,
        total_duration_ms=plan.total_duration_ms,
        marker_labels=list(plan.marker_labels),
        path_request=build_path_request(plan),
        unrouted_stop_indices=[index for index in range(len(plan.stops)) if index not in visited],
    )
