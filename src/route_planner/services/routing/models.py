"""Routing domain models."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional

from ...models.domain import Coordinate, Stop, TravelMode

# Cells the provider could not price. Never selected by the ordering engine.
UNREACHABLE = math.inf


@dataclass(slots=True)
class CostMatrix:
    """Square travel-duration table in milliseconds; ``values[i][j]`` is i -> j."""

    values: List[List[float]]
    mode: TravelMode

    @property
    def size(self) -> int:
        return len(self.values)

    def unreachable_pairs(self) -> int:
        return sum(
            1
            for i, row in enumerate(self.values)
            for j, value in enumerate(row)
            if i != j and value == UNREACHABLE
        )


@dataclass(frozen=True, slots=True)
class RouteComputation:
    order: tuple[int, ...]
    leg_durations: tuple[float, ...]

    @property
    def total_duration_ms(self) -> float:
        return sum(self.leg_durations)


@dataclass(frozen=True, slots=True)
class MarkerLabel:
    stop_index: int  # position in the display list
    label: str


@dataclass(frozen=True, slots=True)
class PlannerInputs:
    stops: tuple[Stop, ...] = ()
    mode: TravelMode = TravelMode.DRIVING
    start_index: int = 0
    # True once place lookups have run for this stop list; reset when the stops change.
    stops_resolved: bool = False


@dataclass(frozen=True, slots=True)
class RoutePlan:
    """Result published by the recompute controller.

    ``order`` indexes ``routable_indices``; ``routable_indices`` maps each
    routable stop back to its position in ``stops``.
    """

    generation: int
    mode: TravelMode
    start_index: int
    status: str
    stops: tuple[Stop, ...]
    routable_indices: tuple[int, ...]
    order: tuple[int, ...]
    leg_durations: tuple[float, ...]
    marker_labels: tuple[MarkerLabel, ...] = ()
    unreachable_pairs: int = 0
    detail: Optional[str] = None

    @property
    def total_duration_ms(self) -> float:
        return sum(self.leg_durations)

    @property
    def ordered_stop_indices(self) -> tuple[int, ...]:
        return tuple(self.routable_indices[i] for i in self.order)

    @property
    def ordered_stops(self) -> tuple[Stop, ...]:
        return tuple(self.stops[i] for i in self.ordered_stop_indices)


@dataclass(frozen=True, slots=True)
class PathRequest:
    """Ordered waypoints handed to the path-drawing service; the order is final."""

    coordinates: tuple[Coordinate, ...]
    mode: TravelMode

    @property
    def origin(self) -> Coordinate:
        return self.coordinates[0]

    @property
    def destination(self) -> Coordinate:
        return self.coordinates[-1]

    @property
    def waypoints(self) -> tuple[Coordinate, ...]:
        return self.coordinates[1:-1]


@dataclass(slots=True)
class PathGeometry:
    points: List[tuple[float, float]] = field(default_factory=list)
    source: str = "sequence"
