"""Domain models for itinerary stops and travel modes."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class TravelMode(str, Enum):
    """How the traveller moves between stops."""

    DRIVING = "DRIVING"
    WALKING = "WALKING"
    BICYCLING = "BICYCLING"

    @property
    def traffic_aware(self) -> bool:
        return self is TravelMode.DRIVING


@dataclass(frozen=True, slots=True)
class Coordinate:
    latitude: float
    longitude: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class Stop:
    """One itinerary entry under consideration for routing.

    Only stops carrying a coordinate take part in the cost matrix and the
    ordering; the rest stay in the display list untouched.
    """

    id: str
    display_name: Optional[str] = None
    display_address: Optional[str] = None
    coordinate: Optional[Coordinate] = None

    @property
    def is_resolved(self) -> bool:
        return self.coordinate is not None

    @property
    def label(self) -> str:
        return self.display_name or self.display_address or self.id

    def with_coordinate(self, coordinate: Coordinate) -> "Stop":
        return replace(self, coordinate=coordinate)
