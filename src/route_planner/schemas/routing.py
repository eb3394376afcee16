"""Routing request/response schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import TravelMode


class CoordinateModel(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class StopModel(BaseModel):
    id: str = Field(..., min_length=1, description="Place reference (e.g. a Google place ID).")
    display_name: Optional[str] = None
    display_address: Optional[str] = None
    coordinate: Optional[CoordinateModel] = Field(
        default=None,
        description="Known coordinate. Stops without one are resolved from their place reference.",
    )


class RoutePlanRequest(BaseModel):
    stops: List[StopModel] = Field(default_factory=list)
    mode: TravelMode = TravelMode.DRIVING
    start_index: int = Field(
        default=0,
        ge=0,
        description="Starting stop, counted among stops that have (or resolve to) a coordinate.",
    )
    include_path: bool = Field(default=True, description="Also request a drawable path through the ordered stops.")


class SessionUpdateRequest(BaseModel):
    """Partial update of a planning session; omitted fields keep their value."""

    stops: Optional[List[StopModel]] = None
    mode: Optional[TravelMode] = None
    start_index: Optional[int] = Field(default=None, ge=0)


class PlannedStopModel(BaseModel):
    stop_index: int
    id: str
    display_name: Optional[str] = None
    display_address: Optional[str] = None
    coordinate: Optional[CoordinateModel] = None
    sequence: Optional[int] = None
    next_leg_ms: Optional[int] = None
    next_leg_min: Optional[int] = None


class MarkerLabelModel(BaseModel):
    stop_index: int
    label: str


class RoutePlanResponse(BaseModel):
    status: str
    generation: int
    mode: TravelMode
    start_index: int
    stops: List[PlannedStopModel]
    leg_durations_ms: List[int]
    total_duration_ms: int
    total_duration_min: Optional[int]
    marker_labels: List[MarkerLabelModel]
    unrouted_stop_indices: List[int]
    metadata: dict = Field(default_factory=dict)


class SessionUpdateResponse(BaseModel):
    session_id: str
    generation: int
    is_computing: bool


class SessionStateResponse(BaseModel):
    session_id: str
    generation: int
    is_computing: bool
    route: Optional[RoutePlanResponse] = None
