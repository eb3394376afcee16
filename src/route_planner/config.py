"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ROUTEPLAN_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Trip Route Planner API"
    api_prefix: str = "/api"
    log_level: Literal["critical", "error", "warning", "info", "debug"] = "info"

    google_maps_api_key: Optional[str] = Field(
        default=None,
        description="API key used for Distance Matrix, Directions and Places requests.",
    )
    matrix_provider: Literal["google", "osrm"] = Field(
        default="google",
        description="Service used to build the pairwise travel-time matrix.",
    )
    path_provider: Literal["google", "osrm"] = Field(
        default="google",
        description="Service used to draw the path through the ordered stops.",
    )
    google_distance_matrix_url: str = "https://maps.googleapis.com/maps/api/distancematrix/json"
    google_directions_url: str = "https://maps.googleapis.com/maps/api/directions/json"
    google_places_url: str = Field(
        default="https://places.googleapis.com/v1/places",
        description="Places API (New) resource root used for field-limited lookups.",
    )
    google_place_details_url: str = Field(
        default="https://maps.googleapis.com/maps/api/place/details/json",
        description="Legacy Place Details endpoint used when the new lookup fails.",
    )
    # 10 x 10 blocks keep each request within the 100-element Distance Matrix limit.
    google_max_coordinates_per_request: int = Field(default=10, ge=1, le=25)

    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_driving_profile: str = "driving"
    osrm_walking_profile: str = "foot"
    osrm_bicycling_profile: str = "bike"
    osrm_max_coordinates_per_request: int = Field(default=80, ge=1)

    http_timeout_seconds: float = Field(default=30.0, gt=0.0)
    http_max_retries: int = Field(default=2, ge=0)
    http_backoff_seconds: float = Field(default=0.5, ge=0.0)
    max_parallel_requests: int = Field(default=8, ge=1)

    session_idle_timeout_seconds: float = Field(
        default=1800.0,
        gt=0.0,
        description="Planning sessions untouched for this long are discarded.",
    )
    max_sessions: int = Field(
        default=500,
        ge=1,
        description="Upper bound on open planning sessions; the least recently used is dropped beyond it.",
    )

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:8081",
            "http://127.0.0.1:8081",
            "http://localhost:19006",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
