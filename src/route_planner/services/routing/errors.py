"""Routing error types."""

from __future__ import annotations


class PlaceNotFoundError(LookupError):
    """Neither place lookup strategy produced a coordinate."""

    def __init__(self, place_id: str) -> None:
        super().__init__(f"Place '{place_id}' could not be resolved to a coordinate.")
        self.place_id = place_id


class MatrixServiceUnavailableError(ConnectionError):
    """The travel-time matrix could not be fetched as a whole."""


class InvalidStartIndexError(ValueError):
    def __init__(self, start_index: int, size: int) -> None:
        super().__init__(f"Start index {start_index} is out of range for {size} stops.")
        self.start_index = start_index
        self.size = size
