"""Pydantic v2 validation model for location records."""

from pydantic import Field

from .base import RowModel


class LocationModel(RowModel):
    """Validation model for a panorama shown to players.

    Shared across matches and never updated once stored.
    """

    id: str = Field(min_length=1)
    lat: float = Field(ge=-90, le=90)
    lng: float
    heading: float = 0.0
    pitch: float = 0.0
    zoom: float = 0.0
    country_code: str | None = None
    subdivision_code: str | None = None
