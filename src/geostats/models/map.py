"""Pydantic v2 validation model for map records."""

from pydantic import Field

from .base import RowModel


class MapModel(RowModel):
    """Validation model for a game board definition.

    ``(lat1, lng1)`` and ``(lat2, lng2)`` are the min and max corners of the
    bounding box; ``max_distance`` is the maximum guess error in meters.
    """

    id: str = Field(min_length=1)
    name: str
    lat1: float = Field(ge=-90, le=90)
    lng1: float
    lat2: float = Field(ge=-90, le=90)
    lng2: float
    max_distance: int = Field(ge=0)
