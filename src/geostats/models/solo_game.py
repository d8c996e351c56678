"""Pydantic v2 validation model for single-player game records."""

from datetime import datetime

from pydantic import Field

from geostats.modes import GeoMode

from .base import RowModel


class SoloGameModel(RowModel):
    """Validation model for one finished single-player game."""

    id: str = Field(min_length=1)  # game token
    player_id: str = Field(min_length=1)
    geo_mode: GeoMode
    start_time: datetime
    map_id: str = Field(min_length=1)
    total_score: int = Field(default=0, ge=0)
