"""Pydantic v2 validation model for single-player round records."""

from pydantic import Field

from .base import RowModel


class SoloRoundModel(RowModel):
    id: str = Field(min_length=1)
    game_id: str = Field(min_length=1)
    location_id: str = Field(min_length=1)
    round_number: int = Field(ge=0)
