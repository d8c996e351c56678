"""Pydantic v2 validation model for round records."""

from pydantic import Field

from .base import RowModel


class RoundModel(RowModel):
    """Validation model for one location shown within a match."""

    id: str = Field(min_length=1)
    game_id: str = Field(min_length=1)
    location_id: str = Field(min_length=1)
    round_number: int = Field(ge=0)
    damage_multiplier: float = Field(default=1.0, ge=0)
