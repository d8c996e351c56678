"""Pydantic v2 validation model for single-player guess records."""

from pydantic import Field

from .base import RowModel


class SoloGuessModel(RowModel):
    """The player's answer on one round of a single-player game.

    Unlike duels guesses, ``time`` is reported by the service directly.
    """

    id: str = Field(min_length=1)
    game_id: str = Field(min_length=1)
    round_id: str = Field(min_length=1)
    player_id: str = Field(min_length=1)
    lat: float = Field(ge=-90, le=90)
    lng: float
    score: int = Field(ge=0)
    time: int | None = Field(default=None, ge=0)
    distance: float = Field(ge=0)  # meters
    country_code: str | None = None
    subdivision_code: str | None = None
    round_country_code: str | None = None
