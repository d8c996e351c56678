"""Pydantic v2 validation model for guess records."""

from pydantic import Field

from .base import RowModel


class GuessModel(RowModel):
    """Validation model for one player's answer on a round."""

    id: str = Field(min_length=1)
    game_id: str = Field(min_length=1)
    round_id: str = Field(min_length=1)
    team_id: str = Field(min_length=1)
    player_id: str | None = None
    lat: float = Field(ge=-90, le=90)
    lng: float
    score: int = Field(ge=0)
    time: int | None = None  # seconds since round start
    distance: float = Field(ge=0)  # meters
    country_code: str | None = None
    subdivision_code: str | None = None
    round_country_code: str | None = None
    is_teams_best: bool = False
