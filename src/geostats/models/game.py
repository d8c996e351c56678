"""Pydantic v2 validation model for match (duels game) records."""

from datetime import datetime

from pydantic import Field, model_validator
from typing_extensions import Self

from geostats.modes import GeoMode, TeamGameMode

from .base import RowModel


class GameModel(RowModel):
    """Validation model for one finished match between exactly two teams."""

    id: str = Field(min_length=1)
    team_id1: str = Field(min_length=1)
    team_id2: str = Field(min_length=1)
    health_team1: int
    health_team2: int
    team_game_mode: TeamGameMode
    geo_mode: GeoMode
    start_time: datetime
    map_id: str = Field(min_length=1)
    rating_before_team1: int | None = None
    rating_before_team2: int | None = None

    @model_validator(mode="after")
    def check_teams_different(self) -> Self:
        """Both sides of a match must be distinct teams."""
        if self.team_id1 == self.team_id2:
            raise ValueError(
                f"team_id1 and team_id2 are identical ({self.team_id1})"
            )
        return self
