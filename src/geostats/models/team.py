"""Pydantic v2 validation models for competitive and casual teams."""

import json
from typing import Any, ClassVar

from pydantic import Field, field_validator, model_validator
from typing_extensions import Self

from .base import RowModel


class CompTeamModel(RowModel):
    """Validation model for a rated two-player team."""

    primary_key: ClassVar[tuple[str, ...]] = ("team_id",)

    team_id: str = Field(min_length=1)
    player_id1: str = Field(min_length=1)
    player_id2: str = Field(min_length=1)
    name: str
    rating: int | None = None

    @model_validator(mode="after")
    def check_members_different(self) -> Self:
        """A competitive team has two distinct members."""
        if self.player_id1 == self.player_id2:
            raise ValueError(
                f"player_id1 and player_id2 are identical ({self.player_id1})"
            )
        return self


class FunTeamModel(RowModel):
    """Validation model for an unrated team of any size."""

    primary_key: ClassVar[tuple[str, ...]] = ("team_id",)

    team_id: str = Field(min_length=1)
    player_ids: list[str] = Field(min_length=1)

    @field_validator("player_ids")
    @classmethod
    def sort_player_ids(cls, v: list[str]) -> list[str]:
        """Members are an unordered set; store them sorted."""
        return sorted(v)

    def as_row(self) -> dict[str, Any]:
        row = super().as_row()
        row["player_ids"] = json.dumps(row["player_ids"])
        return row
