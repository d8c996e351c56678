"""Pydantic v2 validation model for player profile snapshots."""

from pydantic import Field

from .base import RowModel


class PlayerModel(RowModel):
    """Validation model for a player profile.

    Re-ingested on every appearance; stored values are overwritten.
    """

    id: str = Field(min_length=1)
    name: str
    country_code: str | None = None
    avatar_pin: str | None = None
    level: int | None = Field(default=None, ge=0)
    is_pro_user: bool = False
    is_creator: bool = False
    rating: int | None = None
    moving_rating: int | None = None
    no_move_rating: int | None = None
    nmpz_rating: int | None = None
