"""Pydantic v2 models for stored rows and upstream payloads.

Re-exports all model classes for convenient import::

    from geostats.models import GameModel, GuessModel, DuelsGamePayload, ...
"""

from .base import RowModel
from .game import GameModel
from .guess import GuessModel
from .location import LocationModel
from .map import MapModel
from .payload import (
    DuelsGamePayload,
    RankedSystemProgressPayload,
    RankedTeamPayload,
    SoloGamePayload,
    UserPayload,
)
from .player import PlayerModel
from .round import RoundModel
from .solo_game import SoloGameModel
from .solo_guess import SoloGuessModel
from .solo_round import SoloRoundModel
from .team import CompTeamModel, FunTeamModel

__all__ = [
    "RowModel",
    "GameModel",
    "RoundModel",
    "GuessModel",
    "LocationModel",
    "PlayerModel",
    "CompTeamModel",
    "FunTeamModel",
    "MapModel",
    "SoloGameModel",
    "SoloRoundModel",
    "SoloGuessModel",
    "DuelsGamePayload",
    "SoloGamePayload",
    "UserPayload",
    "RankedSystemProgressPayload",
    "RankedTeamPayload",
]
