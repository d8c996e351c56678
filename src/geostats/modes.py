"""Game mode classification from raw match metadata.

Two independent classifications are stored with every match:

* **TeamGameMode** -- derived from the team sizes and the rated flag.
* **GeoMode** -- derived from the three movement restriction flags.
"""

from enum import Enum


class TeamGameMode(str, Enum):
    DUELS = "Duels"
    DUELS_RANKED = "DuelsRanked"
    TEAM_DUELS = "TeamDuels"
    TEAM_DUELS_RANKED = "TeamDuelsRanked"
    TEAM_FUN = "TeamFun"

    @property
    def is_team_mode(self) -> bool:
        """Whether teams are keyed by a derived team id rather than a player id."""
        return self not in (TeamGameMode.DUELS, TeamGameMode.DUELS_RANKED)


class GeoMode(str, Enum):
    MOVING = "Moving"
    NO_PANNING = "NoPanning"
    NO_ZOOMING = "NoZooming"
    NO_PANNING_ZOOMING = "NoPanningZooming"
    NO_MOVE = "NoMove"
    NO_PANNING_MOVING = "NoPanningMoving"
    NO_MOVING_ZOOMING = "NoMovingZooming"
    NMPZ = "NMPZ"


# (forbid_moving, forbid_zooming, forbid_rotating) -> GeoMode
_GEO_MODES: dict[tuple[bool, bool, bool], GeoMode] = {
    (False, False, False): GeoMode.MOVING,
    (False, False, True): GeoMode.NO_PANNING,
    (False, True, False): GeoMode.NO_ZOOMING,
    (False, True, True): GeoMode.NO_PANNING_ZOOMING,
    (True, False, False): GeoMode.NO_MOVE,
    (True, False, True): GeoMode.NO_PANNING_MOVING,
    (True, True, False): GeoMode.NO_MOVING_ZOOMING,
    (True, True, True): GeoMode.NMPZ,
}


def classify_team_game_mode(
    team1_size: int, team2_size: int, is_rated: bool
) -> TeamGameMode:
    """Return the team game mode for the given team sizes.

    1v1 is a duel, 2v2 a team duel; every other combination is a fun match
    regardless of the rated flag.
    """
    if team1_size == 1 and team2_size == 1:
        return TeamGameMode.DUELS_RANKED if is_rated else TeamGameMode.DUELS
    if team1_size == 2 and team2_size == 2:
        return TeamGameMode.TEAM_DUELS_RANKED if is_rated else TeamGameMode.TEAM_DUELS
    return TeamGameMode.TEAM_FUN


def classify_geo_mode(
    forbid_moving: bool, forbid_zooming: bool, forbid_rotating: bool
) -> GeoMode:
    """Return the movement restriction mode for the three flags."""
    return _GEO_MODES[(bool(forbid_moving), bool(forbid_zooming), bool(forbid_rotating))]
