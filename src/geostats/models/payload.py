"""Pydantic v2 models for the game service's JSON payloads.

Only the fields ingestion needs are declared; everything else in the
upstream documents is ignored.  Field names are snake_case and map to the
service's camelCase keys via an alias generator.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class UpstreamModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Match document
# ---------------------------------------------------------------------------

class PinPayload(UpstreamModel):
    lat: float
    lng: float


class BoundsPayload(UpstreamModel):
    min: PinPayload
    max: PinPayload


class MovementOptionsPayload(UpstreamModel):
    forbid_moving: bool = False
    forbid_zooming: bool = False
    forbid_rotating: bool = False


class MapPayload(UpstreamModel):
    name: str
    slug: str
    bounds: BoundsPayload
    max_error_distance: float | None = None


class GameOptionsPayload(UpstreamModel):
    is_rated: bool = False
    movement_options: MovementOptionsPayload = Field(
        default_factory=MovementOptionsPayload
    )
    map: MapPayload


class PanoramaPayload(UpstreamModel):
    pano_id: str
    lat: float
    lng: float
    country_code: str | None = None
    heading: float = 0.0
    pitch: float = 0.0
    zoom: float = 0.0


class RoundPayload(UpstreamModel):
    round_number: int
    panorama: PanoramaPayload
    damage_multiplier: float = 1.0
    start_time: datetime | None = None


class GuessPayload(UpstreamModel):
    round_number: int  # 1-based
    lat: float
    lng: float
    distance: float
    created: datetime
    is_teams_best_guess_on_round: bool = False
    score: int | None = None


class RankingProgressPayload(UpstreamModel):
    rating_before: int | None = None
    rating_after: int | None = None


class ProgressChangePayload(UpstreamModel):
    ranked_system_progress: RankingProgressPayload | None = None
    ranked_team_duels_progress: RankingProgressPayload | None = None


class DuelsPlayerPayload(UpstreamModel):
    player_id: str
    guesses: list[GuessPayload] = Field(default_factory=list)
    rating: int | None = None
    country_code: str | None = None
    progress_change: ProgressChangePayload | None = None


class TeamPayload(UpstreamModel):
    id: str
    name: str = ""
    health: int
    players: list[DuelsPlayerPayload] = Field(min_length=1)


class DuelsGamePayload(UpstreamModel):
    """A duels match document as served by the game server."""

    game_id: str
    teams: list[TeamPayload]
    rounds: list[RoundPayload] = Field(default_factory=list)
    current_round_number: int = 0
    status: str
    options: GameOptionsPayload

    @field_validator("teams")
    @classmethod
    def check_two_teams(cls, v: list[TeamPayload]) -> list[TeamPayload]:
        """A match is always played between exactly two teams."""
        if len(v) != 2:
            raise ValueError(f"expected exactly 2 teams, got {len(v)}")
        return v

    @property
    def is_finished(self) -> bool:
        return self.status == "Finished"


# ---------------------------------------------------------------------------
# Enrichment documents
# ---------------------------------------------------------------------------

class UserPinPayload(UpstreamModel):
    url: str | None = None


class BrPayload(UpstreamModel):
    level: int | None = None


class UserPayload(UpstreamModel):
    """Public profile of a player (``/api/v3/users/{id}``)."""

    id: str
    nick: str
    country_code: str | None = None
    is_pro_user: bool = False
    is_creator: bool = False
    pin: UserPinPayload | None = None
    br: BrPayload | None = None


class GameModeRatingsPayload(UpstreamModel):
    standard_duels: int | None = None
    no_move_duels: int | None = None
    nmpz: int | None = None


class RankedSystemProgressPayload(UpstreamModel):
    """Ranked ratings of a player (``/api/v4/ranked-system/progress/{id}``)."""

    rating: int | None = None
    game_mode_ratings: GameModeRatingsPayload | None = None


class RankedTeamPayload(UpstreamModel):
    """A rated team (``/api/v4/ranked-team-duels/teams``)."""

    team_id: str
    team_name: str
    rating: int | None = None


# ---------------------------------------------------------------------------
# Single-player game document
# ---------------------------------------------------------------------------

class SoloRoundPayload(UpstreamModel):
    pano_id: str
    lat: float
    lng: float
    heading: float = 0.0
    pitch: float = 0.0
    zoom: float = 0.0
    # Lower-case country code of the location, set by the service
    streak_location_code: str | None = None
    start_time: datetime | None = None

    @property
    def panorama(self) -> PanoramaPayload:
        return PanoramaPayload(
            pano_id=self.pano_id,
            lat=self.lat,
            lng=self.lng,
            heading=self.heading,
            pitch=self.pitch,
            zoom=self.zoom,
            country_code=self.streak_location_code,
        )


class SoloGuessPayload(UpstreamModel):
    lat: float
    lng: float
    round_score_in_points: int | None = None
    distance_in_meters: float = 0.0
    time: int | None = None  # seconds spent on the round
    timed_out: bool = False
    timed_out_with_guess: bool = False
    skipped_round: bool = False

    @property
    def has_answer(self) -> bool:
        """False when the round ended without the player placing a pin."""
        if self.skipped_round:
            return False
        return not self.timed_out or self.timed_out_with_guess


class SoloPlayerPayload(UpstreamModel):
    id: str
    nick: str = ""
    guesses: list[SoloGuessPayload] = Field(default_factory=list)


class SoloGamePayload(UpstreamModel):
    """A single-player game document (``/api/v3/games/{token}``)."""

    token: str
    state: str
    map: str
    map_name: str = ""
    bounds: BoundsPayload
    forbid_moving: bool = False
    forbid_zooming: bool = False
    forbid_rotating: bool = False
    rounds: list[SoloRoundPayload] = Field(default_factory=list)
    player: SoloPlayerPayload

    @property
    def is_finished(self) -> bool:
        return self.state == "finished"

    @property
    def map_info(self) -> MapPayload:
        return MapPayload(name=self.map_name or self.map, slug=self.map, bounds=self.bounds)
