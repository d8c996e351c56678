"""Turns one raw duels match into the full set of rows to store.

The assembler fetches the match document, checks it is finished,
classifies its modes, enriches its players and teams, then walks the
completed rounds building locations, rounds and guesses.  Nothing is
written here; the resulting ``WriteSet`` is committed by the repository.
"""

import asyncio
import logging
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from geostats.dedup import deduplicate
from geostats.exceptions import MatchNotFinished, UpstreamFetchError
from geostats.geo import GeoResolver
from geostats.http_client import GeoGuessrClient
from geostats.models import (
    CompTeamModel,
    DuelsGamePayload,
    FunTeamModel,
    GameModel,
    GuessModel,
    LocationModel,
    MapModel,
    PlayerModel,
    RoundModel,
    SoloGameModel,
    SoloGuessModel,
    SoloRoundModel,
)
from geostats.models.payload import MapPayload, PanoramaPayload, TeamPayload
from geostats.modes import TeamGameMode, classify_geo_mode, classify_team_game_mode
from geostats.players import PlayerResolver
from geostats.scoring import calculate_score, max_map_distance
from geostats.storage import PayloadStorage
from geostats.teams import TeamResolver, team_id_for

logger = logging.getLogger(__name__)


@dataclass
class WriteSet:
    """Rows produced for one or more matches, grouped by table."""

    games: list[GameModel] = field(default_factory=list)
    rounds: list[RoundModel] = field(default_factory=list)
    guesses: list[GuessModel] = field(default_factory=list)
    locations: list[LocationModel] = field(default_factory=list)
    players: list[PlayerModel] = field(default_factory=list)
    comp_teams: list[CompTeamModel] = field(default_factory=list)
    fun_teams: list[FunTeamModel] = field(default_factory=list)
    maps: list[MapModel] = field(default_factory=list)
    solo_games: list[SoloGameModel] = field(default_factory=list)
    solo_rounds: list[SoloRoundModel] = field(default_factory=list)
    solo_guesses: list[SoloGuessModel] = field(default_factory=list)

    def extend(self, other: "WriteSet") -> None:
        """Append every row of ``other`` to this write-set."""
        for f in fields(self):
            getattr(self, f.name).extend(getattr(other, f.name))

    def deduplicated(self) -> "WriteSet":
        """Return a copy with duplicate primary keys removed per table."""
        return WriteSet(
            **{f.name: deduplicate(getattr(self, f.name)) for f in fields(self)}
        )

    @property
    def game_ids(self) -> list[str]:
        return [game.id for game in self.games] + [game.id for game in self.solo_games]

    def __len__(self) -> int:
        return sum(len(getattr(self, f.name)) for f in fields(self))


def round_id_for(game_id: str, round_number: int) -> str:
    return f"{game_id}:{round_number}"


def build_location(geo: GeoResolver, panorama: PanoramaPayload) -> LocationModel:
    """Location row of a panorama; the resolver wins over the provider's code."""
    codes = geo.resolve(panorama.lat, panorama.lng)
    country_code = codes.country_code
    if country_code is None and panorama.country_code:
        country_code = panorama.country_code.upper()

    return LocationModel(
        id=panorama.pano_id,
        lat=panorama.lat,
        lng=panorama.lng,
        heading=panorama.heading,
        pitch=panorama.pitch,
        zoom=panorama.zoom,
        country_code=country_code,
        subdivision_code=codes.subdivision_code,
    )


def build_map(map_payload: MapPayload) -> MapModel:
    bounds = map_payload.bounds
    if map_payload.max_error_distance is not None:
        max_distance = map_payload.max_error_distance
    else:
        max_distance = max_map_distance(
            bounds.min.lat, bounds.min.lng, bounds.max.lat, bounds.max.lng
        )

    return MapModel(
        id=map_payload.slug,
        name=map_payload.name,
        lat1=bounds.min.lat,
        lng1=bounds.min.lng,
        lat2=bounds.max.lat,
        lng2=bounds.max.lng,
        max_distance=round(max_distance),
    )


def _elapsed_seconds(
    start: Optional[datetime], created: datetime
) -> Optional[int]:
    if start is None:
        return None
    return int((created - start).total_seconds())


def _rating_before(team: TeamPayload, mode: TeamGameMode) -> Optional[int]:
    """Pre-match rating of a side, taken from its first player."""
    change = team.players[0].progress_change
    if change is None:
        return None
    if mode.is_team_mode:
        progress = change.ranked_team_duels_progress
    else:
        progress = change.ranked_system_progress
    return progress.rating_before if progress is not None else None


class GameAssembler:
    """Builds a ``WriteSet`` for a single match id.

    Usage::

        assembler = GameAssembler(client, geo, players, teams)
        write_set = await assembler.assemble("5f3c...")
    """

    # Table whose primary key marks a match of this kind as ingested
    game_table = "games"

    def __init__(
        self,
        client: GeoGuessrClient,
        geo: GeoResolver,
        players: PlayerResolver,
        teams: TeamResolver,
        storage: PayloadStorage | None = None,
    ) -> None:
        self._client = client
        self._geo = geo
        self._players = players
        self._teams = teams
        self._storage = storage

    async def assemble(self, game_id: str) -> WriteSet:
        """Fetch, validate and transform one match.

        Raises:
            MatchNotFinished: If the match has not concluded.
            UpstreamFetchError: If fetching, parsing or enrichment fails.
        """
        raw = await self._client.fetch_game(game_id)
        game = self._parse(game_id, raw)

        if not game.is_finished:
            raise MatchNotFinished(
                f"Match {game_id} is not finished (status {game.status!r})",
                game_id=game_id,
            )

        if self._storage is not None:
            self._storage.save(game_id, raw)

        team1, team2 = game.teams
        mode = classify_team_game_mode(
            len(team1.players), len(team2.players), game.options.is_rated
        )
        movement = game.options.movement_options
        geo_mode = classify_geo_mode(
            movement.forbid_moving, movement.forbid_zooming, movement.forbid_rotating
        )

        write_set = WriteSet()
        team_ids = await self._resolve_participants(game, mode, write_set)

        start_time = self._assemble_rounds(game, team_ids, write_set)
        map_row = build_map(game.options.map)
        write_set.maps.append(map_row)

        write_set.games.append(
            GameModel(
                id=game.game_id,
                team_id1=team_ids[0],
                team_id2=team_ids[1],
                health_team1=team1.health,
                health_team2=team2.health,
                team_game_mode=mode,
                geo_mode=geo_mode,
                start_time=start_time,
                map_id=map_row.id,
                rating_before_team1=_rating_before(team1, mode),
                rating_before_team2=_rating_before(team2, mode),
            )
        )

        logger.debug(
            "Assembled match %s (%s/%s): %d rounds, %d guesses, %d players",
            game_id, mode.value, geo_mode.value,
            len(write_set.rounds), len(write_set.guesses), len(write_set.players),
        )
        return write_set

    async def mark_committed(self, write_set: WriteSet) -> None:
        """Tell the resolvers which enrichment rows are now stored."""
        await self._players.mark_stored(write_set.players)
        await self._teams.mark_stored(write_set.comp_teams)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    @staticmethod
    def _parse(game_id: str, raw: dict[str, Any]) -> DuelsGamePayload:
        try:
            return DuelsGamePayload.model_validate(raw)
        except ValidationError as exc:
            raise UpstreamFetchError(
                f"Unexpected match payload for {game_id}: {exc}"
            ) from exc

    async def _resolve_participants(
        self, game: DuelsGamePayload, mode: TeamGameMode, write_set: WriteSet
    ) -> tuple[str, str]:
        """Enrich players and teams concurrently; return both team ids."""
        members = [[p.player_id for p in team.players] for team in game.teams]

        player_ids = list(dict.fromkeys(pid for side in members for pid in side))
        player_tasks = [self._players.resolve(pid) for pid in player_ids]
        team_tasks = []
        if mode == TeamGameMode.TEAM_DUELS_RANKED:
            team_tasks = [self._teams.resolve_comp_team(side) for side in members]

        results = await asyncio.gather(*player_tasks, *team_tasks)
        write_set.players.extend(r for r in results[: len(player_tasks)] if r)
        write_set.comp_teams.extend(r for r in results[len(player_tasks):] if r)

        if not mode.is_team_mode:
            return members[0][0], members[1][0]

        if mode != TeamGameMode.TEAM_DUELS_RANKED:
            write_set.fun_teams.extend(
                self._teams.resolve_fun_team(side) for side in members
            )
        return team_id_for(members[0]), team_id_for(members[1])

    def _assemble_rounds(
        self,
        game: DuelsGamePayload,
        team_ids: tuple[str, str],
        write_set: WriteSet,
    ) -> datetime:
        """Build locations, rounds and guesses; return the match start time."""
        bounds = game.options.map.bounds
        max_distance = max_map_distance(
            bounds.min.lat, bounds.min.lng, bounds.max.lat, bounds.max.lng
        )

        completed = sorted(
            (r for r in game.rounds if r.round_number <= game.current_round_number),
            key=lambda r: r.round_number,
        )
        if not completed:
            raise UpstreamFetchError(f"Match {game.game_id} has no completed rounds")

        start_time = completed[0].start_time
        if start_time is None:
            raise UpstreamFetchError(
                f"Match {game.game_id} has no start time on its first round"
            )

        for index, round_payload in enumerate(completed):
            location = build_location(self._geo, round_payload.panorama)
            write_set.locations.append(location)

            round_id = round_id_for(game.game_id, index)
            write_set.rounds.append(
                RoundModel(
                    id=round_id,
                    game_id=game.game_id,
                    location_id=location.id,
                    round_number=index,
                    damage_multiplier=round_payload.damage_multiplier,
                )
            )

            for team, team_id in zip(game.teams, team_ids):
                best_taken = False
                for player in team.players:
                    for guess in player.guesses:
                        if guess.round_number != round_payload.round_number:
                            continue

                        is_best = guess.is_teams_best_guess_on_round
                        if is_best and best_taken:
                            logger.warning(
                                "Match %s round %d: team %s has several best "
                                "guesses, keeping the first",
                                game.game_id, index, team_id,
                            )
                            is_best = False
                        best_taken = best_taken or is_best

                        distance = max(0.0, guess.distance)
                        score = guess.score
                        if score is None:
                            score = calculate_score(distance, max_distance)

                        codes = self._geo.resolve(guess.lat, guess.lng)
                        write_set.guesses.append(
                            GuessModel(
                                id=f"{round_id}:{player.player_id}",
                                game_id=game.game_id,
                                round_id=round_id,
                                team_id=team_id,
                                player_id=player.player_id,
                                lat=guess.lat,
                                lng=guess.lng,
                                score=score,
                                time=_elapsed_seconds(
                                    round_payload.start_time, guess.created
                                ),
                                distance=distance,
                                country_code=codes.country_code,
                                subdivision_code=codes.subdivision_code,
                                round_country_code=location.country_code,
                                is_teams_best=is_best,
                            )
                        )

        return start_time

