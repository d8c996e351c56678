"""Turns one single-player game into the rows to store.

Single-player games have no teams, ratings or health: one player answers
every round.  They share locations, players and maps with duels and keep
their own game, round and guess tables.
"""

import logging

from pydantic import ValidationError

from geostats.assembler import WriteSet, build_location, build_map, round_id_for
from geostats.exceptions import MatchNotFinished, UpstreamFetchError
from geostats.geo import GeoResolver
from geostats.http_client import GeoGuessrClient
from geostats.models import SoloGameModel, SoloGamePayload, SoloGuessModel, SoloRoundModel
from geostats.modes import classify_geo_mode
from geostats.players import PlayerResolver
from geostats.scoring import calculate_score, max_map_distance
from geostats.storage import PayloadStorage

logger = logging.getLogger(__name__)


class SoloGameAssembler:
    """Builds a ``WriteSet`` for a single-player game token.

    Usage::

        assembler = SoloGameAssembler(client, geo, players)
        write_set = await assembler.assemble("Xk3pQ...")
    """

    game_table = "solo_games"

    def __init__(
        self,
        client: GeoGuessrClient,
        geo: GeoResolver,
        players: PlayerResolver,
        storage: PayloadStorage | None = None,
    ) -> None:
        self._client = client
        self._geo = geo
        self._players = players
        self._storage = storage

    async def assemble(self, token: str) -> WriteSet:
        """Fetch, validate and transform one single-player game.

        Rounds without an answer (skipped, or timed out before a pin was
        placed) are stored without a guess.

        Raises:
            MatchNotFinished: If the game is still being played.
            UpstreamFetchError: If fetching, parsing or enrichment fails.
        """
        raw = await self._client.fetch_solo_game(token)
        try:
            game = SoloGamePayload.model_validate(raw)
        except ValidationError as exc:
            raise UpstreamFetchError(
                f"Unexpected solo game payload for {token}: {exc}"
            ) from exc

        if not game.is_finished:
            raise MatchNotFinished(
                f"Game {token} is not finished (state {game.state!r})",
                game_id=token,
            )
        if not game.rounds or game.rounds[0].start_time is None:
            raise UpstreamFetchError(f"Game {token} has no start time on its first round")

        if self._storage is not None:
            self._storage.save(token, raw)

        write_set = WriteSet()
        player_id = game.player.id
        player = await self._players.resolve(player_id)
        if player is not None:
            write_set.players.append(player)

        map_row = build_map(game.map_info)
        write_set.maps.append(map_row)
        bounds = game.bounds
        max_distance = max_map_distance(
            bounds.min.lat, bounds.min.lng, bounds.max.lat, bounds.max.lng
        )

        total_score = 0
        for index, (round_payload, guess) in enumerate(
            zip(game.rounds, game.player.guesses)
        ):
            location = build_location(self._geo, round_payload.panorama)
            write_set.locations.append(location)

            round_id = round_id_for(token, index)
            write_set.solo_rounds.append(
                SoloRoundModel(
                    id=round_id,
                    game_id=token,
                    location_id=location.id,
                    round_number=index,
                )
            )
            if not guess.has_answer:
                continue

            distance = max(0.0, guess.distance_in_meters)
            score = guess.round_score_in_points
            if score is None:
                score = calculate_score(distance, max_distance)
            total_score += score

            codes = self._geo.resolve(guess.lat, guess.lng)
            write_set.solo_guesses.append(
                SoloGuessModel(
                    id=f"{round_id}:{player_id}",
                    game_id=token,
                    round_id=round_id,
                    player_id=player_id,
                    lat=guess.lat,
                    lng=guess.lng,
                    score=score,
                    time=guess.time,
                    distance=distance,
                    country_code=codes.country_code,
                    subdivision_code=codes.subdivision_code,
                    round_country_code=location.country_code,
                )
            )

        write_set.solo_games.append(
            SoloGameModel(
                id=token,
                player_id=player_id,
                geo_mode=classify_geo_mode(
                    game.forbid_moving, game.forbid_zooming, game.forbid_rotating
                ),
                start_time=game.rounds[0].start_time,
                map_id=map_row.id,
                total_score=total_score,
            )
        )

        logger.debug(
            "Assembled solo game %s: %d rounds, %d guesses",
            token, len(write_set.solo_rounds), len(write_set.solo_guesses),
        )
        return write_set

    async def mark_committed(self, write_set: WriteSet) -> None:
        await self._players.mark_stored(write_set.players)
