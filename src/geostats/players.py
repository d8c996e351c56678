"""Player profile enrichment."""

import logging
from typing import Iterable, Optional

from geostats.cache import TTLCache
from geostats.exceptions import UpstreamFetchError
from geostats.http_client import GeoGuessrClient
from geostats.models import PlayerModel
from geostats.models.payload import GameModeRatingsPayload

logger = logging.getLogger(__name__)


def player_cache_key(player_id: str) -> str:
    return f"player:{player_id}"


class PlayerResolver:
    """Builds ``PlayerModel`` snapshots from the public profile endpoints.

    Lookups go through the shared ``TTLCache``: concurrent matches with the
    same player share one lookup, and a player whose row was stored within
    the TTL is skipped (``resolve`` returns None).  The profile lookup is
    required, the ranked-progress lookup is optional: players without
    ranked history simply get no ratings.
    """

    def __init__(self, client: GeoGuessrClient, cache: TTLCache) -> None:
        self._client = client
        self._cache = cache

    async def resolve(self, player_id: str) -> Optional[PlayerModel]:
        """Return a fresh profile snapshot, or None if stored recently.

        Raises:
            UpstreamFetchError: If the profile lookup fails.
        """
        player = await self._cache.lookup(
            player_cache_key(player_id), lambda: self._fetch(player_id)
        )
        if player is None:
            logger.debug("Player %s stored recently, skipping lookup", player_id)
        return player

    async def mark_stored(self, players: Iterable[PlayerModel]) -> None:
        """Stop looking up ``players`` for one TTL; their rows are committed."""
        for player in players:
            await self._cache.mark_refreshed(player_cache_key(player.id))

    async def _fetch(self, player_id: str) -> PlayerModel:
        user = await self._client.fetch_user(player_id)

        rating = None
        mode_ratings = GameModeRatingsPayload()
        try:
            progress = await self._client.fetch_ranked_progress(player_id)
        except UpstreamFetchError as exc:
            logger.debug("No ranked progress for player %s: %s", player_id, exc)
        else:
            rating = progress.rating
            if progress.game_mode_ratings is not None:
                mode_ratings = progress.game_mode_ratings

        return PlayerModel(
            id=user.id,
            name=user.nick,
            country_code=user.country_code,
            avatar_pin=user.pin.url if user.pin else None,
            level=user.br.level if user.br else None,
            is_pro_user=user.is_pro_user,
            is_creator=user.is_creator,
            rating=rating,
            moving_rating=mode_ratings.standard_duels,
            no_move_rating=mode_ratings.no_move_duels,
            nmpz_rating=mode_ratings.nmpz,
        )
