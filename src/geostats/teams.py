"""Canonical team identity and team row resolution.

The game service exposes no stable id for ad-hoc teams, so every team is
keyed by its sorted member ids.  The same pairing always converges on the
same id no matter which order the payload lists the players in.
"""

import logging
from typing import Iterable, Optional

from geostats.cache import TTLCache
from geostats.http_client import GeoGuessrClient
from geostats.models import CompTeamModel, FunTeamModel

logger = logging.getLogger(__name__)

TEAM_ID_SEPARATOR = "_"


def team_cache_key(team_id: str) -> str:
    return f"team:{team_id}"


def team_id_for(player_ids: Iterable[str]) -> str:
    """Return the order-invariant team id for a set of players."""
    return TEAM_ID_SEPARATOR.join(sorted(player_ids))


class TeamResolver:
    """Builds competitive and casual team rows.

    Competitive teams are enriched with the upstream ranked-team profile,
    shared and throttled through the ``TTLCache`` the same way players are.
    Casual teams need no upstream call.
    """

    def __init__(self, client: GeoGuessrClient, cache: TTLCache) -> None:
        self._client = client
        self._cache = cache

    async def resolve_comp_team(
        self, player_ids: Iterable[str]
    ) -> Optional[CompTeamModel]:
        """Return the rated team row, or None if it was stored recently.

        Raises:
            UpstreamFetchError: If the ranked-team lookup fails.
        """
        members = sorted(player_ids)
        team_id = team_id_for(members)
        team = await self._cache.lookup(
            team_cache_key(team_id), lambda: self._fetch(team_id, members)
        )
        if team is None:
            logger.debug("Team %s stored recently, skipping lookup", team_id)
        return team

    async def mark_stored(self, teams: Iterable[CompTeamModel]) -> None:
        """Stop looking up ``teams`` for one TTL; their rows are committed."""
        for team in teams:
            await self._cache.mark_refreshed(team_cache_key(team.team_id))

    async def _fetch(self, team_id: str, members: list[str]) -> CompTeamModel:
        ranked = await self._client.fetch_ranked_team(members)
        return CompTeamModel(
            team_id=team_id,
            player_id1=members[0],
            player_id2=members[1],
            name=ranked.team_name,
            rating=ranked.rating,
        )

    def resolve_fun_team(self, player_ids: Iterable[str]) -> FunTeamModel:
        members = sorted(player_ids)
        return FunTeamModel(team_id=team_id_for(members), player_ids=members)
