"""Async HTTP client for the game server and the public profile API.

Wraps a single ``httpx.AsyncClient`` with a bounded timeout on every call
and a semaphore capping concurrent requests.  Match documents need the
guest session cookie; profile lookups are public.

Failures are mapped onto the exception tree and never retried here:

* HTTP 404                              -> GameNotFound
* other non-2xx, transport errors,
  timeouts, undecodable/invalid bodies  -> UpstreamFetchError
"""

import asyncio
import logging
from typing import Any, Iterable, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from geostats.config import IngestConfig
from geostats.exceptions import GameNotFound, UpstreamFetchError
from geostats.models.payload import (
    RankedSystemProgressPayload,
    RankedTeamPayload,
    UserPayload,
)
from geostats.session import GuestSession

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class GeoGuessrClient:
    """HTTP client for match documents and player/team enrichment lookups.

    Usage::

        async with GeoGuessrClient(config) as client:
            raw = await client.fetch_game("5f3c...")
            user = await client.fetch_user("5b0a...")
    """

    def __init__(
        self,
        config: IngestConfig | None = None,
        session: GuestSession | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if config is None:
            config = IngestConfig()

        self._config = config
        self.session = session or GuestSession(config, transport=transport)
        self._http = httpx.AsyncClient(
            transport=transport,
            timeout=httpx.Timeout(config.request_timeout),
            headers={"Accept": "application/json"},
            follow_redirects=True,
        )
        self._semaphore = asyncio.Semaphore(config.max_concurrent_requests)

        self._request_count = 0
        self._success_count = 0
        self._error_count = 0

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def fetch_game(self, game_id: str) -> dict[str, Any]:
        """Return the raw match document for ``game_id``.

        Raises:
            GameNotFound: If the game server does not know the match.
            UpstreamFetchError: On any other failure.
        """
        return await self._fetch_document(
            f"{self._config.game_server_url}/api/duels/{game_id}"
        )

    async def fetch_solo_game(self, token: str) -> dict[str, Any]:
        """Return the raw document of a single-player game.

        Raises:
            GameNotFound: If no game has this token.
            UpstreamFetchError: On any other failure.
        """
        return await self._fetch_document(f"{self._config.api_url}/api/v3/games/{token}")

    async def fetch_user(self, player_id: str) -> UserPayload:
        """Return the public profile of a player."""
        url = f"{self._config.api_url}/api/v3/users/{player_id}"
        return self._parse(UserPayload, await self._get_json(url), url)

    async def fetch_ranked_progress(self, player_id: str) -> RankedSystemProgressPayload:
        """Return the ranked-system ratings of a player."""
        url = f"{self._config.api_url}/api/v4/ranked-system/progress/{player_id}"
        return self._parse(
            RankedSystemProgressPayload, await self._get_json(url), url
        )

    async def fetch_ranked_team(self, player_ids: Iterable[str]) -> RankedTeamPayload:
        """Return the rated team formed by ``player_ids``."""
        url = f"{self._config.api_url}/api/v4/ranked-team-duels/teams/"
        params = [("userId", player_id) for player_id in player_ids]
        return self._parse(
            RankedTeamPayload, await self._get_json(url, params=params), url
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _fetch_document(self, url: str) -> dict[str, Any]:
        cookie = await self.session.cookies()
        data = await self._get_json(url, headers={"Cookie": cookie})
        if not isinstance(data, dict):
            raise UpstreamFetchError(
                f"Expected a JSON object from {url}, got {type(data).__name__}",
                url=url,
            )
        return data

    async def _get_json(
        self,
        url: str,
        params: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        async with self._semaphore:
            self._request_count += 1
            try:
                response = await self._http.get(url, params=params, headers=headers)
            except httpx.HTTPError as exc:
                self._error_count += 1
                raise UpstreamFetchError(
                    f"Failed to fetch {url}: {exc!r}", url=url
                ) from exc

        if response.status_code == 404:
            self._error_count += 1
            raise GameNotFound(f"Not found: {url}", url=url, status_code=404)
        if response.is_error:
            self._error_count += 1
            raise UpstreamFetchError(
                f"HTTP {response.status_code} from {url}",
                url=url,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            self._error_count += 1
            raise UpstreamFetchError(
                f"Undecodable JSON from {url}: {exc}",
                url=url,
                status_code=response.status_code,
            ) from exc

        self._success_count += 1
        logger.debug("Fetched %s", url)
        return data

    @staticmethod
    def _parse(model_cls: type[ModelT], data: Any, url: str) -> ModelT:
        try:
            return model_cls.model_validate(data)
        except ValidationError as exc:
            raise UpstreamFetchError(
                f"Unexpected {model_cls.__name__} payload from {url}: {exc}",
                url=url,
            ) from exc

    @property
    def stats(self) -> dict:
        """Return current client statistics."""
        return {
            "requests": self._request_count,
            "successes": self._success_count,
            "errors": self._error_count,
        }

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "GeoGuessrClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
