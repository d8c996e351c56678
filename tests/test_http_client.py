"""Unit tests for GeoGuessrClient against an httpx.MockTransport.

No real network traffic: every request is answered by a handler that
records what it saw.
"""

import httpx
import pytest

from geostats.config import IngestConfig
from geostats.exceptions import GameNotFound, UpstreamFetchError
from geostats.http_client import GeoGuessrClient


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class FakeSession:
    def __init__(self, cookie="_ncfa=abc"):
        self.cookie = cookie
        self.calls = 0

    async def cookies(self):
        self.calls += 1
        return self.cookie


def _make_client(handler, **config_overrides):
    config = IngestConfig(
        game_server_url="https://game.test",
        api_url="https://api.test",
        **config_overrides,
    )
    return GeoGuessrClient(
        config, session=FakeSession(), transport=httpx.MockTransport(handler)
    )


# ---------------------------------------------------------------------------
# fetch_game
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_fetch_game_sends_cookie_and_returns_json():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["cookie"] = request.headers.get("cookie")
        return httpx.Response(200, json={"gameId": "g1", "status": "Finished"})

    async with _make_client(handler) as client:
        data = await client.fetch_game("g1")

    assert data == {"gameId": "g1", "status": "Finished"}
    assert seen["url"] == "https://game.test/api/duels/g1"
    assert seen["cookie"] == "_ncfa=abc"


@pytest.mark.asyncio
async def test_fetch_game_404_raises_game_not_found():
    async with _make_client(lambda r: httpx.Response(404)) as client:
        with pytest.raises(GameNotFound) as exc_info:
            await client.fetch_game("missing")

    assert exc_info.value.status_code == 404
    assert exc_info.value.url.endswith("/api/duels/missing")


@pytest.mark.asyncio
async def test_server_error_raises_upstream_fetch_error():
    async with _make_client(lambda r: httpx.Response(503)) as client:
        with pytest.raises(UpstreamFetchError) as exc_info:
            await client.fetch_game("g1")

    assert not isinstance(exc_info.value, GameNotFound)
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_transport_error_raises_upstream_fetch_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _make_client(handler) as client:
        with pytest.raises(UpstreamFetchError):
            await client.fetch_game("g1")
        assert client.stats["errors"] == 1


@pytest.mark.asyncio
async def test_timeout_raises_upstream_fetch_error():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    async with _make_client(handler) as client:
        with pytest.raises(UpstreamFetchError):
            await client.fetch_game("g1")


@pytest.mark.asyncio
async def test_undecodable_body_raises_upstream_fetch_error():
    async with _make_client(lambda r: httpx.Response(200, text="<html>")) as client:
        with pytest.raises(UpstreamFetchError):
            await client.fetch_game("g1")


@pytest.mark.asyncio
async def test_non_object_body_raises_upstream_fetch_error():
    async with _make_client(lambda r: httpx.Response(200, json=[1, 2])) as client:
        with pytest.raises(UpstreamFetchError):
            await client.fetch_game("g1")


# ---------------------------------------------------------------------------
# fetch_solo_game
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_fetch_solo_game_sends_cookie_to_api_host():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["cookie"] = request.headers.get("cookie")
        return httpx.Response(200, json={"token": "T1", "state": "finished"})

    async with _make_client(handler) as client:
        data = await client.fetch_solo_game("T1")

    assert data == {"token": "T1", "state": "finished"}
    assert seen["url"] == "https://api.test/api/v3/games/T1"
    assert seen["cookie"] == "_ncfa=abc"


@pytest.mark.asyncio
async def test_fetch_solo_game_404_raises_game_not_found():
    async with _make_client(lambda r: httpx.Response(404)) as client:
        with pytest.raises(GameNotFound):
            await client.fetch_solo_game("missing")


# ---------------------------------------------------------------------------
# Enrichment endpoints
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_fetch_user_parses_profile_without_cookie():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["cookie"] = request.headers.get("cookie")
        return httpx.Response(200, json={
            "id": "p1", "nick": "Alice", "countryCode": "se",
            "isProUser": True, "pin": {"url": "pin/a.png"}, "br": {"level": 7},
            "somethingElse": {"ignored": True},
        })

    async with _make_client(handler) as client:
        user = await client.fetch_user("p1")

    assert seen["path"] == "/api/v3/users/p1"
    assert seen["cookie"] is None
    assert user.nick == "Alice"
    assert user.country_code == "se"
    assert user.pin.url == "pin/a.png"
    assert user.br.level == 7


@pytest.mark.asyncio
async def test_fetch_ranked_progress():
    def handler(request):
        assert request.url.path == "/api/v4/ranked-system/progress/p1"
        return httpx.Response(200, json={
            "rating": 1100,
            "gameModeRatings": {"standardDuels": 1050, "noMoveDuels": None, "nmpz": 990},
        })

    async with _make_client(handler) as client:
        progress = await client.fetch_ranked_progress("p1")

    assert progress.rating == 1100
    assert progress.game_mode_ratings.standard_duels == 1050
    assert progress.game_mode_ratings.nmpz == 990


@pytest.mark.asyncio
async def test_fetch_ranked_team_sends_both_user_ids():
    seen = {}

    def handler(request):
        seen["ids"] = request.url.params.get_list("userId")
        return httpx.Response(200, json={"teamId": "t", "teamName": "Duo", "rating": 1300})

    async with _make_client(handler) as client:
        team = await client.fetch_ranked_team(["a", "b"])

    assert seen["ids"] == ["a", "b"]
    assert team.team_name == "Duo"
    assert team.rating == 1300


@pytest.mark.asyncio
async def test_invalid_profile_payload_raises_upstream_fetch_error():
    async with _make_client(lambda r: httpx.Response(200, json={"nick": 5})) as client:
        with pytest.raises(UpstreamFetchError):
            await client.fetch_user("p1")


@pytest.mark.asyncio
async def test_stats_count_requests():
    async with _make_client(lambda r: httpx.Response(200, json={"rating": 1})) as client:
        await client.fetch_ranked_progress("p1")
        await client.fetch_ranked_progress("p2")
        assert client.stats == {"requests": 2, "successes": 2, "errors": 0}
