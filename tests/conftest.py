"""Shared fixtures: tiny boundary datasets, a migrated database, and
builders for upstream match payloads."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from geostats.db import Database
from geostats.geo import BoundaryIndex, GeoResolver
from geostats.models import RankedSystemProgressPayload, RankedTeamPayload, UserPayload


def square(min_lng, min_lat, max_lng, max_lat):
    """Closed (lng, lat) ring for an axis-aligned box."""
    return [
        [min_lng, min_lat],
        [max_lng, min_lat],
        [max_lng, max_lat],
        [min_lng, max_lat],
        [min_lng, min_lat],
    ]


def feature(region_id, *rings, key="id"):
    return {
        "type": "Feature",
        "properties": {key: region_id},
        "geometry": {"type": "Polygon", "coordinates": list(rings)},
    }


def feature_collection(*features):
    return {"type": "FeatureCollection", "features": list(features)}


# Two countries side by side plus a subdivision inside the first one
WORLD_GEOJSON = feature_collection(
    feature("FR", square(0, 40, 10, 50)),
    feature("ES", square(-10, 35, 0, 40)),
)
SUBDIVISION_GEOJSON = feature_collection(
    feature("FR-IDF", square(1, 48, 3, 49)),
)


@pytest.fixture
def geo_resolver():
    return GeoResolver(
        BoundaryIndex.from_geojson(WORLD_GEOJSON),
        BoundaryIndex.from_geojson(SUBDIVISION_GEOJSON),
        priority_codes={"CW", "PR"},
    )


@pytest.fixture
def db():
    database = Database(":memory:")
    database.initialize()
    yield database
    database.close()


# ---------------------------------------------------------------------------
# Upstream payload builders
# ---------------------------------------------------------------------------

def make_guess(round_number=1, lat=45.5, lng=5.5, score=4000, distance=1200.0,
               created="2025-01-01T12:00:10Z", best=True):
    data = {
        "roundNumber": round_number,
        "lat": lat,
        "lng": lng,
        "distance": distance,
        "created": created,
        "isTeamsBestGuessOnRound": best,
    }
    if score is not None:
        data["score"] = score
    return data


def make_player(player_id, guesses=None, rating_before=None, team_rating_before=None):
    data = {"playerId": player_id, "guesses": guesses or []}
    if rating_before is not None or team_rating_before is not None:
        data["progressChange"] = {
            "rankedSystemProgress": (
                {"ratingBefore": rating_before, "ratingAfter": rating_before}
                if rating_before is not None else None
            ),
            "rankedTeamDuelsProgress": (
                {"ratingBefore": team_rating_before, "ratingAfter": team_rating_before}
                if team_rating_before is not None else None
            ),
        }
    return data


def make_team(team_id, players, health=6000):
    return {"id": team_id, "name": team_id, "health": health, "players": players}


def make_round(round_number, pano_id, lat, lng, country_code=None,
               start_time="2025-01-01T12:00:00Z"):
    data = {
        "roundNumber": round_number,
        "panorama": {
            "panoId": pano_id,
            "lat": lat,
            "lng": lng,
            "heading": 90.0,
            "pitch": 0.0,
            "zoom": 0.0,
        },
        "damageMultiplier": 1.0,
        "startTime": start_time,
    }
    if country_code is not None:
        data["panorama"]["countryCode"] = country_code
    return data


def make_game_payload(game_id="game-1", teams=None, rounds=None, status="Finished",
                      current_round_number=None, is_rated=False, movement=None,
                      map_slug="world", max_error_distance=None):
    """A finished 1v1 unranked match with two rounds and explicit scores."""
    if rounds is None:
        rounds = [
            make_round(1, "pano-fr", 45.0, 5.0),
            make_round(2, "pano-es", 37.0, -5.0, start_time="2025-01-01T12:02:00Z"),
        ]
    if teams is None:
        teams = [
            make_team("t1", [make_player("p1", [
                make_guess(1, 45.5, 5.5, score=4500),
                make_guess(2, 36.0, -4.0, score=3000,
                           created="2025-01-01T12:02:30Z"),
            ])]),
            make_team("t2", [make_player("p2", [
                make_guess(1, 30.0, 30.0, score=100),
                make_guess(2, 37.5, -5.5, score=4900,
                           created="2025-01-01T12:02:05Z"),
            ])]),
        ]
    map_data = {
        "name": "A World",
        "slug": map_slug,
        "bounds": {"min": {"lat": -60.0, "lng": -180.0}, "max": {"lat": 80.0, "lng": 180.0}},
    }
    if max_error_distance is not None:
        map_data["maxErrorDistance"] = max_error_distance
    return {
        "gameId": game_id,
        "teams": teams,
        "rounds": rounds,
        "currentRoundNumber": (
            len(rounds) if current_round_number is None else current_round_number
        ),
        "status": status,
        "options": {
            "isRated": is_rated,
            "movementOptions": movement or {
                "forbidMoving": False,
                "forbidZooming": False,
                "forbidRotating": False,
            },
            "map": map_data,
        },
    }


def make_solo_round(pano_id, lat, lng, country_code=None,
                    start_time="2025-01-01T12:00:00Z"):
    data = {"panoId": pano_id, "lat": lat, "lng": lng,
            "heading": 90.0, "pitch": 0.0, "zoom": 0.0}
    if country_code is not None:
        data["streakLocationCode"] = country_code
    if start_time is not None:
        data["startTime"] = start_time
    return data


def make_solo_guess(lat=45.5, lng=5.5, score=4000, distance=1200.0, time=30,
                    timed_out=False, timed_out_with_guess=False, skipped=False):
    data = {
        "lat": lat,
        "lng": lng,
        "distanceInMeters": distance,
        "time": time,
        "timedOut": timed_out,
        "timedOutWithGuess": timed_out_with_guess,
        "skippedRound": skipped,
    }
    if score is not None:
        data["roundScoreInPoints"] = score
    return data


def make_solo_payload(token="solo-1", player_id="p1", rounds=None, guesses=None,
                      state="finished", movement=None):
    """A finished single-player game with two answered rounds."""
    if rounds is None:
        rounds = [
            make_solo_round("pano-fr", 45.0, 5.0),
            make_solo_round("pano-es", 37.0, -5.0, start_time="2025-01-01T12:02:00Z"),
        ]
    if guesses is None:
        guesses = [
            make_solo_guess(45.5, 5.5, score=4500),
            make_solo_guess(36.0, -4.0, score=3000),
        ]
    return {
        "token": token,
        "state": state,
        "map": "world",
        "mapName": "A World",
        "bounds": {"min": {"lat": -60.0, "lng": -180.0}, "max": {"lat": 80.0, "lng": 180.0}},
        **(movement or {
            "forbidMoving": False,
            "forbidZooming": False,
            "forbidRotating": False,
        }),
        "rounds": rounds,
        "player": {"id": player_id, "nick": f"nick-{player_id}", "guesses": guesses},
    }


def make_mock_client(games=None, solo_games=None):
    """Mock ``GeoGuessrClient`` serving ``games`` and ``solo_games`` (id ->
    payload) and synthetic profiles for any player id."""
    games = games or {}
    solo_games = solo_games or {}
    client = MagicMock()

    async def fetch_game(game_id):
        return games[game_id]

    async def fetch_solo_game(token):
        return solo_games[token]

    client.fetch_game = AsyncMock(side_effect=fetch_game)
    client.fetch_solo_game = AsyncMock(side_effect=fetch_solo_game)
    client.fetch_user = AsyncMock(
        side_effect=lambda pid: UserPayload(
            id=pid, nick=f"nick-{pid}", country_code="fr"
        )
    )
    client.fetch_ranked_progress = AsyncMock(
        return_value=RankedSystemProgressPayload(rating=1000)
    )
    client.fetch_ranked_team = AsyncMock(
        side_effect=lambda ids: RankedTeamPayload(
            team_id="upstream", team_name="The " + "+".join(ids), rating=1200
        )
    )
    return client
