"""Tests for harvesting game ids from a recent-games feed."""

import json

import pytest

from geostats.feed import game_ids_from_feed, load_feed


def activity(game_id, mode="Duels"):
    return {"type": 6, "payload": {"gameId": game_id, "gameMode": mode}}


def entry(payload):
    return {"type": 7, "user": {"id": "me"}, "payload": json.dumps(payload)}


def test_list_payload():
    entries = [entry([activity("g1"), activity("g2", "TeamDuels")])]
    assert game_ids_from_feed(entries) == ["g1", "g2"]


def test_single_object_payload():
    assert game_ids_from_feed([entry(activity("g1"))]) == ["g1"]


def test_live_challenge_skipped():
    entries = [entry([activity("g1", "LiveChallenge"), activity("g2")])]
    assert game_ids_from_feed(entries) == ["g2"]


def test_unparseable_payload_skipped():
    entries = [
        {"payload": "{not json"},
        {"payload": None},
        entry([activity("g1")]),
    ]
    assert game_ids_from_feed(entries) == ["g1"]


def test_unique_in_first_seen_order():
    entries = [
        entry([activity("g2"), activity("g1")]),
        entry([activity("g2"), activity("g3")]),
    ]
    assert game_ids_from_feed(entries) == ["g2", "g1", "g3"]


def test_activities_without_game_id_ignored():
    entries = [entry([{"type": 1, "payload": {"mapSlug": "world"}}, activity("g1")])]
    assert game_ids_from_feed(entries) == ["g1"]


class TestLoadFeed:

    def test_object_with_entries(self):
        assert load_feed({"entries": [{"payload": "[]"}]}) == [{"payload": "[]"}]

    def test_bare_list(self):
        assert load_feed([{"payload": "[]"}, "junk"]) == [{"payload": "[]"}]

    def test_invalid_document(self):
        with pytest.raises(ValueError):
            load_feed("nope")
