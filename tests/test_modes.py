"""Tests for team game mode and geo mode classification."""

import itertools

import pytest

from geostats.modes import (
    GeoMode,
    TeamGameMode,
    classify_geo_mode,
    classify_team_game_mode,
)


class TestClassifyTeamGameMode:

    @pytest.mark.parametrize(
        "sizes, is_rated, expected",
        [
            ((1, 1), False, TeamGameMode.DUELS),
            ((1, 1), True, TeamGameMode.DUELS_RANKED),
            ((2, 2), False, TeamGameMode.TEAM_DUELS),
            ((2, 2), True, TeamGameMode.TEAM_DUELS_RANKED),
            ((1, 2), False, TeamGameMode.TEAM_FUN),
            ((3, 3), True, TeamGameMode.TEAM_FUN),
            ((2, 1), True, TeamGameMode.TEAM_FUN),
        ],
    )
    def test_sizes_and_rated_flag(self, sizes, is_rated, expected):
        assert classify_team_game_mode(*sizes, is_rated) == expected

    def test_stored_label_is_enum_value(self):
        assert TeamGameMode.TEAM_DUELS_RANKED.value == "TeamDuelsRanked"

    def test_is_team_mode(self):
        assert not TeamGameMode.DUELS.is_team_mode
        assert not TeamGameMode.DUELS_RANKED.is_team_mode
        assert TeamGameMode.TEAM_DUELS.is_team_mode
        assert TeamGameMode.TEAM_FUN.is_team_mode


class TestClassifyGeoMode:

    def test_all_free_is_moving(self):
        assert classify_geo_mode(False, False, False) == GeoMode.MOVING

    def test_all_forbidden_is_nmpz(self):
        assert classify_geo_mode(True, True, True) == GeoMode.NMPZ

    def test_no_move_only(self):
        assert classify_geo_mode(True, False, False) == GeoMode.NO_MOVE

    def test_no_panning_only(self):
        assert classify_geo_mode(False, False, True) == GeoMode.NO_PANNING

    def test_every_combination_maps_to_a_distinct_mode(self):
        modes = {
            classify_geo_mode(*flags)
            for flags in itertools.product((False, True), repeat=3)
        }
        assert modes == set(GeoMode)
