"""Tests for distance and fallback score calculation."""

import pytest

from geostats.scoring import (
    MAX_SCORE,
    calculate_score,
    haversine_distance,
    max_map_distance,
)


class TestHaversine:

    def test_zero_distance(self):
        assert haversine_distance(48.85, 2.35, 48.85, 2.35) == 0.0

    def test_one_degree_of_latitude(self):
        # ~111.2 km per degree on a 6371 km sphere
        assert haversine_distance(0, 0, 1, 0) == pytest.approx(111_195, rel=1e-3)

    def test_symmetric(self):
        a = haversine_distance(48.85, 2.35, 40.71, -74.0)
        b = haversine_distance(40.71, -74.0, 48.85, 2.35)
        assert a == pytest.approx(b)

    def test_antipodes_do_not_raise(self):
        d = haversine_distance(0, 0, 0, 180)
        assert d == pytest.approx(20_015_087, rel=1e-3)


class TestMaxMapDistance:

    def test_is_corner_to_corner_distance(self):
        assert max_map_distance(-10, -10, 10, 10) == pytest.approx(
            haversine_distance(-10, -10, 10, 10)
        )


class TestCalculateScore:

    def test_zero_distance_is_max_score(self):
        assert calculate_score(0, 1_000_000) == MAX_SCORE

    def test_formula(self):
        # 5000 * exp(-1) = 1839.39...
        assert calculate_score(100_000, 1_000_000) == 1839

    def test_far_guess_approaches_zero(self):
        assert calculate_score(10_000_000, 1_000_000) == 0

    def test_monotonically_non_increasing(self):
        scores = [calculate_score(d, 5_000_000) for d in range(0, 5_000_001, 50_000)]
        assert scores == sorted(scores, reverse=True)
        assert all(0 <= s <= MAX_SCORE for s in scores)

    def test_negative_distance_treated_as_zero(self):
        assert calculate_score(-5, 1_000_000) == MAX_SCORE

    def test_degenerate_map_rewards_only_exact_guesses(self):
        assert calculate_score(0, 0) == MAX_SCORE
        assert calculate_score(1, 0) == 0

    def test_returns_int(self):
        assert isinstance(calculate_score(123.4, 987_654.3), int)
