"""Fallback scoring for guesses whose upstream record carries no score.

Some casual-mode payloads omit the per-guess score.  The game service
scores a guess with an exponential decay over the map's size; we
approximate that curve with the map's bounding-box diagonal as the
reference distance::

    score = round(5000 * exp(-10 * distance / max_map_distance))

Distances are in meters throughout.
"""

import math

MAX_SCORE = 5000
EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two coordinates in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Clamp guards against a > 1 from floating point error on antipodes
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, a)))


def max_map_distance(
    min_lat: float, min_lng: float, max_lat: float, max_lng: float
) -> float:
    """Distance between the two corners of a map's bounding box in meters."""
    return haversine_distance(min_lat, min_lng, max_lat, max_lng)


def calculate_score(distance: float, max_distance: float) -> int:
    """Return the fallback score for a guess ``distance`` meters off target.

    Always in ``[0, MAX_SCORE]`` and non-increasing in ``distance``.  A
    degenerate map (``max_distance <= 0``) only rewards exact guesses.
    """
    distance = max(0.0, distance)
    if max_distance <= 0:
        return MAX_SCORE if distance == 0 else 0

    score = round(MAX_SCORE * math.exp(-10 * distance / max_distance))
    return max(0, min(MAX_SCORE, score))
