"""Point-in-polygon geo resolution against preloaded boundary datasets.

Boundary datasets are GeoJSON FeatureCollections (optionally gzip
compressed) where each feature carries its region code in
``properties.id``.  Two datasets are used:

* **world** -- one feature per country/territory (ISO 3166-1 alpha-2).
* **subdivisions** -- one feature per state/province (ISO 3166-2).

Both are loaded once at start-up and never mutated afterwards, so lookups
need no locking.
"""

import gzip
import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

# Grid cell size (degrees) for the coarse spatial bucket index
_CELL_SIZE = 10.0

_ID_PROPERTIES = ("id", "ISO_A2", "iso_a2", "ISO3166-2", "iso_3166_2")


Ring = tuple[tuple[float, float], ...]


def _point_in_ring(x: float, y: float, ring: Ring) -> bool:
    """Check if a point is inside a closed ring using ray casting.

    Args:
        x: Longitude of the point.
        y: Latitude of the point.
        ring: Sequence of (lng, lat) vertices.

    Returns:
        True if the point is inside the ring.
    """
    n = len(ring)
    if n < 3:
        return False

    inside = False
    p1x, p1y = ring[0]

    for i in range(1, n + 1):
        p2x, p2y = ring[i % n]
        if y > min(p1y, p2y):
            if y <= max(p1y, p2y):
                if x <= max(p1x, p2x):
                    if p1y != p2y:
                        xinters = (y - p1y) * (p2x - p1x) / (p2y - p1y) + p1x
                    if p1x == p2x or x <= xinters:
                        inside = not inside
        p1x, p1y = p2x, p2y

    return inside


@dataclass(frozen=True)
class BoundaryPolygon:
    """One polygon (outer ring plus holes) belonging to a region."""

    region_id: str
    outer: Ring
    holes: tuple[Ring, ...] = ()

    @property
    def bbox(self) -> tuple[float, float, float, float]:
        """(min_lng, min_lat, max_lng, max_lat) of the outer ring."""
        xs = [p[0] for p in self.outer]
        ys = [p[1] for p in self.outer]
        return min(xs), min(ys), max(xs), max(ys)

    def contains(self, lat: float, lng: float) -> bool:
        if not _point_in_ring(lng, lat, self.outer):
            return False
        return not any(_point_in_ring(lng, lat, hole) for hole in self.holes)


def _feature_id(feature: dict) -> Optional[str]:
    properties = feature.get("properties") or {}
    for key in _ID_PROPERTIES:
        value = properties.get(key)
        if value:
            return str(value)
    value = feature.get("id")
    return str(value) if value else None


def _to_ring(coords: Iterable) -> Ring:
    return tuple((float(p[0]), float(p[1])) for p in coords)


def _polygons_from_feature(feature: dict) -> list[BoundaryPolygon]:
    region_id = _feature_id(feature)
    geometry = feature.get("geometry") or {}
    if region_id is None or not geometry:
        return []

    geom_type = geometry.get("type")
    coords = geometry.get("coordinates") or []
    if geom_type == "Polygon":
        parts = [coords]
    elif geom_type == "MultiPolygon":
        parts = coords
    else:
        logger.debug("Skipping %s geometry for region %s", geom_type, region_id)
        return []

    polygons = []
    for rings in parts:
        if not rings:
            continue
        polygons.append(
            BoundaryPolygon(
                region_id=region_id,
                outer=_to_ring(rings[0]),
                holes=tuple(_to_ring(r) for r in rings[1:]),
            )
        )
    return polygons


class BoundaryIndex:
    """Immutable point-in-polygon index over a set of region polygons.

    Polygons are bucketed into a coarse lat/lng grid by bounding box; a
    lookup only ray-casts against polygons in the point's cell whose
    bounding box contains the point.  Results keep dataset order.

    Usage::

        world = BoundaryIndex.from_file("data/boundaries/world.json.gz")
        world.ids_at(48.85, 2.35)   # ['FR']
    """

    def __init__(self, polygons: Iterable[BoundaryPolygon]) -> None:
        self._polygons: tuple[BoundaryPolygon, ...] = tuple(polygons)
        self._bboxes = tuple(p.bbox for p in self._polygons)
        self._cells: dict[tuple[int, int], list[int]] = {}
        for idx, (min_x, min_y, max_x, max_y) in enumerate(self._bboxes):
            for cx in range(_cell(min_x), _cell(max_x) + 1):
                for cy in range(_cell(min_y), _cell(max_y) + 1):
                    self._cells.setdefault((cx, cy), []).append(idx)

    @classmethod
    def from_geojson(cls, data: dict) -> "BoundaryIndex":
        """Build an index from a parsed GeoJSON FeatureCollection."""
        polygons: list[BoundaryPolygon] = []
        for feature in data.get("features") or []:
            polygons.extend(_polygons_from_feature(feature))
        return cls(polygons)

    @classmethod
    def from_file(cls, path: str | Path) -> "BoundaryIndex":
        """Load a GeoJSON dataset from disk (``.gz`` files are decompressed).

        Raises:
            FileNotFoundError: If the dataset does not exist.
        """
        path = Path(path)
        raw = path.read_bytes()
        if path.suffix == ".gz":
            raw = gzip.decompress(raw)
        index = cls.from_geojson(json.loads(raw.decode("utf-8")))
        logger.info(
            "Loaded %d boundary polygons (%d regions) from %s",
            len(index), len(index.region_ids), path,
        )
        return index

    def __len__(self) -> int:
        return len(self._polygons)

    @property
    def region_ids(self) -> set[str]:
        return {p.region_id for p in self._polygons}

    def ids_at(self, lat: float, lng: float) -> list[str]:
        """Return the ids of all regions containing the point, in dataset order."""
        candidates = self._cells.get((_cell(lng), _cell(lat)), ())
        ids: list[str] = []
        for idx in candidates:
            min_x, min_y, max_x, max_y = self._bboxes[idx]
            if not (min_x <= lng <= max_x and min_y <= lat <= max_y):
                continue
            polygon = self._polygons[idx]
            if polygon.region_id in ids:
                continue
            if polygon.contains(lat, lng):
                ids.append(polygon.region_id)
        return ids


def _cell(value: float) -> int:
    return math.floor(value / _CELL_SIZE)


@dataclass(frozen=True)
class GeoCodes:
    """Resolved codes for a coordinate; ``None`` means no polygon matched."""

    country_code: Optional[str] = None
    subdivision_code: Optional[str] = None


class GeoResolver:
    """Maps coordinates to a country code and an optional subdivision code.

    When the world index returns several countries for one point (coasts,
    disputed areas) the last candidate wins, unless one of the candidates
    is in ``priority_codes`` -- then the first such candidate wins.  The
    subdivision is the first id the subdivision index returns.
    """

    def __init__(
        self,
        world: BoundaryIndex,
        subdivisions: BoundaryIndex | None = None,
        priority_codes: Iterable[str] = (),
    ) -> None:
        self._world = world
        self._subdivisions = subdivisions
        self._priority = frozenset(priority_codes)

    def country_code(self, lat: float, lng: float) -> Optional[str]:
        candidates = self._world.ids_at(lat, lng)
        if not candidates:
            return None
        for code in candidates:
            if code in self._priority:
                return code
        return candidates[-1]

    def subdivision_code(self, lat: float, lng: float) -> Optional[str]:
        if self._subdivisions is None:
            return None
        ids = self._subdivisions.ids_at(lat, lng)
        return ids[0] if ids else None

    def resolve(self, lat: float, lng: float) -> GeoCodes:
        return GeoCodes(
            country_code=self.country_code(lat, lng),
            subdivision_code=self.subdivision_code(lat, lng),
        )
