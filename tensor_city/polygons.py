"""
Polygon utilities: area, containment, inward offsetting and subdivision.

Polygons are rings of ``Vector`` without a repeated closing point. Shapely
does the heavy lifting; results are converted back to rings so callers
never hold on to shapely geometry.
"""

import logging
import random
from typing import Iterable, List, Optional, Sequence

from shapely.errors import GEOSException
from shapely.geometry import LineString, Point, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import split, unary_union
from shapely.prepared import prep

from .vector import Vector

logger = logging.getLogger(__name__)

Ring = List[Vector]


def to_shapely(ring: Sequence[Vector]) -> Polygon:
    """Convert a ring to a shapely polygon."""
    return Polygon([(p.x, p.y) for p in ring])


def from_shapely(polygon: Polygon) -> Ring:
    """Exterior ring of a shapely polygon, without the closing point."""
    coords = list(polygon.exterior.coords)
    if len(coords) > 1 and coords[0] == coords[-1]:
        coords = coords[:-1]
    return [Vector(x, y) for x, y in coords]


def iter_polygons(geometry: BaseGeometry) -> Iterable[Polygon]:
    """Yield the polygons contained in any shapely geometry."""
    if geometry.is_empty:
        return
    if geometry.geom_type == "Polygon":
        yield geometry
    elif hasattr(geometry, "geoms"):
        for part in geometry.geoms:
            yield from iter_polygons(part)


def signed_area(ring: Sequence[Vector]) -> float:
    """Shoelace area; positive for counterclockwise rings."""
    total = 0.0
    n = len(ring)
    for i in range(n):
        p = ring[i]
        q = ring[(i + 1) % n]
        total += p.x * q.y - q.x * p.y
    return total / 2


def polygon_area(ring: Sequence[Vector]) -> float:
    return abs(signed_area(ring))


def is_simple_polygon(ring: Sequence[Vector]) -> bool:
    """True for a valid, non self-intersecting ring with positive area."""
    if len(ring) < 3:
        return False
    polygon = to_shapely(ring)
    return polygon.is_valid and polygon.area > 0


def average_point(ring: Sequence[Vector]) -> Vector:
    if not ring:
        return Vector.zero()
    x = sum(p.x for p in ring) / len(ring)
    y = sum(p.y for p in ring) / len(ring)
    return Vector(x, y)


class PolygonRegion:
    """Union of polygons answering fast repeated point-in-region queries."""

    def __init__(self, rings: Iterable[Sequence[Vector]] = ()):
        self.rings = tuple(tuple(ring) for ring in rings)
        for ring in self.rings:
            if len(ring) < 3:
                raise ValueError(f"Region polygon needs at least 3 points, got {len(ring)}")

        if self.rings:
            union = unary_union([to_shapely(ring).buffer(0) for ring in self.rings])
            self._bounds = union.bounds
            self._prepared = prep(union)
        else:
            self._bounds = None
            self._prepared = None

    def __bool__(self) -> bool:
        return bool(self.rings)

    def __len__(self) -> int:
        return len(self.rings)

    def contains(self, point: Vector) -> bool:
        if self._prepared is None:
            return False
        min_x, min_y, max_x, max_y = self._bounds
        if point.x < min_x or point.x > max_x or point.y < min_y or point.y > max_y:
            return False
        return self._prepared.contains(Point(point.x, point.y))


def shrink_polygon(ring: Sequence[Vector], spacing: float) -> List[Ring]:
    """
    Offset a polygon inward by spacing.

    Returns every non-degenerate piece left after offsetting; an empty list
    when the polygon vanishes.
    """
    polygon = to_shapely(ring)
    if not polygon.is_valid:
        polygon = polygon.buffer(0)
    if spacing <= 0:
        return [from_shapely(p) for p in iter_polygons(polygon) if p.area > 0]

    try:
        shrunk = polygon.buffer(-spacing, join_style="mitre")
    except (GEOSException, ValueError) as e:
        logger.warning("Failed to shrink polygon: %s", e)
        return []

    return [from_shapely(p) for p in iter_polygons(shrunk) if p.area > 0]


def slice_polygon(polygon: Polygon, start: Vector, end: Vector) -> List[Polygon]:
    """Cut a polygon along the line start-end."""
    cutter = LineString([(start.x, start.y), (end.x, end.y)])
    try:
        pieces = split(polygon, cutter)
    except (GEOSException, ValueError) as e:
        logger.warning("Failed to slice polygon: %s", e)
        return [polygon]
    return [p for p in iter_polygons(pieces) if p.area > 0]


def longest_side(ring: Sequence[Vector]):
    """(start, end, length) of the longest side of the ring."""
    best = (ring[0], ring[1 % len(ring)], 0.0)
    for i in range(len(ring)):
        a = ring[i]
        b = ring[(i + 1) % len(ring)]
        length = a.distance_to(b)
        if length > best[2]:
            best = (a, b, length)
    return best


def subdivide_polygon(
    ring: Sequence[Vector],
    max_length: float,
    min_area: float,
    rng: Optional[random.Random] = None,
    chance_no_divide: float = 0.0,
) -> List[Ring]:
    """
    Recursively bisect a polygon into lots.

    The cut runs perpendicular to the longest side, through a point 40-60%
    along it. A polygon is cut only while its longest side exceeds
    max_length and every resulting piece keeps at least min_area, so no lot
    falls below min_area unless the input already did. Every cut is skipped
    with probability chance_no_divide, so lot sizes vary within a block.

    Args:
        ring: Polygon to divide
        max_length: Longest side allowed on a finished lot
        min_area: Smallest lot area produced by a cut
        rng: Random source for the cut position and skipped cuts
        chance_no_divide: Probability of leaving a polygon uncut

    Returns:
        List of lots (the input itself when it is not divided)
    """
    rng = rng or random.Random()
    ring = list(ring)
    if len(ring) < 3:
        return []

    polygon = to_shapely(ring)
    area = polygon.area
    if area < 2 * min_area:
        return [ring]

    start, end, length = longest_side(ring)
    if length <= max_length or length == 0:
        return [ring]

    if rng.random() < chance_no_divide:
        return [ring]

    deviation = rng.random() * 0.2 + 0.4
    cut_point = start.lerp(end, deviation)
    min_x, min_y, max_x, max_y = polygon.bounds
    reach = 2 * (max_x - min_x + max_y - min_y) + 1
    perpendicular = (end - start).perpendicular().set_length(reach)

    pieces = slice_polygon(polygon, cut_point - perpendicular, cut_point + perpendicular)
    if len(pieces) < 2 or any(piece.area < min_area for piece in pieces):
        return [ring]

    lots = []
    for piece in pieces:
        lots.extend(subdivide_polygon(
            from_shapely(piece), max_length, min_area, rng, chance_no_divide
        ))
    return lots
