"""
Spatial indices: bucketed sample storage and segment intersection queries.
"""

import math
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from shapely.geometry import LineString
from shapely.strtree import STRtree

from .vector import Vector

Cell = Tuple[int, int]


class SampleGrid:
    """
    Uniform grid of cells holding accepted sample points.

    Cells are ``dsep`` wide, so a separation query only looks at the 3x3
    block of cells around the point (or a wider block for radii above
    ``dsep``) and costs O(1) regardless of how many samples are stored.
    """

    def __init__(self, dsep: float, origin: Optional[Vector] = None):
        """
        Initialize empty grid.

        Args:
            dsep: Cell size, normally the separation distance
            origin: World-space origin of cell (0, 0)
        """
        if dsep <= 0:
            raise ValueError(f"Cell size must be positive, got {dsep}")
        self.dsep = dsep
        self.origin = origin or Vector.zero()
        self.cells: Dict[Cell, List[Vector]] = {}
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[Vector]:
        for samples in self.cells.values():
            yield from samples

    def clear(self) -> None:
        self.cells = {}
        self._count = 0

    def cell_coords(self, point: Vector) -> Cell:
        return (
            math.floor((point.x - self.origin.x) / self.dsep),
            math.floor((point.y - self.origin.y) / self.dsep),
        )

    def add_sample(self, point: Vector) -> None:
        self.cells.setdefault(self.cell_coords(point), []).append(point)
        self._count += 1

    def add_polyline(self, points: Iterable[Vector]) -> None:
        for point in points:
            self.add_sample(point)

    def _cells_around(self, point: Vector, radius_cells: int) -> Iterator[List[Vector]]:
        cx, cy = self.cell_coords(point)
        for x in range(cx - radius_cells, cx + radius_cells + 1):
            for y in range(cy - radius_cells, cy + radius_cells + 1):
                samples = self.cells.get((x, y))
                if samples:
                    yield samples

    def is_valid_sample(self, point: Vector, d_sq: Optional[float] = None) -> bool:
        """
        True iff no stored sample lies strictly closer than sqrt(d_sq).

        Args:
            point: Candidate point
            d_sq: Squared separation distance (default dsep squared)
        """
        if d_sq is None:
            d_sq = self.dsep * self.dsep
        radius_cells = max(1, math.ceil(math.sqrt(d_sq) / self.dsep))

        for samples in self._cells_around(point, radius_cells):
            for sample in samples:
                if point.distance_to_sq(sample) < d_sq:
                    return False
        return True

    def get_nearby_points(self, point: Vector, distance: float) -> List[Vector]:
        """All stored samples within distance of point."""
        radius_cells = max(1, math.ceil(distance / self.dsep))
        distance_sq = distance * distance

        nearby = []
        for samples in self._cells_around(point, radius_cells):
            for sample in samples:
                if point.distance_to_sq(sample) <= distance_sq:
                    nearby.append(sample)
        return nearby


class SegmentIndex:
    """
    Spatial index for fast segment intersection queries.
    """

    def __init__(self):
        """Initialize empty spatial index."""
        self.segments: List[LineString] = []
        self.tree: Optional[STRtree] = None

    def __len__(self) -> int:
        return len(self.segments)

    def add_segment(self, start: Vector, end: Vector) -> int:
        """
        Add segment to spatial index.

        Args:
            start: Segment start
            end: Segment end

        Returns:
            Segment index
        """
        self.segments.append(LineString([(start.x, start.y), (end.x, end.y)]))
        # Rebuild tree (will be lazy rebuilt on next query)
        self.tree = None
        return len(self.segments) - 1

    def _ensure_tree(self):
        """Rebuild spatial index tree if needed."""
        if self.tree is None and self.segments:
            self.tree = STRtree(self.segments)

    def query(self, line: LineString) -> List[int]:
        """Indices of segments whose bounding boxes meet line."""
        self._ensure_tree()
        if not self.segments:
            return []
        return [int(i) for i in self.tree.query(line)]

    def find_intersections(self) -> List[Tuple[Vector, int, int]]:
        """
        Every point where two indexed segments meet.

        Collinear overlaps report both ends of the shared piece.

        Returns:
            List of (point, segment_i, segment_j) with i < j
        """
        intersections = []
        for i, segment in enumerate(self.segments):
            for j in self.query(segment):
                if j <= i:
                    continue
                other = self.segments[j]
                if not segment.intersects(other):
                    continue
                for point in _intersection_points(segment.intersection(other)):
                    intersections.append((point, i, j))
        return intersections


def _intersection_points(geometry) -> List[Vector]:
    if geometry.is_empty:
        return []
    if geometry.geom_type == "Point":
        return [Vector(geometry.x, geometry.y)]
    if geometry.geom_type == "LineString":
        coords = list(geometry.coords)
        return [Vector(*coords[0]), Vector(*coords[-1])]
    points = []
    for part in getattr(geometry, "geoms", []):
        points.extend(_intersection_points(part))
    return points
