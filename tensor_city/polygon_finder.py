"""
Block and lot extraction from the road graph.
"""

import logging
import math
import random
from typing import Dict, Iterator, List, Optional, Set, Tuple

from .config import PolygonParams
from .field import FieldSnapshot
from .graph import RoadGraph
from .polygons import (
    Ring,
    average_point,
    is_simple_polygon,
    shrink_polygon,
    signed_area,
    subdivide_polygon,
)

logger = logging.getLogger(__name__)

# Relative turn angles at or below this count as turning straight back
ANGLE_EPSILON = 1e-9


class PolygonFinder:
    """
    Finds the faces of a planar road graph and turns them into lots.

    Faces are traced by always taking the rightmost turn, which walks every
    bounded face clockwise; the single counterclockwise walk is the outer
    face and is dropped. Shrinking and dividing are queued work that can be
    run all at once or one polygon per ``update()``.
    """

    def __init__(
        self,
        graph: RoadGraph,
        params: PolygonParams,
        field: Optional[FieldSnapshot] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize finder.

        Args:
            graph: Road graph; dead ends are pruned on a private copy
            params: Shrink/divide parameters
            field: Snapshot used to drop blocks in water or parks
            rng: Random source for divisions
        """
        self.graph = graph.without_dangling()
        self.params = params
        self.field = field
        self.rng = rng or random.Random()

        self._sorted_neighbors = self._sort_neighbors()
        self.blocks: List[Ring] = []
        self.shrunk: List[Ring] = []
        self.divided: List[Ring] = []
        self._work: Optional[Iterator[None]] = None

    @property
    def polygons(self) -> List[Ring]:
        """Most processed result available: lots, else shrunk blocks, else blocks."""
        if self.divided:
            return self.divided
        if self.shrunk:
            return self.shrunk
        return self.blocks

    def reset(self) -> None:
        self.blocks = []
        self.shrunk = []
        self.divided = []
        self._work = None

    # ------------------------------------------------------------------
    # Face tracing
    # ------------------------------------------------------------------

    def _sort_neighbors(self) -> Dict[int, List[Tuple[float, int]]]:
        ordered = {}
        for node in self.graph.graph.nodes():
            here = self.graph.position(node)
            entries = []
            for neighbor in self.graph.neighbors(node):
                there = self.graph.position(neighbor)
                entries.append((math.atan2(there.y - here.y, there.x - here.x), neighbor))
            ordered[node] = entries
        return ordered

    def _rightmost(self, previous: int, current: int) -> Optional[int]:
        """
        Next node when turning as far right as possible.

        The turn is measured counterclockwise from the edge back to
        previous; the smallest turn wins, ties go to the smaller node id.
        """
        here = self.graph.position(current)
        there = self.graph.position(previous)
        back_angle = math.atan2(there.y - here.y, there.x - here.x)

        best = None
        best_key = None
        for angle, neighbor in self._sorted_neighbors[current]:
            relative = (angle - back_angle) % (2 * math.pi)
            if relative <= ANGLE_EPSILON:
                relative = 2 * math.pi
            key = (relative, neighbor)
            if best_key is None or key < best_key:
                best_key = key
                best = neighbor
        return best

    def _trace_face(
        self,
        start: int,
        second: int,
        visited: Set[Tuple[int, int]]
    ) -> Optional[List[int]]:
        """Walk one face from the directed edge start->second."""
        visited.add((start, second))
        face = [start]
        seen = {start}
        previous, current = start, second

        while current != start:
            if current in seen or len(face) >= self.params.max_polygon_nodes:
                return None
            face.append(current)
            seen.add(current)

            following = self._rightmost(previous, current)
            if following is None:
                return None
            visited.add((current, following))
            previous, current = current, following

        # Pinched faces come back through start on a different edge
        if self._rightmost(previous, start) != second:
            return None
        return face

    def find_polygons(self) -> List[Ring]:
        """
        Trace all bounded faces of the graph as blocks.

        Blocks come out counterclockwise. Blocks whose average point is in
        water or inside a park are dropped when a field snapshot was given.
        """
        self.reset()
        visited: Set[Tuple[int, int]] = set()

        for u, v in self.graph.graph.edges():
            for start, second in ((u, v), (v, u)):
                if (start, second) in visited:
                    continue
                face = self._trace_face(start, second, visited)
                if face is None or len(face) < 3:
                    continue

                ring = [self.graph.position(n) for n in face]
                if signed_area(ring) >= 0:
                    # Outer face
                    continue
                ring.reverse()
                if not is_simple_polygon(ring):
                    continue
                if not self._keep_block(ring):
                    continue
                self.blocks.append(ring)

        logger.info("Found %d blocks", len(self.blocks))
        return self.blocks

    def _keep_block(self, ring: Ring) -> bool:
        if self.field is None:
            return True
        centre = average_point(ring)
        return self.field.on_land(centre) and not self.field.in_parks(centre)

    # ------------------------------------------------------------------
    # Shrinking and dividing
    # ------------------------------------------------------------------

    def shrink(self, stepwise: bool = False) -> None:
        """Offset every block inward by shrink_spacing."""
        self.shrunk = []
        self.divided = []
        self._work = self._iter_shrink()
        if not stepwise:
            self.run_to_completion()

    def divide(self, stepwise: bool = False) -> None:
        """Subdivide every shrunk block (or every block if none) into lots."""
        self.divided = []
        self._work = self._iter_divide()
        if not stepwise:
            self.run_to_completion()

    def update(self) -> bool:
        """Process one polygon of the queued work; False once finished."""
        if self._work is None:
            return False
        try:
            next(self._work)
            return True
        except StopIteration:
            self._work = None
            return False

    def run_to_completion(self) -> None:
        while self.update():
            pass

    def _iter_shrink(self) -> Iterator[None]:
        for block in self.blocks:
            self.shrunk.extend(shrink_polygon(block, self.params.shrink_spacing))
            yield
        logger.info("Shrunk %d blocks into %d polygons", len(self.blocks), len(self.shrunk))

    def _iter_divide(self) -> Iterator[None]:
        queue = list(self.shrunk or self.blocks)
        for polygon in queue:
            self.divided.extend(subdivide_polygon(
                polygon,
                self.params.max_length,
                self.params.min_area,
                self.rng,
                self.params.chance_no_divide,
            ))
            yield
        logger.info("Divided %d polygons into %d lots", len(queue), len(self.divided))
