"""
Planar road graph built from streamline polylines.

Every segment crossing becomes a node, nodes closer than the snap tolerance
are unified, and each segment is split at the nodes lying on it, so every
edge joins exactly two nodes with no interior crossing.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import networkx as nx

from .spatial_index import SampleGrid, SegmentIndex
from .vector import Vector

logger = logging.getLogger(__name__)


class RoadGraph:
    """
    Road network topology.

    Wraps a ``networkx.Graph`` whose nodes are integer ids carrying ``x``/``y``
    attributes; ``pos`` mirrors the positions the way the rest of the
    package's metrics expect them.
    """

    def __init__(self):
        self.graph = nx.Graph()
        self.pos: Dict[int, Tuple[float, float]] = {}
        self.intersections: List[Vector] = []

    def __len__(self) -> int:
        return self.graph.number_of_nodes()

    def add_node(self, point: Vector) -> int:
        node_id = self.graph.number_of_nodes()
        while node_id in self.graph:
            node_id += 1
        self.graph.add_node(node_id, x=point.x, y=point.y)
        self.pos[node_id] = (point.x, point.y)
        return node_id

    def add_edge(self, u: int, v: int) -> None:
        if u == v:
            return
        a = self.position(u)
        b = self.position(v)
        self.graph.add_edge(u, v, length=a.distance_to(b))

    def position(self, node: int) -> Vector:
        x, y = self.pos[node]
        return Vector(x, y)

    def neighbors(self, node: int) -> List[int]:
        return list(self.graph.neighbors(node))

    def number_of_nodes(self) -> int:
        return self.graph.number_of_nodes()

    def number_of_edges(self) -> int:
        return self.graph.number_of_edges()

    def delete_dangling(self) -> int:
        """
        Remove dead-end nodes until none are left.

        Returns:
            Number of nodes removed
        """
        removed = 0
        stack = [n for n, d in self.graph.degree() if d <= 1]
        while stack:
            node = stack.pop()
            if node not in self.graph or self.graph.degree(node) > 1:
                continue
            neighbors = self.neighbors(node)
            self.graph.remove_node(node)
            del self.pos[node]
            removed += 1
            stack.extend(neighbors)
        return removed

    def copy(self) -> "RoadGraph":
        other = RoadGraph()
        other.graph = self.graph.copy()
        other.pos = dict(self.pos)
        other.intersections = list(self.intersections)
        return other

    def without_dangling(self) -> "RoadGraph":
        other = self.copy()
        other.delete_dangling()
        return other


class _NodeRegistry:
    """Fuzzy point-to-node map: points within tolerance share one node."""

    def __init__(self, graph: RoadGraph, tolerance: float):
        self.graph = graph
        self.tolerance = tolerance
        self.grid = SampleGrid(max(tolerance, 1e-6))
        self.ids: Dict[Vector, int] = {}

    def find(self, point: Vector) -> Optional[int]:
        if point in self.ids:
            return self.ids[point]
        best = None
        best_distance = None
        for sample in self.grid.get_nearby_points(point, self.tolerance):
            distance = point.distance_to_sq(sample)
            if best is None or distance < best_distance:
                best = sample
                best_distance = distance
        return None if best is None else self.ids[best]

    def get_or_add(self, point: Vector) -> int:
        node = self.find(point)
        if node is None:
            node = self.graph.add_node(point)
            self.ids[point] = node
            self.grid.add_sample(point)
        return node


def build_graph(
    streamlines: Iterable[Sequence[Vector]],
    snap_tolerance: float,
    delete_dangling: bool = False
) -> RoadGraph:
    """
    Build the planar road graph.

    Args:
        streamlines: Road polylines (usually the simplified ones)
        snap_tolerance: Points closer than this become one node
        delete_dangling: Prune dead ends recursively

    Returns:
        RoadGraph with positions copied out of the polylines
    """
    road_graph = RoadGraph()
    registry = _NodeRegistry(road_graph, snap_tolerance)
    index = SegmentIndex()

    segment_ends: List[Tuple[Vector, Vector]] = []
    segment_nodes: List[Set[int]] = []

    for streamline in streamlines:
        for a, b in zip(streamline, streamline[1:]):
            if a.distance_to_sq(b) == 0:
                continue
            index.add_segment(a, b)
            segment_ends.append((a, b))
            segment_nodes.append({registry.get_or_add(a), registry.get_or_add(b)})

    seen_intersections: Set[int] = set()
    for point, i, j in index.find_intersections():
        node = registry.get_or_add(point)
        shared_end = node in _end_nodes(registry, segment_ends[i]) \
            and node in _end_nodes(registry, segment_ends[j])
        segment_nodes[i].add(node)
        segment_nodes[j].add(node)
        if not shared_end and node not in seen_intersections:
            seen_intersections.add(node)
            road_graph.intersections.append(road_graph.position(node))

    for (start, end), nodes in zip(segment_ends, segment_nodes):
        direction = end - start
        ordered = sorted(nodes, key=lambda n: (road_graph.position(n) - start).dot(direction))
        for u, v in zip(ordered, ordered[1:]):
            road_graph.add_edge(u, v)

    # Nodes that only ever merged into zero-length pieces
    road_graph.graph.remove_nodes_from([n for n, d in road_graph.graph.degree() if d == 0])
    for node in list(road_graph.pos):
        if node not in road_graph.graph:
            del road_graph.pos[node]

    if delete_dangling:
        road_graph.delete_dangling()

    logger.info(
        "Built road graph: %d nodes, %d edges, %d intersections",
        road_graph.number_of_nodes(),
        road_graph.number_of_edges(),
        len(road_graph.intersections),
    )
    return road_graph


def _end_nodes(registry: _NodeRegistry, segment: Tuple[Vector, Vector]) -> Tuple[int, int]:
    return registry.find(segment[0]), registry.find(segment[1])
