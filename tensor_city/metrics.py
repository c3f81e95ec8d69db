"""
Morphology metrics of a generated road network and its lots.
"""

import math
from collections import Counter
from typing import Dict, Sequence, Tuple

import networkx as nx
import numpy as np
from scipy.stats import entropy

from .graph import RoadGraph
from .polygons import polygon_area
from .vector import Vector


def calculate_bearing(p1: Tuple[float, float], p2: Tuple[float, float]) -> float:
    """Bearing in degrees [0, 180) of the segment from p1 to p2."""
    bearing = math.degrees(math.atan2(p2[1] - p1[1], p2[0] - p1[0]))

    # Roads have no direction
    if bearing < 0:
        bearing += 180
    if bearing >= 180:
        bearing -= 180

    return bearing


def compute_entropy(histogram_counts: np.ndarray) -> float:
    """Shannon entropy (bits) of a histogram; 0 for an empty one."""
    if np.sum(histogram_counts) == 0:
        return 0.0
    return float(entropy(histogram_counts, base=2))


class MorphologyMetrics:
    """Compute urban morphology metrics."""

    @staticmethod
    def compute_node_density(graph: nx.Graph, area_m2: float) -> float:
        """
        Compute node density (nodes per km²).

        Args:
            graph: NetworkX graph
            area_m2: Area of the generated window in square meters

        Returns:
            Node density
        """
        if area_m2 <= 0:
            return 0.0
        return graph.number_of_nodes() / (area_m2 / 1e6)

    @staticmethod
    def compute_degree_distribution(graph: nx.Graph) -> Dict[int, int]:
        """Map degree -> number of nodes with that degree."""
        return dict(Counter(d for _, d in graph.degree()))

    @staticmethod
    def compute_segment_lengths(graph: nx.Graph, pos: dict) -> Dict[str, float]:
        """
        Summarise edge lengths.

        Args:
            graph: NetworkX graph
            pos: Node positions {node_id: (x, y)}

        Returns:
            Dict with mean and max edge length (0 for an empty graph)
        """
        lengths = [
            float(np.linalg.norm(np.array(pos[u]) - np.array(pos[v])))
            for u, v in graph.edges()
        ]
        if not lengths:
            return {"mean": 0.0, "max": 0.0}
        return {"mean": float(np.mean(lengths)), "max": float(np.max(lengths))}

    @staticmethod
    def compute_dead_end_ratio(graph: nx.Graph) -> float:
        """Ratio [0, 1] of degree-1 nodes."""
        if graph.number_of_nodes() == 0:
            return 0.0

        dead_ends = sum(1 for _, d in graph.degree() if d == 1)
        return dead_ends / graph.number_of_nodes()

    @staticmethod
    def compute_orientation_entropy(graph: nx.Graph, pos: dict, num_bins: int = 18) -> float:
        """Entropy of the edge bearing histogram over [0, 180)."""
        bearings = [calculate_bearing(pos[u], pos[v]) for u, v in graph.edges()]
        if not bearings:
            return 0.0
        counts, _ = np.histogram(bearings, bins=num_bins, range=(0, 180))
        return compute_entropy(counts)

    @staticmethod
    def compute_all_morphology(
        road_graph: RoadGraph,
        area_m2: float,
        num_orientation_bins: int = 18
    ) -> Dict:
        """
        Compute all morphology metrics.

        Args:
            road_graph: Generated road graph
            area_m2: Window area
            num_orientation_bins: Number of orientation bins

        Returns:
            Dict with all morphology metrics
        """
        graph = road_graph.graph
        pos = road_graph.pos

        return {
            "node_density": MorphologyMetrics.compute_node_density(graph, area_m2),
            "degree_distribution": MorphologyMetrics.compute_degree_distribution(graph),
            "dead_end_ratio": MorphologyMetrics.compute_dead_end_ratio(graph),
            "segment_lengths": MorphologyMetrics.compute_segment_lengths(graph, pos),
            "intersections": len(road_graph.intersections),
            "orientation_entropy": MorphologyMetrics.compute_orientation_entropy(
                graph, pos, num_orientation_bins
            ),
        }


def compute_polygon_stats(polygons: Sequence[Sequence[Vector]]) -> Dict:
    """
    Area statistics of blocks or lots.

    Returns:
        Dict with count, total, mean, min and max area
    """
    areas = [polygon_area(p) for p in polygons]
    if not areas:
        return {"count": 0, "total_area": 0.0, "mean_area": 0.0, "min_area": 0.0, "max_area": 0.0}

    return {
        "count": len(areas),
        "total_area": float(np.sum(areas)),
        "mean_area": float(np.mean(areas)),
        "min_area": float(np.min(areas)),
        "max_area": float(np.max(areas)),
    }
