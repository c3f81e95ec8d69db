"""Tests for the planar road graph."""

import pytest
from shapely.geometry import LineString

from tensor_city.graph import RoadGraph, build_graph
from tensor_city.vector import Vector


def V(x, y):
    return Vector(float(x), float(y))


def assert_planar(road_graph):
    """No two edges cross away from their shared nodes."""
    edges = list(road_graph.graph.edges())
    for i, (a, b) in enumerate(edges):
        line_a = LineString([road_graph.pos[a], road_graph.pos[b]])
        for c, d in edges[i + 1:]:
            if {a, b} & {c, d}:
                continue
            line_b = LineString([road_graph.pos[c], road_graph.pos[d]])
            assert not line_a.intersects(line_b), (a, b, c, d)


def test_crossing_lines_split_at_intersection():
    graph = build_graph([[V(0, 5), V(10, 5)], [V(5, 0), V(5, 10)]], 0.001)
    assert graph.number_of_nodes() == 5
    assert graph.number_of_edges() == 4
    assert len(graph.intersections) == 1
    assert graph.intersections[0].x == pytest.approx(5)
    centre = [n for n in graph.graph.nodes() if graph.graph.degree(n) == 4]
    assert len(centre) == 1


def test_polyline_vertices_become_chain():
    graph = build_graph([[V(0, 0), V(1, 0), V(2, 0), V(3, 1)]], 0.001)
    assert graph.number_of_nodes() == 4
    assert graph.number_of_edges() == 3
    assert graph.intersections == []


def test_near_coincident_points_are_snapped():
    graph = build_graph([[V(0, 0), V(10, 0)], [V(10.0004, 0.0003), V(10, 10)]], 0.001)
    assert graph.number_of_nodes() == 3
    assert graph.number_of_edges() == 2


def test_t_junction():
    graph = build_graph([[V(0, 0), V(10, 0)], [V(5, 10), V(5, 0)]], 0.001)
    assert graph.number_of_nodes() == 4
    assert graph.number_of_edges() == 3
    assert len(graph.intersections) == 1


def test_grid_of_roads_is_planar():
    roads = [[V(0, y), V(50, y)] for y in (10, 20, 30, 40)]
    roads += [[V(x, 0), V(x, 50)] for x in (10, 20, 30, 40)]
    graph = build_graph(roads, 0.001)
    assert len(graph.intersections) == 16
    # 16 crossings plus 16 road ends
    assert graph.number_of_nodes() == 32
    assert graph.number_of_edges() == 8 * 5
    assert_planar(graph)


def test_zero_length_segments_are_ignored():
    graph = build_graph([[V(0, 0), V(0, 0), V(5, 0)]], 0.001)
    assert graph.number_of_nodes() == 2
    assert graph.number_of_edges() == 1


def test_closed_loop():
    square = [V(0, 0), V(10, 0), V(10, 10), V(0, 10), V(0, 0)]
    graph = build_graph([square], 0.001)
    assert graph.number_of_nodes() == 4
    assert graph.number_of_edges() == 4
    assert all(d == 2 for _, d in graph.graph.degree())


def test_delete_dangling():
    roads = [[V(0, 0), V(10, 0), V(10, 10), V(0, 10), V(0, 0)], [V(10, 5), V(20, 5), V(25, 5)]]
    graph = build_graph(roads, 0.001)
    assert graph.number_of_nodes() == 7
    pruned = graph.without_dangling()
    assert pruned.number_of_nodes() == 5
    assert graph.number_of_nodes() == 7

    removed = graph.delete_dangling()
    assert removed == 2
    assert set(graph.pos) == set(graph.graph.nodes())


def test_graph_copies_positions():
    roads = [[V(0, 0), V(3, 4)]]
    graph = build_graph(roads, 0.001)
    assert sorted(graph.pos.values()) == [(0.0, 0.0), (3.0, 4.0)]
    (_, _, data), = graph.graph.edges(data=True)
    assert data["length"] == pytest.approx(5.0)


def test_empty_graph():
    graph = build_graph([], 0.001)
    assert isinstance(graph, RoadGraph)
    assert len(graph) == 0
