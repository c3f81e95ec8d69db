"""Tests for Vector algebra and road tensors."""

import math

import pytest

from tensor_city.tensor import Tensor, align
from tensor_city.vector import Vector


class TestVector:
    def test_arithmetic(self):
        a = Vector(1, 2)
        b = Vector(3, -1)
        assert a + b == Vector(4, 1)
        assert a - b == Vector(-2, 3)
        assert a * 2 == Vector(2, 4)
        assert 2 * a == Vector(2, 4)
        assert -a == Vector(-1, -2)
        assert a.dot(b) == 1

    def test_vectors_are_hashable_values(self):
        assert len({Vector(1, 1), Vector(1, 1), Vector(1, 2)}) == 2
        with pytest.raises(AttributeError):
            Vector(1, 1).x = 3

    def test_normalize_and_length(self):
        v = Vector(3, 4)
        assert v.length() == 5
        assert v.normalize().length() == pytest.approx(1.0)
        assert v.set_length(10).length() == pytest.approx(10.0)
        assert Vector.zero().normalize() == Vector.zero()

    def test_rotate_is_counterclockwise(self):
        v = Vector(1, 0).rotate(math.pi / 2)
        assert v.x == pytest.approx(0.0, abs=1e-12)
        assert v.y == pytest.approx(1.0)

    def test_angle_between_is_signed(self):
        assert Vector.angle_between(Vector(1, 0), Vector(0, 1)) == pytest.approx(math.pi / 2)
        assert Vector.angle_between(Vector(0, 1), Vector(1, 0)) == pytest.approx(-math.pi / 2)
        assert Vector.angle_between(Vector(-1, 0.01), Vector(-1, -0.01)) == pytest.approx(0.02, abs=1e-4)

    def test_lerp_and_distance(self):
        a = Vector(0, 0)
        b = Vector(10, 0)
        assert a.lerp(b, 0.25) == Vector(2.5, 0)
        assert a.distance_to(b) == 10
        assert a.distance_to_sq(b) == 100


class TestTensor:
    def test_major_and_minor_are_perpendicular_units(self):
        t = Tensor.from_angle(0.3)
        major = t.major()
        minor = t.minor()
        assert major.length() == pytest.approx(1.0)
        assert minor.length() == pytest.approx(1.0)
        assert major.dot(minor) == pytest.approx(0.0, abs=1e-12)
        assert major.angle() == pytest.approx(0.3)

    def test_major_matches_matrix_eigenvector(self):
        import numpy as np

        t = Tensor(0.6, -0.8)
        values, vectors = np.linalg.eigh(np.array([[t.a, t.b], [t.b, -t.a]]))
        assert values == pytest.approx([-t.r, t.r])
        largest = Vector(*vectors[:, 1])
        assert abs(largest.dot(t.major())) == pytest.approx(1.0)

    def test_degenerate_tensor_has_no_direction(self):
        t = Tensor.zero()
        assert t.is_degenerate()
        assert t.major() == Vector.zero()
        assert t.minor() == Vector.zero()
        assert Tensor(1e-12, 0).normalized().is_degenerate()

    def test_rotate_turns_eigenvectors(self):
        t = Tensor.from_angle(0.0).rotate(math.pi / 4)
        assert t.theta == pytest.approx(math.pi / 4)

    def test_opposite_grids_cancel(self):
        t = Tensor.from_angle(0.0).add(Tensor.from_angle(math.pi / 2))
        assert t.is_degenerate()


class TestAlign:
    def test_flips_opposite_direction(self):
        assert align(Vector(-1, 0), Vector(1, 0.2)) == Vector(1, 0)

    def test_keeps_same_direction(self):
        assert align(Vector(1, 0), Vector(1, 0.2)) == Vector(1, 0)

    def test_perpendicular_keeps_own_sign(self):
        assert align(Vector(0, -1), Vector(1, 0)) == Vector(0, -1)
