"""Tests for RK4 / Euler integration of eigenvector directions."""

import math

import pytest

from tensor_city.field import TensorField
from tensor_city.integrator import EulerIntegrator, RK4Integrator, create_integrator
from tensor_city.vector import Vector

from .conftest import square


@pytest.fixture
def diagonal_snapshot():
    field = TensorField()
    field.add_grid(Vector(0, 0), 1000, 1.0, math.pi / 4)
    return field.snapshot()


@pytest.mark.parametrize("name", ["rk4", "euler"])
def test_step_has_dstep_length_in_uniform_field(diagonal_snapshot, name):
    integrator = create_integrator(name, diagonal_snapshot, 2.0)
    step = integrator.integrate(Vector(10, 10), True)
    assert step.length() == pytest.approx(2.0)
    assert abs(step.normalize().dot(Vector.from_angle(math.pi / 4))) == pytest.approx(1.0)


def test_minor_direction_is_perpendicular(diagonal_snapshot):
    integrator = RK4Integrator(diagonal_snapshot, 1.0)
    major = integrator.integrate(Vector(10, 10), True)
    minor = integrator.integrate(Vector(10, 10), False)
    assert major.dot(minor) == pytest.approx(0.0, abs=1e-9)


def test_sign_follows_previous_direction(diagonal_snapshot):
    integrator = RK4Integrator(diagonal_snapshot, 1.0)
    previous = Vector(-1, -1)
    step = integrator.integrate(Vector(10, 10), True, previous)
    assert step.dot(previous) > 0

    flipped = integrator.integrate(Vector(10, 10), True, -previous)
    assert flipped.x == pytest.approx(-step.x)
    assert flipped.y == pytest.approx(-step.y)


def test_rk4_follows_circle_closely():
    centre = Vector(0, 0)
    field = TensorField()
    field.add_radial(centre, 1000, 0.0)
    integrator = RK4Integrator(field.snapshot(), 1.0)

    point = Vector(50, 0)
    previous = Vector(0, 1)
    for _ in range(100):
        step = integrator.integrate(point, True, previous)
        point = point + step
        previous = step

    assert point.distance_to(centre) == pytest.approx(50.0, abs=0.5)


def test_degenerate_point_gives_zero_vector():
    field = TensorField()
    field.add_radial(Vector(0, 0), 100, 1.0)
    snapshot = field.snapshot()
    assert RK4Integrator(snapshot, 1.0).integrate(Vector(0, 0), True) == Vector.zero()
    assert EulerIntegrator(snapshot, 1.0).integrate(Vector(0, 0), True).length() == 0


def test_water_gives_zero_vector_and_is_off_land():
    field = TensorField()
    field.add_grid(Vector(0, 0), 1000, 1.0, 0.0)
    field.sea.append(square(0, 0, 20))
    integrator = RK4Integrator(field.snapshot(), 1.0)
    assert not integrator.on_land(Vector(10, 10))
    assert integrator.integrate(Vector(10, 10), True) == Vector.zero()
    assert integrator.on_land(Vector(30, 30))


def test_unknown_integrator(diagonal_snapshot):
    with pytest.raises(ValueError):
        create_integrator("midpoint", diagonal_snapshot, 1.0)
