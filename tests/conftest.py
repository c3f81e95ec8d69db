"""Shared fixtures: small deterministic worlds and tracers."""

import random

import pytest

from tensor_city.config import GeneratorConfig, PolygonParams, StreamlineParams
from tensor_city.field import TensorField
from tensor_city.integrator import RK4Integrator
from tensor_city.streamlines import StreamlineGenerator
from tensor_city.vector import Vector

WORLD_SIZE = 200.0
CENTRE = Vector(WORLD_SIZE / 2, WORLD_SIZE / 2)


def square(x, y, size):
    """Counterclockwise axis-aligned square ring."""
    return [Vector(x, y), Vector(x + size, y), Vector(x + size, y + size), Vector(x, y + size)]


def make_tracer(snapshot, params, seed=1, size=WORLD_SIZE):
    """Streamline generator over a size x size world at the origin."""
    integrator = RK4Integrator(snapshot, params.dstep)
    return StreamlineGenerator(
        integrator,
        Vector.zero(),
        Vector(size, size),
        params,
        rng=random.Random(seed),
    )


@pytest.fixture
def minor_params():
    """Minor road bundle with budgets trimmed for a 200x200 world."""
    return StreamlineParams(dsep=20.0, dtest=15.0, seed_tries=100, path_iterations=600)


@pytest.fixture
def radial_field():
    field = TensorField()
    field.add_radial(CENTRE, WORLD_SIZE, 1.0)
    return field


@pytest.fixture
def grid_field():
    field = TensorField()
    field.add_grid(CENTRE, WORLD_SIZE * 2, 1.0, 0.0)
    return field


@pytest.fixture
def small_config(minor_params):
    """Config generating minor roads only in a 200x200 world."""
    return GeneratorConfig(
        seed=3,
        world_size=(WORLD_SIZE, WORLD_SIZE),
        main_params=StreamlineParams.main_roads(seed_tries=0, path_iterations=600),
        major_params=StreamlineParams.major_roads(seed_tries=0, path_iterations=600),
        minor_params=minor_params,
        polygon_params=PolygonParams(),
        num_big_parks=0,
        num_small_parks=0,
    )
