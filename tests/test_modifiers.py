"""Tests for the direction modifiers applied while tracing."""

import math
import random
from dataclasses import replace

import pytest

from tensor_city.config import StreamlineParams
from tensor_city.modifiers import DirectionModifiers
from tensor_city.validation import NetworkValidator
from tensor_city.config import GeneratorConfig
from tensor_city.vector import Vector

from .conftest import CENTRE, make_tracer


def modifiers(**overrides):
    return DirectionModifiers(StreamlineParams(**overrides), Vector(0, 0), random.Random(1))


def test_disabled_modifiers_leave_direction_alone():
    m = modifiers()
    assert not m.enabled
    d = Vector(0.3, 0.4)
    assert m.apply(Vector(12.5, 7.25), d) is d


def test_perturbation_keeps_step_length():
    m = modifiers(enable_path_perturbation=True, perturbation_strength=1.0, perturbation_frequency=20.0)
    d = Vector(1, 0)
    angles = []
    for i in range(20):
        point = Vector(3.7 * i + 0.3, 2.9 * i + 0.6)
        out = m.apply(point, d)
        assert out.length() == pytest.approx(1.0)
        angles.append(abs(out.angle()))
    assert max(angles) > 0
    # Octave sum stays within about strength * pi / 4 * (1 + 1/2)
    assert max(angles) < math.pi / 4 * 1.5 * 1.2


def test_terrain_influence_is_perpendicular_to_gradient():
    m = modifiers(
        enable_terrain_influence=True,
        terrain_noise_scale=10.0,
        terrain_steepness_threshold=0.0,
        terrain_influence_strength=0.5,
    )
    nudge = m.terrain_influence(Vector(3.3, 4.4))
    assert nudge.length() == pytest.approx(0.5)


def test_terrain_below_threshold_has_no_effect():
    m = modifiers(enable_terrain_influence=True, terrain_steepness_threshold=1e9)
    assert m.terrain_influence(Vector(3.3, 4.4)) == Vector.zero()


def test_historical_strength_interpolates():
    m = modifiers(
        enable_historical_layers=True,
        historical_layer_radius=100.0,
        modern_layer_start=300.0,
        old_city_perturbation=2.0,
        modern_city_perturbation=0.0,
    )
    assert m.historical_strength(Vector(50, 0)) == pytest.approx(2.0)
    assert m.historical_strength(Vector(200, 0)) == pytest.approx(1.0)
    assert m.historical_strength(Vector(400, 0)) == pytest.approx(0.0)
    assert modifiers().historical_strength(Vector(50, 0)) == 1.0


def test_directional_bias_is_masked_by_noise():
    m = modifiers(enable_directional_bias=True, bias_direction=1.0, bias_strength=0.5, bias_noise_scale=10.0)
    values = [m.directional_bias(Vector(1.3 * i + 0.2, 0.7 * i + 0.4)) for i in range(20)]
    assert all(0 <= v <= 0.5 + 1e-9 for v in values)
    assert max(values) - min(values) > 0


def test_tracing_with_modifiers_keeps_invariants(radial_field, minor_params):
    params = replace(
        minor_params,
        enable_path_perturbation=True,
        perturbation_strength=0.3,
        perturbation_frequency=60.0,
        enable_directional_bias=True,
        enable_historical_layers=True,
        historical_layer_radius=30.0,
        modern_layer_start=90.0,
    )
    tracer = make_tracer(radial_field.snapshot(), params)
    assert tracer.modifiers.centre == CENTRE
    tracer.generate()

    result = NetworkValidator(GeneratorConfig()).check_tier(tracer)
    assert result["streamlines"] > 0
    assert result["separation_violations"] == 0
    assert result["self_collisions"] == 0
