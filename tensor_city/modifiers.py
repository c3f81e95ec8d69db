"""
Realism modifiers applied to every streamline integration step.

Each modifier turns the step direction a little; all of them are composed
by adding angles, then the terrain nudge is added as a vector and the
result is rescaled to the original step length.
"""

import math
import random
from typing import Optional

import noise

from .config import StreamlineParams
from .vector import Vector


class DirectionModifiers:
    """Noise perturbation, terrain avoidance, historical layering and bias."""

    def __init__(
        self,
        params: StreamlineParams,
        centre: Vector,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize modifiers.

        Args:
            params: Tier parameters (enable flags and strengths)
            centre: Historical city centre
            rng: Random source picking the three noise layers
        """
        rng = rng or random.Random()
        self.params = params
        self.centre = centre
        self.perturbation_base = rng.randint(0, 255)
        self.terrain_base = rng.randint(0, 255)
        self.bias_base = rng.randint(0, 255)

    @property
    def enabled(self) -> bool:
        p = self.params
        return (p.enable_path_perturbation or p.enable_terrain_influence
                or p.enable_directional_bias)

    def path_perturbation(self, point: Vector) -> float:
        """Multi-octave noise angle in radians, within about +-pi/4 * strength."""
        if not self.params.enable_path_perturbation:
            return 0.0

        scale = self.params.perturbation_frequency
        amplitude = self.params.perturbation_strength
        frequency = 1.0
        perturbation = 0.0

        for _ in range(self.params.perturbation_octaves):
            perturbation += noise.pnoise2(
                point.x / scale * frequency,
                point.y / scale * frequency,
                base=self.perturbation_base,
            ) * amplitude
            amplitude *= 0.5
            frequency *= 2

        return perturbation * math.pi / 4

    def terrain_influence(self, point: Vector) -> Vector:
        """
        Nudge along the contour where the terrain noise is steep.

        The terrain is a second noise layer read as elevation; its gradient
        is estimated by forward differences half a step away.
        """
        if not self.params.enable_terrain_influence:
            return Vector.zero()

        scale = self.params.terrain_noise_scale
        offset = self.params.dstep * 0.5
        height = noise.pnoise2(point.x / scale, point.y / scale, base=self.terrain_base)
        grad_x = noise.pnoise2(
            (point.x + offset) / scale, point.y / scale, base=self.terrain_base
        ) - height
        grad_y = noise.pnoise2(
            point.x / scale, (point.y + offset) / scale, base=self.terrain_base
        ) - height

        gradient = Vector(grad_x, grad_y) / (offset / scale)
        if gradient.length() > self.params.terrain_steepness_threshold:
            return gradient.perpendicular().set_length(self.params.terrain_influence_strength)

        return Vector.zero()

    def historical_strength(self, point: Vector) -> float:
        """Perturbation multiplier: high in the old centre, low at the edge."""
        if not self.params.enable_historical_layers:
            return 1.0

        inner = self.params.historical_layer_radius
        outer = self.params.modern_layer_start
        distance = point.distance_to(self.centre)

        if distance < inner:
            return self.params.old_city_perturbation
        if distance > outer or outer <= inner:
            return self.params.modern_city_perturbation

        t = (distance - inner) / (outer - inner)
        return self.params.old_city_perturbation * (1 - t) + self.params.modern_city_perturbation * t

    def directional_bias(self, point: Vector) -> float:
        """Bias angle masked by coherent noise so it varies across the plane."""
        if not self.params.enable_directional_bias:
            return 0.0

        scale = self.params.bias_noise_scale
        value = noise.pnoise2(point.x / scale, point.y / scale, base=self.bias_base)
        strength = self.params.bias_strength * (value * 0.5 + 0.5)
        return self.params.bias_direction * strength

    def apply(self, point: Vector, direction: Vector) -> Vector:
        """Modified direction with the same length as direction."""
        if not self.enabled:
            return direction

        angle = self.path_perturbation(point) * self.historical_strength(point)
        angle += self.directional_bias(point)

        modified = direction.rotate(angle) + self.terrain_influence(point)
        if modified.length_sq() == 0:
            return direction
        return modified.set_length(direction.length())
