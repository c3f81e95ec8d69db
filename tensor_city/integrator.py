"""
Numerical integration of the field's eigenvector directions.
"""

from typing import Optional

from .field import FieldSnapshot
from .tensor import align
from .vector import Vector


class FieldIntegrator:
    """Turns a field snapshot into step vectors of length ``dstep``."""

    def __init__(self, field: FieldSnapshot, dstep: float):
        """
        Initialize integrator.

        Args:
            field: Field snapshot sampled on every step
            dstep: Integration step length
        """
        self.field = field
        self.dstep = dstep

    def sample_field_vector(self, point: Vector, major: bool) -> Vector:
        """Unit eigenvector at point (zero at degenerate points)."""
        return self.field.sample(point).eigenvector(major)

    def on_land(self, point: Vector) -> bool:
        return self.field.on_land(point)

    def integrate(
        self,
        point: Vector,
        major: bool,
        previous: Optional[Vector] = None
    ) -> Vector:
        """
        One integration step from point.

        Args:
            point: Start of the step
            major: Follow the major (True) or minor (False) eigenvector
            previous: Previous step direction used to resolve the sign

        Returns:
            Step vector; near-zero length at degenerate points
        """
        raise NotImplementedError


class EulerIntegrator(FieldIntegrator):
    """Single-sample integrator."""

    def integrate(self, point, major, previous=None):
        k1 = self.sample_field_vector(point, major)
        if previous is not None:
            k1 = align(k1, previous)
        return k1 * self.dstep


class RK4Integrator(FieldIntegrator):
    """Fourth-order Runge-Kutta integrator.

    Every stencil sample is sign-aligned with the first one, which is itself
    aligned with the caller's previous direction, so the four samples never
    cancel each other out across the eigenvector sign flip.
    """

    def integrate(self, point, major, previous=None):
        k1 = self.sample_field_vector(point, major)
        if k1.length_sq() == 0:
            return Vector.zero()
        if previous is not None:
            k1 = align(k1, previous)

        half = self.dstep / 2
        k2 = align(self.sample_field_vector(point + k1 * half, major), k1)
        k3 = align(self.sample_field_vector(point + k2 * half, major), k1)
        k4 = align(self.sample_field_vector(point + k3 * self.dstep, major), k1)

        return (k1 + k2 * 2 + k3 * 2 + k4) * (self.dstep / 6)


def create_integrator(name: str, field: FieldSnapshot, dstep: float) -> FieldIntegrator:
    """Integrator by config name ('rk4' or 'euler')."""
    if name == "rk4":
        return RK4Integrator(field, dstep)
    elif name == "euler":
        return EulerIntegrator(field, dstep)
    else:
        raise ValueError(f"Unknown integrator: {name}")
