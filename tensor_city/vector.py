"""
Immutable 2D vector used for every point and direction in the pipeline.
"""

import math
from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class Vector:
    """2D point / direction with the usual vector algebra.

    Instances are immutable, so a vector can be shared between a streamline,
    a spatial index and a graph node without aliasing bugs.
    """

    x: float
    y: float

    @staticmethod
    def zero() -> "Vector":
        return Vector(0.0, 0.0)

    @staticmethod
    def from_angle(angle: float, length: float = 1.0) -> "Vector":
        return Vector(math.cos(angle) * length, math.sin(angle) * length)

    @staticmethod
    def angle_between(v1: "Vector", v2: "Vector") -> float:
        """Signed angle from v1 to v2 in (-pi, pi]."""
        angle = v2.angle() - v1.angle()
        if angle > math.pi:
            angle -= 2 * math.pi
        elif angle <= -math.pi:
            angle += 2 * math.pi
        return angle

    def __add__(self, other: "Vector") -> "Vector":
        return Vector(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Vector") -> "Vector":
        return Vector(self.x - other.x, self.y - other.y)

    def __mul__(self, scalar: float) -> "Vector":
        return Vector(self.x * scalar, self.y * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar: float) -> "Vector":
        return Vector(self.x / scalar, self.y / scalar)

    def __neg__(self) -> "Vector":
        return Vector(-self.x, -self.y)

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y

    def dot(self, other: "Vector") -> float:
        return self.x * other.x + self.y * other.y

    def length_sq(self) -> float:
        return self.x * self.x + self.y * self.y

    def length(self) -> float:
        return math.hypot(self.x, self.y)

    def angle(self) -> float:
        return math.atan2(self.y, self.x)

    def distance_to_sq(self, other: "Vector") -> float:
        dx = self.x - other.x
        dy = self.y - other.y
        return dx * dx + dy * dy

    def distance_to(self, other: "Vector") -> float:
        return math.sqrt(self.distance_to_sq(other))

    def normalize(self) -> "Vector":
        """Unit vector in the same direction; the zero vector stays zero."""
        length = self.length()
        if length == 0:
            return Vector.zero()
        return Vector(self.x / length, self.y / length)

    def set_length(self, length: float) -> "Vector":
        return self.normalize() * length

    def rotate(self, angle: float) -> "Vector":
        """Rotate counterclockwise by angle (radians)."""
        if angle == 0:
            return self
        c = math.cos(angle)
        s = math.sin(angle)
        return Vector(self.x * c - self.y * s, self.x * s + self.y * c)

    def perpendicular(self) -> "Vector":
        return Vector(-self.y, self.x)

    def lerp(self, other: "Vector", t: float) -> "Vector":
        return Vector(self.x + (other.x - self.x) * t, self.y + (other.y - self.y) * t)
