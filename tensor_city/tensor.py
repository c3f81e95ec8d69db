"""
Symmetric traceless 2x2 tensors.

A road tensor is stored as ``r * [[cos 2t, sin 2t], [sin 2t, -cos 2t]]``,
i.e. by its two independent components ``(a, b) = r * (cos 2t, sin 2t)``.
Its eigenvalues are ``+-r`` and the major eigenvector points along angle
``t``; the minor eigenvector is perpendicular. Eigenvectors have no sign,
so callers resolve orientation by continuity (see ``align``).
"""

import math

from .vector import Vector

# Below this norm both eigenvalues are (numerically) equal: no direction.
DEGENERATE_EPSILON = 1e-9


class Tensor:
    """Road orientation tensor."""

    __slots__ = ("a", "b")

    def __init__(self, a: float, b: float):
        self.a = a
        self.b = b

    @classmethod
    def zero(cls) -> "Tensor":
        return cls(0.0, 0.0)

    @classmethod
    def from_angle(cls, angle: float, r: float = 1.0) -> "Tensor":
        """Tensor whose major eigenvector points along angle (radians)."""
        return cls(r * math.cos(2 * angle), r * math.sin(2 * angle))

    @property
    def r(self) -> float:
        return math.hypot(self.a, self.b)

    @property
    def theta(self) -> float:
        """Angle of the major eigenvector in [-pi/2, pi/2]."""
        if self.is_degenerate():
            return 0.0
        return math.atan2(self.b, self.a) / 2

    def is_degenerate(self) -> bool:
        return self.r < DEGENERATE_EPSILON

    def add(self, other: "Tensor") -> "Tensor":
        return Tensor(self.a + other.a, self.b + other.b)

    def scale(self, s: float) -> "Tensor":
        return Tensor(self.a * s, self.b * s)

    def normalized(self) -> "Tensor":
        r = self.r
        if r < DEGENERATE_EPSILON:
            return Tensor.zero()
        return Tensor(self.a / r, self.b / r)

    def rotate(self, angle: float) -> "Tensor":
        """Rotate the eigenvectors by angle (the components turn by 2*angle)."""
        if angle == 0:
            return self
        c = math.cos(2 * angle)
        s = math.sin(2 * angle)
        return Tensor(self.a * c - self.b * s, self.a * s + self.b * c)

    def major(self) -> Vector:
        """Unit major eigenvector, or the zero vector at a degenerate point."""
        if self.is_degenerate():
            return Vector.zero()
        return Vector.from_angle(self.theta)

    def minor(self) -> Vector:
        if self.is_degenerate():
            return Vector.zero()
        return Vector.from_angle(self.theta + math.pi / 2)

    def eigenvector(self, major: bool) -> Vector:
        return self.major() if major else self.minor()

    def __repr__(self) -> str:
        return f"Tensor(a={self.a:.4f}, b={self.b:.4f})"


def align(direction: Vector, reference: Vector) -> Vector:
    """Resolve eigenvector sign ambiguity by continuity with reference.

    The direction is negated iff its dot product with the reference is
    strictly negative; a perpendicular (zero dot) or zero reference keeps
    the sample's own sign.
    """
    if direction.dot(reference) < 0:
        return -direction
    return direction
