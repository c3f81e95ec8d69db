"""
Tensor field built from grid and radial basis fields.

``TensorField`` is the editable collection of primitives and exclusion
regions. Every generation pass works on a ``FieldSnapshot``: an immutable
copy that answers "tensor at point" by summing all primitives on every
query, so editing the field never disturbs a pass in progress.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Sequence, Tuple

import noise

from .config import NoiseParams
from .polygons import PolygonRegion
from .tensor import Tensor
from .vector import Vector


@dataclass(frozen=True)
class BasisField:
    """Field primitive centred on a point, fading with distance."""

    centre: Vector
    size: float
    decay: float

    def get_tensor(self, point: Vector) -> Tensor:
        raise NotImplementedError

    def get_tensor_weight(self, point: Vector, smooth: bool) -> float:
        """
        Weight of this primitive at point.

        Sharp weighting is ``(1 - d)^decay`` inside the primitive's size and
        zero outside; smooth weighting is ``d^-decay`` everywhere, where d
        is the distance to the centre divided by size.
        """
        norm_distance = (point - self.centre).length() / self.size
        if smooth:
            return max(norm_distance, 1e-6) ** -self.decay
        # Avoid 0^0
        if self.decay == 0 and norm_distance >= 1:
            return 0.0
        return max(0.0, 1.0 - norm_distance) ** self.decay

    def get_weighted_tensor(self, point: Vector, smooth: bool) -> Tensor:
        return self.get_tensor(point).scale(self.get_tensor_weight(point, smooth))

    def moved_to(self, centre: Vector) -> "BasisField":
        return replace(self, centre=centre)


@dataclass(frozen=True)
class GridField(BasisField):
    """Uniform grid oriented at theta (radians)."""

    theta: float = 0.0

    def get_tensor(self, point: Vector) -> Tensor:
        return Tensor.from_angle(self.theta)


@dataclass(frozen=True)
class RadialField(BasisField):
    """Concentric circles (major) and spokes (minor) around the centre."""

    def get_tensor(self, point: Vector) -> Tensor:
        t = point - self.centre
        return Tensor(t.y * t.y - t.x * t.x, -2 * t.x * t.y).normalized()


@dataclass(frozen=True, eq=False)
class FieldSnapshot:
    """Immutable view of a tensor field for one generation pass."""

    basis_fields: Tuple[BasisField, ...] = ()
    sea: PolygonRegion = field(default_factory=PolygonRegion)
    river: PolygonRegion = field(default_factory=PolygonRegion)
    parks: PolygonRegion = field(default_factory=PolygonRegion)
    noise_params: NoiseParams = field(default_factory=NoiseParams)
    ignore_river: bool = False
    smooth: bool = False
    noise_base: int = 0

    def sample(self, point: Vector) -> Tensor:
        """Summed tensor at point; the zero tensor off land."""
        if not self.on_land(point):
            return Tensor.zero()

        # Default field is a horizontal grid
        if not self.basis_fields:
            return Tensor.from_angle(0.0)

        tensor = Tensor.zero()
        for basis in self.basis_fields:
            tensor = tensor.add(basis.get_weighted_tensor(point, self.smooth))

        if self.parks and self.parks.contains(point):
            tensor = tensor.rotate(self.rotational_noise(
                point,
                self.noise_params.noise_size_park,
                self.noise_params.noise_angle_park,
            ))

        if self.noise_params.global_noise:
            tensor = tensor.rotate(self.rotational_noise(
                point,
                self.noise_params.noise_size_global,
                self.noise_params.noise_angle_global,
            ))

        return tensor

    def rotational_noise(self, point: Vector, noise_size: float, noise_angle: float) -> float:
        """Noise-driven rotation in radians; noise_angle is in degrees."""
        value = noise.pnoise2(point.x / noise_size, point.y / noise_size, base=self.noise_base)
        return value * noise_angle * math.pi / 180

    def on_land(self, point: Vector) -> bool:
        if self.sea.contains(point):
            return False
        if self.ignore_river:
            return True
        return not self.river.contains(point)

    def in_parks(self, point: Vector) -> bool:
        return self.parks.contains(point)

    def with_parks(self, parks: Iterable[Sequence[Vector]]) -> "FieldSnapshot":
        return replace(self, parks=PolygonRegion(parks))

    def with_ignore_river(self, ignore_river: bool) -> "FieldSnapshot":
        return replace(self, ignore_river=ignore_river)


class TensorField:
    """
    Editable set of basis fields and exclusion regions.

    Nothing is cached: ``sample_point`` recomputes the tensor from the
    current primitives on every call, and ``snapshot`` freezes the current
    state for a generation pass.
    """

    def __init__(
        self,
        noise_params: Optional[NoiseParams] = None,
        smooth: bool = False,
        seed: int = 0
    ):
        self.noise_params = noise_params or NoiseParams()
        self.smooth = smooth
        self.noise_base = seed % 256

        self.basis_fields: List[BasisField] = []
        self.sea: List[List[Vector]] = []
        self.river: List[List[Vector]] = []
        self.parks: List[List[Vector]] = []
        self.ignore_river = False

    def add_grid(self, centre: Vector, size: float, decay: float, theta: float) -> GridField:
        grid = GridField(centre, size, decay, theta)
        self.add_field(grid)
        return grid

    def add_radial(self, centre: Vector, size: float, decay: float) -> RadialField:
        radial = RadialField(centre, size, decay)
        self.add_field(radial)
        return radial

    def add_field(self, basis: BasisField) -> None:
        if basis.size <= 0:
            raise ValueError(f"Basis field size must be positive, got {basis.size}")
        self.basis_fields.append(basis)

    def remove_field(self, basis: BasisField) -> None:
        self.basis_fields.remove(basis)

    def move_field(self, basis: BasisField, centre: Vector) -> BasisField:
        """Replace basis with a copy centred at centre and return the copy."""
        index = self.basis_fields.index(basis)
        moved = basis.moved_to(centre)
        self.basis_fields[index] = moved
        return moved

    def reset(self) -> None:
        self.basis_fields = []
        self.sea = []
        self.river = []
        self.parks = []
        self.ignore_river = False

    def snapshot(self) -> FieldSnapshot:
        return FieldSnapshot(
            basis_fields=tuple(self.basis_fields),
            sea=PolygonRegion(self.sea),
            river=PolygonRegion(self.river),
            parks=PolygonRegion(self.parks),
            noise_params=replace(self.noise_params),
            ignore_river=self.ignore_river,
            smooth=self.smooth,
            noise_base=self.noise_base,
        )

    def sample_point(self, point: Vector) -> Tensor:
        return self.snapshot().sample(point)

    def on_land(self, point: Vector) -> bool:
        return self.snapshot().on_land(point)
