"""
Configuration management for the city generator.
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Dict, Tuple

logger = logging.getLogger(__name__)


@dataclass
class StreamlineParams:
    """Parameters of one road tier."""

    # Separation
    dsep: float = 20.0  # seed separation distance
    dtest: float = 15.0  # integration separation distance
    dstep: float = 1.0  # integration step
    dcirclejoin: float = 5.0  # distance at which two fronts close a loop
    dlookahead: float = 40.0  # dangling end search radius
    joinangle: float = 0.1  # radians

    # Budgets
    path_iterations: int = 1000
    seed_tries: int = 300

    # Output
    simplify_tolerance: float = 0.5
    collide_early: float = 0.0  # chance of testing against both grids
    min_points: int = 6
    join_dangling: bool = True
    seed_at_endpoints: bool = False

    # Path perturbation
    enable_path_perturbation: bool = False
    perturbation_strength: float = 0.2
    perturbation_frequency: float = 150.0
    perturbation_octaves: int = 2

    # Terrain avoidance
    enable_terrain_influence: bool = False
    terrain_noise_scale: float = 200.0
    terrain_influence_strength: float = 0.5
    terrain_steepness_threshold: float = 0.3

    # Historical layering
    enable_historical_layers: bool = False
    historical_layer_radius: float = 200.0
    modern_layer_start: float = 500.0
    old_city_perturbation: float = 2.0
    modern_city_perturbation: float = 0.3

    # Directional bias
    enable_directional_bias: bool = False
    bias_direction: float = 0.0  # radians
    bias_strength: float = 0.3
    bias_noise_scale: float = 200.0

    @classmethod
    def minor_roads(cls, **overrides) -> "StreamlineParams":
        return cls(**overrides)

    @classmethod
    def major_roads(cls, **overrides) -> "StreamlineParams":
        params = dict(dsep=100.0, dtest=30.0, dlookahead=200.0)
        params.update(overrides)
        return cls(**params)

    @classmethod
    def main_roads(cls, **overrides) -> "StreamlineParams":
        params = dict(dsep=400.0, dtest=200.0, dlookahead=500.0)
        params.update(overrides)
        return cls(**params)

    @classmethod
    def from_dict(cls, data: Dict) -> "StreamlineParams":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown streamline parameters: {sorted(unknown)}")
        return cls(**data)

    def normalized(self) -> "StreamlineParams":
        """
        Return a copy with inconsistent values clamped.

        Bad combinations are programmer errors, but the generator prefers a
        rough result over an abort, so they are fixed here once and logged.
        """
        if self.dsep <= 0:
            raise ValueError(f"dsep must be positive, got {self.dsep}")

        changes = {}
        dstep = self.dstep
        if dstep <= 0:
            dstep = min(1.0, self.dsep)
            changes["dstep"] = dstep
        elif dstep > self.dsep:
            dstep = self.dsep
            changes["dstep"] = dstep

        if self.dtest > self.dsep:
            changes["dtest"] = self.dsep

        if self.dcirclejoin < 2 * dstep:
            changes["dcirclejoin"] = 2 * dstep

        if not 0.0 <= self.collide_early <= 1.0:
            changes["collide_early"] = min(1.0, max(0.0, self.collide_early))

        if self.modern_layer_start < self.historical_layer_radius:
            changes["modern_layer_start"] = self.historical_layer_radius

        if self.min_points < 2:
            changes["min_points"] = 2

        if self.path_iterations < 1:
            changes["path_iterations"] = 1

        if self.simplify_tolerance < 0:
            changes["simplify_tolerance"] = 0.0

        for name, value in changes.items():
            logger.warning("Clamped %s from %s to %s", name, getattr(self, name), value)

        return replace(self, **changes) if changes else self

    def squared(self) -> Dict[str, float]:
        """Squares of the distance parameters, for squared-distance tests."""
        return {
            name: getattr(self, name) ** 2
            for name in ("dsep", "dtest", "dstep", "dcirclejoin", "dlookahead")
        }


@dataclass
class NoiseParams:
    """Rotational noise applied to the sampled field."""

    global_noise: bool = False
    noise_size_global: float = 30.0
    noise_angle_global: float = 20.0  # degrees
    noise_size_park: float = 20.0
    noise_angle_park: float = 90.0  # degrees


@dataclass
class PolygonParams:
    """Block and lot extraction parameters."""

    max_length: float = 20.0
    min_area: float = 50.0
    shrink_spacing: float = 4.0
    chance_no_divide: float = 0.05
    max_polygon_nodes: int = 250


@dataclass
class GeneratorConfig:
    """Configuration for a whole city generation pass."""

    # Reproducibility
    seed: int = 42

    # World window
    origin: Tuple[float, float] = (0.0, 0.0)
    world_size: Tuple[float, float] = (500.0, 500.0)

    # Road tiers
    main_params: StreamlineParams = field(default_factory=StreamlineParams.main_roads)
    major_params: StreamlineParams = field(default_factory=StreamlineParams.major_roads)
    minor_params: StreamlineParams = field(default_factory=StreamlineParams.minor_roads)

    # Blocks, lots and field noise
    polygon_params: PolygonParams = field(default_factory=PolygonParams)
    noise_params: NoiseParams = field(default_factory=NoiseParams)

    # Parks
    num_big_parks: int = 2
    num_small_parks: int = 0
    cluster_big_parks: bool = False

    # Lots
    building_density: float = 1.0

    # Graph building
    graph_snap_tolerance: float = 0.001

    # Scheduling
    update_budget_ms: float = 30.0
    integrator: str = "rk4"

    def __post_init__(self):
        self.origin = tuple(self.origin)
        self.world_size = tuple(self.world_size)
        if self.world_size[0] <= 0 or self.world_size[1] <= 0:
            raise ValueError(f"World size must be positive, got {self.world_size}")
        if self.integrator not in ("rk4", "euler"):
            raise ValueError(f"Unknown integrator: {self.integrator}")
        if not 0.0 <= self.building_density <= 1.0:
            logger.warning("Clamped building_density %s into [0, 1]", self.building_density)
            self.building_density = min(1.0, max(0.0, self.building_density))
        chance = self.polygon_params.chance_no_divide
        if not 0.0 <= chance <= 1.0:
            logger.warning("Clamped chance_no_divide %s into [0, 1]", chance)
            self.polygon_params = replace(
                self.polygon_params, chance_no_divide=min(1.0, max(0.0, chance))
            )

    def tier_params(self, tier: str) -> StreamlineParams:
        """Parameters of a road tier ('main', 'major' or 'minor')."""
        if tier == "main":
            return self.main_params
        elif tier == "major":
            return self.major_params
        elif tier == "minor":
            return self.minor_params
        else:
            raise ValueError(f"Unknown road tier: {tier}")

    @classmethod
    def from_json(cls, filepath: str) -> "GeneratorConfig":
        """Load configuration from JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict) -> "GeneratorConfig":
        data = dict(data)
        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        for key in ("main_params", "major_params", "minor_params"):
            if key in data:
                data[key] = StreamlineParams.from_dict(data[key])
        if "polygon_params" in data:
            data["polygon_params"] = PolygonParams(**data["polygon_params"])
        if "noise_params" in data:
            data["noise_params"] = NoiseParams(**data["noise_params"])
        return cls(**data)

    def to_json(self, filepath: str) -> None:
        """Save configuration to JSON file."""
        data = asdict(self)
        data["origin"] = list(self.origin)
        data["world_size"] = list(self.world_size)
        with open(filepath, 'w') as f:
            json.dump(data, f, indent=2)
