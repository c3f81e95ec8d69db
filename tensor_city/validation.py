"""
Validation and reporting of a finished generation pass.
"""

import logging
from typing import Dict, List, Sequence

import numpy as np

from .config import GeneratorConfig
from .generator import TIERS, CityGenerator
from .metrics import MorphologyMetrics, compute_polygon_stats
from .polygons import is_simple_polygon, polygon_area
from .spatial_index import SampleGrid
from .streamlines import StreamlineGenerator, is_closed
from .vector import Vector

logger = logging.getLogger(__name__)


def core_points(streamline: Sequence[Vector], joined: set) -> List[Vector]:
    """Points a streamline had before its dangling ends were joined."""
    return [p for p in streamline if p not in joined]


def interior_points(core: Sequence[Vector]) -> List[Vector]:
    """Core points without the terminal step of an open streamline."""
    if is_closed(core):
        return list(core[:-1])
    return list(core[1:-1])


def self_collision_pairs(
    points: Sequence[Vector],
    threshold: float,
    lookback: int,
    closed: bool
) -> int:
    """
    Count point pairs more than lookback steps apart but closer than threshold.

    Index distance wraps around for closed streamlines.
    """
    if closed:
        points = points[:-1]
    n = len(points)
    if n < 2:
        return 0

    coords = np.array([(p.x, p.y) for p in points])
    diff = coords[:, None, :] - coords[None, :, :]
    distances = np.sqrt(np.sum(diff ** 2, axis=2))

    index = np.arange(n)
    gaps = np.abs(index[:, None] - index[None, :])
    if closed:
        gaps = np.minimum(gaps, n - gaps)

    too_close = (gaps > lookback) & (distances < threshold)
    return int(np.count_nonzero(np.triu(too_close)))


class NetworkValidator:
    """Check the invariants of a generated city."""

    def __init__(self, config: GeneratorConfig):
        """
        Initialize validator.

        Args:
            config: Generator configuration
        """
        self.config = config

    def check_tier(self, tracer: StreamlineGenerator) -> Dict:
        """
        Separation, seeding, land and self-collision checks of one tier.

        Streamlines are replayed in acceptance order against fresh grids, so
        every interior point is compared with exactly the samples that
        existed when it was traced.
        """
        params = tracer.params
        joined = tracer.joined_points
        grids = {True: SampleGrid(params.dsep, tracer.origin),
                 False: SampleGrid(params.dsep, tracer.origin)}

        separation_violations = 0
        seed_violations = 0
        off_land = 0
        self_collisions = 0

        for streamline, seed, major in zip(
            tracer.all_streamlines, tracer.seeds, tracer.streamline_is_major
        ):
            grid = grids[major]
            if not grid.is_valid_sample(seed, params.dsep ** 2):
                seed_violations += 1

            core = core_points(streamline, joined)
            for point in interior_points(core):
                if not grid.is_valid_sample(point, params.dtest ** 2):
                    separation_violations += 1

            off_land += sum(1 for p in streamline if not tracer.integrator.on_land(p))

            self_collisions += self_collision_pairs(
                core, tracer.dcollideself, tracer.n_streamline_lookback, is_closed(core)
            )
            grid.add_polyline(core)

        return {
            "streamlines": len(tracer.all_streamlines),
            "separation_violations": separation_violations,
            "seed_violations": seed_violations,
            "off_land_points": off_land,
            "self_collisions": self_collisions,
        }

    def check_polygons(self, city: CityGenerator) -> Dict:
        """Simple-polygon and minimum-area checks of blocks and lots."""
        min_area = self.config.polygon_params.min_area
        pass_through = set(city.shrunk_blocks) | set(city.blocks)

        return {
            "invalid_blocks": sum(1 for b in city.blocks if not is_simple_polygon(b)),
            "invalid_lots": sum(1 for lot in city.lots if not is_simple_polygon(lot)),
            "small_lots": sum(
                1 for lot in city.lots
                if polygon_area(lot) < min_area and lot not in pass_through
            ),
        }

    def validate(self, city: CityGenerator) -> Dict:
        """
        Validate a finished city.

        Args:
            city: Generator after run_to_completion()

        Returns:
            {"valid": bool, "checks": {...}, "metrics": {...}}
        """
        checks = {}
        for name in TIERS:
            tracer = city.tier(name)
            if tracer is not None:
                checks[name] = self.check_tier(tracer)
        checks["polygons"] = self.check_polygons(city)

        valid = all(
            value == 0
            for group in checks.values()
            for key, value in group.items()
            if key != "streamlines"
        )

        metrics = {
            "blocks": compute_polygon_stats(city.blocks),
            "lots": compute_polygon_stats(city.lots),
        }
        if city.road_graph is not None:
            area = self.config.world_size[0] * self.config.world_size[1]
            metrics["morphology"] = MorphologyMetrics.compute_all_morphology(city.road_graph, area)

        if not valid:
            logger.warning("Validation failed: %s", checks)

        return {"valid": valid, "checks": checks, "metrics": metrics}

    def format_report(self, result: Dict) -> str:
        """Markdown summary of a validate() result."""
        report = ["# City Generation Report\n"]
        report.append(f"\n- Seed: {self.config.seed}\n")
        report.append(f"- World: {self.config.world_size[0]} x {self.config.world_size[1]}\n")
        report.append(f"- Valid: **{result['valid']}**\n")

        report.append("\n## Checks\n")
        for group, values in result["checks"].items():
            report.append(f"\n### {group}\n")
            for key, value in values.items():
                report.append(f"- {key}: {value}\n")

        metrics = result["metrics"]
        report.append("\n## Polygons\n")
        for group in ("blocks", "lots"):
            stats = metrics[group]
            report.append(
                f"- {group}: {stats['count']} (mean area {stats['mean_area']:.1f}, "
                f"min {stats['min_area']:.1f}, max {stats['max_area']:.1f})\n"
            )

        if "morphology" in metrics:
            morph = metrics["morphology"]
            report.append("\n## Morphology\n")
            report.append(f"- Node density: {morph['node_density']:.2f} per km²\n")
            report.append(f"- Dead-end ratio: {morph['dead_end_ratio']:.3f}\n")
            report.append(f"- Intersections: {morph['intersections']}\n")
            degrees = ", ".join(
                f"{degree}: {count}" for degree, count in sorted(morph["degree_distribution"].items())
            )
            report.append(f"- Node degrees: {degrees}\n")
            lengths = morph["segment_lengths"]
            report.append(f"- Segment length: mean {lengths['mean']:.1f}, max {lengths['max']:.1f}\n")
            report.append(f"- Orientation entropy: {morph['orientation_entropy']:.3f}\n")

        return "".join(report)
