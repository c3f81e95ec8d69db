"""
City generation pipeline: road tiers, parks, blocks and lots.
"""

import logging
import random
import time
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .config import GeneratorConfig
from .field import FieldSnapshot, TensorField
from .graph import RoadGraph, build_graph
from .integrator import create_integrator
from .polygon_finder import PolygonFinder
from .polygons import Ring, average_point
from .streamlines import StreamlineGenerator
from .vector import Vector

logger = logging.getLogger(__name__)

TIERS = ("main", "major", "minor")

Polylines = Tuple[Tuple[Vector, ...], ...]


class CityGenerator:
    """
    Generate a city from a tensor field.

    The pass runs strictly in order: main roads, major roads, big parks,
    minor roads, small parks, road graph, blocks, shrunk blocks, lots. Each
    stage only starts once the previous one reports completion. The field
    is frozen into a snapshot when a pass starts, so editing it afterwards
    only affects the next pass.
    """

    def __init__(self, field: TensorField, config: Optional[GeneratorConfig] = None):
        """
        Initialize generator.

        Args:
            field: Editable tensor field
            config: Generator configuration (defaults if None)
        """
        self.field = field
        self.config = config or GeneratorConfig()
        self.origin = Vector(*self.config.origin)
        self.world_dimensions = Vector(*self.config.world_size)
        self.region_predicate: Optional[Callable[[Vector], bool]] = None

        self.rng = random.Random(self.config.seed)
        self.tiers: Dict[str, StreamlineGenerator] = {}
        self.big_parks: List[Ring] = []
        self.small_parks: List[Ring] = []
        self.road_graph: Optional[RoadGraph] = None
        self.polygon_finder: Optional[PolygonFinder] = None
        self.lot_polygons: List[Ring] = []
        self.snapshot: Optional[FieldSnapshot] = None
        self._work: Optional[Iterator[str]] = None

    # ------------------------------------------------------------------
    # Field queries
    # ------------------------------------------------------------------

    def set_region_predicate(self, predicate: Optional[Callable[[Vector], bool]]) -> None:
        """Limit seeds, samples and lots to points where predicate holds."""
        self.region_predicate = predicate
        for tracer in self.tiers.values():
            tracer.set_region_predicate(predicate)

    def direction_at(self, point: Vector, tier: str = "minor", major: bool = True) -> Vector:
        """
        Road direction a tier follows at point.

        Samples the snapshot the tier was traced on, or the one it would be
        traced on next if it has not run yet. Zero at degenerate points and
        in water.

        Args:
            point: Query point
            tier: Road tier name
            major: Major (True) or minor (False) eigenvector
        """
        tracer = self.tier(tier)
        if tracer is not None:
            return tracer.direction_at(point, major)
        base = self.snapshot or self.field.snapshot()
        return self._tier_snapshot(tier, base).sample(point).eigenvector(major)

    def on_land(self, point: Vector) -> bool:
        return self.field.on_land(point)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Drop every accumulated result and any in-flight work."""
        self.rng = random.Random(self.config.seed)
        self.tiers = {}
        self.big_parks = []
        self.small_parks = []
        self.road_graph = None
        self.polygon_finder = None
        self.lot_polygons = []
        self.snapshot = None
        self._work = None

    def generate(self, stepwise: bool = False) -> "CityGenerator":
        """
        Start a fresh pass.

        Args:
            stepwise: Only prime the work; drive it with update()
        """
        self.clear()
        self._work = self._iter_pipeline()
        if not stepwise:
            self.run_to_completion()
        return self

    def update(self) -> bool:
        """
        Run pipeline steps for up to update_budget_ms.

        Returns:
            True while work remains
        """
        if self._work is None:
            return False

        deadline = time.perf_counter() + self.config.update_budget_ms / 1000.0
        while True:
            try:
                next(self._work)
            except StopIteration:
                self._work = None
                return False
            if time.perf_counter() >= deadline:
                return True

    def run_to_completion(self) -> None:
        if self._work is None:
            return
        for _ in self._work:
            pass
        self._work = None

    @property
    def done(self) -> bool:
        return self._work is None

    def tier(self, name: str) -> Optional[StreamlineGenerator]:
        """Streamline generator of a tier, or None before it has run."""
        if name not in TIERS:
            raise ValueError(f"Unknown road tier: {name}")
        return self.tiers.get(name)

    def generate_tier(self, name: str, stepwise: bool = False) -> StreamlineGenerator:
        """
        Regenerate a single road tier against the current field.

        Earlier tiers that already exist are used as read-only references.
        Everything built on top of the tier is dropped: later tiers, the
        parks picked from it, the road graph, blocks and lots. Regenerating
        the minor tier keeps the big parks it was traced around.
        """
        if name not in TIERS:
            raise ValueError(f"Unknown road tier: {name}")
        self._invalidate_from(name)

        self.snapshot = self.field.snapshot()
        tracer = self._create_tier(name, self._tier_snapshot(name, self.snapshot))
        tracer.generate(stepwise=stepwise)
        return tracer

    def _invalidate_from(self, name: str) -> None:
        for later in TIERS[TIERS.index(name):]:
            self.tiers.pop(later, None)
        if name != "minor":
            self.big_parks = []
        self.small_parks = []
        self.road_graph = None
        self.polygon_finder = None
        self.lot_polygons = []
        self._work = None

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _tier_snapshot(self, name: str, base: FieldSnapshot) -> FieldSnapshot:
        """Main and major roads bridge rivers; minor roads bend around big parks."""
        if name == "minor":
            return base.with_parks(self.big_parks)
        return base.with_ignore_river(True)

    def _create_tier(self, name: str, snapshot: FieldSnapshot) -> StreamlineGenerator:
        params = self.config.tier_params(name)
        integrator = create_integrator(self.config.integrator, snapshot, params.dstep)
        tracer = StreamlineGenerator(
            integrator,
            self.origin,
            self.world_dimensions,
            params,
            rng=random.Random(self.config.seed + TIERS.index(name) + 1),
        )
        tracer.set_region_predicate(self.region_predicate)
        for earlier in TIERS[:TIERS.index(name)]:
            if earlier in self.tiers:
                tracer.add_existing_streamlines(self.tiers[earlier])
        self.tiers[name] = tracer
        return tracer

    def _iter_tier(self, name: str, snapshot: FieldSnapshot) -> Iterator[str]:
        tracer = self._create_tier(name, snapshot)
        tracer.generate(stepwise=True)
        while tracer.update():
            yield name
        logger.info("Finished %s roads: %d streamlines", name, len(tracer.all_streamlines))

    def _iter_pipeline(self) -> Iterator[str]:
        self.snapshot = self.field.snapshot()

        yield from self._iter_tier("main", self._tier_snapshot("main", self.snapshot))
        yield from self._iter_tier("major", self._tier_snapshot("major", self.snapshot))

        self.big_parks.extend(self._pick_parks(
            self.config.num_big_parks, self.config.cluster_big_parks
        ))
        yield "parks"

        yield from self._iter_tier("minor", self._tier_snapshot("minor", self.snapshot))

        self.small_parks.extend(self._pick_parks(self.config.num_small_parks, False))
        yield "parks"

        self.road_graph = build_graph(self.all_roads, self.config.graph_snap_tolerance)
        yield "graph"

        finder = PolygonFinder(
            self.road_graph,
            self.config.polygon_params,
            self.snapshot.with_parks(self.park_polygons),
            self.rng,
        )
        self.polygon_finder = finder
        finder.find_polygons()
        yield "blocks"

        finder.shrink(stepwise=True)
        while finder.update():
            yield "shrink"

        finder.divide(stepwise=True)
        while finder.update():
            yield "divide"

        self.lot_polygons = self._filter_lots(finder.divided)
        logger.info(
            "Generated %d blocks, %d lots, %d parks",
            len(finder.blocks), len(self.lot_polygons), len(self.park_polygons),
        )

    def _pick_parks(self, count: int, cluster: bool) -> List[Ring]:
        """Choose count faces of the current road network as parks."""
        if count <= 0:
            return []

        graph = build_graph(self.all_roads, self.config.graph_snap_tolerance)
        finder = PolygonFinder(
            graph,
            self.config.polygon_params,
            self.snapshot.with_parks(self.park_polygons),
            self.rng,
        )
        candidates = finder.find_polygons()
        if not candidates:
            return []

        count = min(count, len(candidates))
        if cluster:
            # Faces are traced edge by edge, so neighbouring indices are close
            start = self.rng.randrange(len(candidates))
            chosen = [candidates[(start + i) % len(candidates)] for i in range(count)]
        else:
            chosen = self.rng.sample(candidates, count)

        logger.debug("Picked %d parks from %d faces", len(chosen), len(candidates))
        return chosen

    def _filter_lots(self, lots: Sequence[Ring]) -> List[Ring]:
        kept = []
        for lot in lots:
            if self.region_predicate is not None and not self.region_predicate(average_point(lot)):
                continue
            if self.config.building_density < 1.0 and self.rng.random() >= self.config.building_density:
                continue
            kept.append(lot)
        return kept

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def roads(self, tier: str) -> Polylines:
        """Simplified road polylines of one tier."""
        tracer = self.tier(tier)
        if tracer is None:
            return ()
        return tracer.simplified_streamlines()

    @property
    def all_roads(self) -> Polylines:
        roads = ()
        for name in TIERS:
            roads += self.roads(name)
        return roads

    @property
    def blocks(self) -> Polylines:
        if self.polygon_finder is None:
            return ()
        return tuple(tuple(ring) for ring in self.polygon_finder.blocks)

    @property
    def shrunk_blocks(self) -> Polylines:
        if self.polygon_finder is None:
            return ()
        return tuple(tuple(ring) for ring in self.polygon_finder.shrunk)

    @property
    def lots(self) -> Polylines:
        return tuple(tuple(ring) for ring in self.lot_polygons)

    @property
    def park_polygons(self) -> List[Ring]:
        return self.big_parks + self.small_parks

    @property
    def parks(self) -> Polylines:
        return tuple(tuple(ring) for ring in self.park_polygons)

    @property
    def intersections(self) -> Tuple[Vector, ...]:
        if self.road_graph is None:
            return ()
        return tuple(self.road_graph.intersections)
