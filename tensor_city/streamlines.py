"""
Streamline tracing: turns the tensor field into road polylines.

Follows the approach of "Interactive Procedural Street Modeling" (Chen et
al. 2008): seeds are spread with a separation distance, each seed is
integrated forwards and backwards at the same time, and integration stops
when a front comes too close to an existing road.
"""

import logging
import math
import random
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from shapely.geometry import LineString

from .config import StreamlineParams
from .integrator import FieldIntegrator
from .modifiers import DirectionModifiers
from .spatial_index import SampleGrid
from .vector import Vector

logger = logging.getLogger(__name__)

RegionPredicate = Callable[[Vector], bool]
Polyline = List[Vector]


def simplify_polyline(points: List[Vector], tolerance: float) -> Polyline:
    """
    Douglas-Peucker reduction of a polyline.

    A tolerance of zero returns a copy of the input.
    """
    if tolerance <= 0 or len(points) < 3:
        return list(points)
    line = LineString([(p.x, p.y) for p in points])
    simplified = line.simplify(tolerance, preserve_topology=False)
    coords = list(simplified.coords)
    if len(coords) < 2:
        return [points[0], points[-1]]
    return [Vector(x, y) for x, y in coords]


def is_closed(streamline: List[Vector]) -> bool:
    return len(streamline) > 1 and streamline[0] == streamline[-1]


@dataclass
class IntegrationFront:
    """State of one integration direction."""

    seed: Vector
    original_dir: Vector
    streamline: Polyline
    previous_direction: Vector
    previous_point: Vector
    order_step: int  # +1 forwards, -1 backwards
    valid: bool = True

    def next_order(self) -> int:
        # The forward list starts with the seed (order 0)
        if self.order_step > 0:
            return len(self.streamline)
        return -(len(self.streamline) + 1)


class SelfCollisionIndex:
    """Points of the streamline being traced, tagged with their order."""

    def __init__(self, threshold: float, lookback: int):
        self.threshold_sq = threshold * threshold
        self.threshold = threshold
        self.lookback = lookback
        self.grid = SampleGrid(max(threshold, 1e-6))
        self.order: Dict[Vector, int] = {}

    def add(self, point: Vector, order: int) -> None:
        if point not in self.order:
            self.grid.add_sample(point)
        self.order[point] = order

    def collides(self, point: Vector, order: int) -> bool:
        """True if point is closer than the threshold to a far-away sample."""
        for sample in self.grid.get_nearby_points(point, self.threshold):
            if (abs(self.order[sample] - order) > self.lookback
                    and point.distance_to_sq(sample) < self.threshold_sq):
                return True
        return False


class StreamlineGenerator:
    """
    Creates the polylines of one road tier by integrating the tensor field.

    Major and minor eigenvector streamlines are traced alternately, each
    kept in its own sample grid. Grids of previously generated tiers are
    attached read-only with ``add_existing_streamlines``.
    """

    def __init__(
        self,
        integrator: FieldIntegrator,
        origin: Vector,
        world_dimensions: Vector,
        params: StreamlineParams,
        rng: Optional[random.Random] = None,
        centre: Optional[Vector] = None,
    ):
        """
        Initialize generator.

        Args:
            integrator: Field integrator (its dstep should match params)
            origin: World origin
            world_dimensions: World width and height
            params: Tier parameters, normalized on the way in
            rng: Random source (seeds, early collision, noise layers)
            centre: Historical centre for layering (default world centre)
        """
        self.integrator = integrator
        self.origin = origin
        self.world_dimensions = world_dimensions
        self.params = params.normalized()
        self.params_sq = self.params.squared()
        self.rng = rng or random.Random()

        # Self collision: ignore samples within lookback steps of the test point
        self.dcollideself = self.params.dcirclejoin / 2
        self.n_streamline_step = max(1, math.floor(self.params.dcirclejoin / self.params.dstep))
        self.n_streamline_lookback = 2 * self.n_streamline_step

        if centre is None:
            centre = origin + world_dimensions * 0.5
        self.modifiers = DirectionModifiers(self.params, centre, self.rng)

        self.region_predicate: Optional[RegionPredicate] = None
        self.reference_grids: List[Dict[bool, SampleGrid]] = []

        self._work: Optional[Iterator[None]] = None
        self.clear_streamlines()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def clear_streamlines(self) -> None:
        """Discard all streamlines, samples and in-flight work."""
        self.grids: Dict[bool, SampleGrid] = {
            True: SampleGrid(self.params.dsep, self.origin),
            False: SampleGrid(self.params.dsep, self.origin),
        }
        self.candidate_seeds: Dict[bool, List[Vector]] = {True: [], False: []}
        self.streamlines_major: List[Polyline] = []
        self.streamlines_minor: List[Polyline] = []
        self.all_streamlines: List[Polyline] = []
        self.all_streamlines_simple: List[Polyline] = []
        self.seeds: List[Vector] = []
        self.streamline_is_major: List[bool] = []
        self.joined_points: Set[Vector] = set()
        self._work = None

    @property
    def major_grid(self) -> SampleGrid:
        return self.grids[True]

    @property
    def minor_grid(self) -> SampleGrid:
        return self.grids[False]

    def grid(self, major: bool) -> SampleGrid:
        return self.grids[major]

    def streamlines(self, major: bool) -> List[Polyline]:
        return self.streamlines_major if major else self.streamlines_minor

    def set_region_predicate(self, predicate: Optional[RegionPredicate]) -> None:
        """Restrict seeds and samples to points where predicate is true."""
        self.region_predicate = predicate

    def add_existing_streamlines(self, other: "StreamlineGenerator") -> None:
        """Test new samples against the grids of an earlier tier too."""
        self.reference_grids.append(other.grids)

    def simplified_streamlines(self) -> Tuple[Tuple[Vector, ...], ...]:
        return tuple(tuple(s) for s in self.all_streamlines_simple)

    def raw_streamlines(self) -> Tuple[Tuple[Vector, ...], ...]:
        return tuple(tuple(s) for s in self.all_streamlines)

    # ------------------------------------------------------------------
    # Driving the work
    # ------------------------------------------------------------------

    def generate(self, stepwise: bool = False) -> "StreamlineGenerator":
        """
        Start a fresh generation.

        Args:
            stepwise: Only prime the work; the caller drives it with update()
        """
        self.clear_streamlines()
        self._work = self._iter_work()
        if not stepwise:
            self.run_to_completion()
        return self

    def update(self) -> bool:
        """Trace one more streamline. Returns False once nothing is left."""
        if self._work is None:
            return False
        try:
            next(self._work)
            return True
        except StopIteration:
            self._work = None
            return False

    def run_to_completion(self) -> None:
        while self.update():
            pass

    @property
    def done(self) -> bool:
        return self._work is None

    def _iter_work(self) -> Iterator[None]:
        major = True
        while self.create_streamline(major):
            major = not major
            yield

        if self.params.join_dangling:
            self.join_dangling_streamlines()

        logger.info(
            "Traced %d streamlines (%d major, %d minor)",
            len(self.all_streamlines),
            len(self.streamlines_major),
            len(self.streamlines_minor),
        )

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def sample_point(self) -> Vector:
        return Vector(
            self.origin.x + self.rng.random() * self.world_dimensions.x,
            self.origin.y + self.rng.random() * self.world_dimensions.y,
        )

    def get_seed(self, major: bool) -> Optional[Vector]:
        """
        Find a valid seed, or None once seed_tries random draws failed.

        Candidate seeds (endpoints of earlier streamlines) are tried first
        when seed_at_endpoints is set.
        """
        if self.params.seed_at_endpoints:
            candidates = self.candidate_seeds[major]
            while candidates:
                seed = candidates.pop()
                if self.is_valid_sample(major, seed, self.params_sq["dsep"]):
                    return seed

        for _ in range(self.params.seed_tries):
            seed = self.sample_point()
            if self.is_valid_sample(major, seed, self.params_sq["dsep"]):
                return seed

        logger.debug("Seeding exhausted for %s streamlines", "major" if major else "minor")
        return None

    def point_in_bounds(self, v: Vector) -> bool:
        return (self.origin.x <= v.x < self.origin.x + self.world_dimensions.x
                and self.origin.y <= v.y < self.origin.y + self.world_dimensions.y)

    def in_region(self, point: Vector) -> bool:
        return self.region_predicate is None or bool(self.region_predicate(point))

    def is_valid_sample(
        self,
        major: bool,
        point: Vector,
        d_sq: float,
        both_grids: bool = False
    ) -> bool:
        """
        Point is admissible and no sample of the tested grids is too close.

        Args:
            major: Grid of this eigen direction is tested
            point: Candidate point
            d_sq: Squared separation distance
            both_grids: Also test the other direction's grids
        """
        if not self.in_region(point):
            return False
        if not self.integrator.on_land(point):
            return False

        directions = (major, not major) if both_grids else (major,)
        for direction in directions:
            if not self.grids[direction].is_valid_sample(point, d_sq):
                return False
            for reference in self.reference_grids:
                if not reference[direction].is_valid_sample(point, d_sq):
                    return False
        return True

    # ------------------------------------------------------------------
    # Integration
    # ------------------------------------------------------------------

    def create_streamline(self, major: bool) -> bool:
        """
        Seed and trace one streamline.

        Returns:
            False when no seed could be found (the tier is saturated)
        """
        seed = self.get_seed(major)
        if seed is None:
            return False

        streamline = self.integrate_streamline(seed, major)
        if self.valid_streamline(streamline):
            self.grids[major].add_polyline(streamline)
            self.streamlines(major).append(streamline)
            self.all_streamlines.append(streamline)
            self.all_streamlines_simple.append(self.simplify_streamline(streamline))
            self.seeds.append(seed)
            self.streamline_is_major.append(major)

            if not is_closed(streamline):
                self.candidate_seeds[not major].append(streamline[0])
                self.candidate_seeds[not major].append(streamline[-1])

            logger.debug("Accepted %s streamline of %d points",
                         "major" if major else "minor", len(streamline))

        return True

    def valid_streamline(self, streamline: Polyline) -> bool:
        return len(streamline) >= self.params.min_points

    def simplify_streamline(self, streamline: Polyline) -> Polyline:
        return simplify_polyline(streamline, self.params.simplify_tolerance)

    def streamline_turned(
        self,
        seed: Vector,
        original_dir: Vector,
        point: Vector,
        direction: Vector
    ) -> bool:
        """True once the front has turned through more than 180 degrees."""
        if original_dir.dot(direction) < 0:
            perpendicular = Vector(original_dir.y, -original_dir.x)
            is_left = (point - seed).dot(perpendicular) < 0
            direction_up = direction.dot(perpendicular) > 0
            return is_left == direction_up
        return False

    def _integration_step(
        self,
        front: IntegrationFront,
        major: bool,
        collide_both: bool,
        self_index: SelfCollisionIndex
    ) -> None:
        if not front.valid:
            return

        front.streamline.append(front.previous_point)

        next_direction = self.integrator.integrate(
            front.previous_point, major, front.previous_direction
        )

        # Stop at degenerate point
        if next_direction.length_sq() < 0.01 * self.params_sq["dstep"]:
            front.valid = False
            return

        # Keep travelling the same way
        if next_direction.dot(front.previous_direction) < 0:
            next_direction = -next_direction

        next_direction = self.modifiers.apply(front.previous_point, next_direction)
        next_point = front.previous_point + next_direction
        next_order = front.next_order()

        # Points are indexed on acceptance so both fronts see each other at once
        if (self.point_in_bounds(next_point)
                and self.is_valid_sample(major, next_point, self.params_sq["dtest"], collide_both)
                and not self.streamline_turned(front.seed, front.original_dir,
                                               next_point, next_direction)):
            if self_index.collides(next_point, next_order):
                front.valid = False
                return
            self_index.add(next_point, next_order)
            front.previous_point = next_point
            front.previous_direction = next_direction
        else:
            # One more step so the road reaches whatever stopped it
            if (self.point_in_bounds(next_point)
                    and self.in_region(next_point)
                    and self.integrator.on_land(next_point)
                    and not self_index.collides(next_point, next_order)):
                self_index.add(next_point, next_order)
                front.streamline.append(next_point)
            front.valid = False

    def _first_step_valid(self, point: Vector, major: bool, collide_both: bool) -> bool:
        return (self.point_in_bounds(point)
                and self.is_valid_sample(major, point, self.params_sq["dtest"], collide_both))

    def integrate_streamline(self, seed: Vector, major: bool) -> Polyline:
        """
        Trace from seed in both directions at once.

        Integrating both ways simultaneously makes loops meet where the two
        fronts' errors match, so circles close cleanly.
        """
        count = 0
        points_escaped = False

        collide_both = self.rng.random() < self.params.collide_early

        d = self.integrator.integrate(seed, major)
        if d.length_sq() < 0.01 * self.params_sq["dstep"]:
            return [seed]
        d = self.modifiers.apply(seed, d)

        forward = IntegrationFront(
            seed=seed,
            original_dir=d,
            streamline=[seed],
            previous_direction=d,
            previous_point=seed + d,
            order_step=1,
        )
        forward.valid = self._first_step_valid(forward.previous_point, major, collide_both)

        backward = IntegrationFront(
            seed=seed,
            original_dir=-d,
            streamline=[],
            previous_direction=-d,
            previous_point=seed - d,
            order_step=-1,
        )
        backward.valid = self._first_step_valid(backward.previous_point, major, collide_both)

        self_index = SelfCollisionIndex(self.dcollideself, self.n_streamline_lookback)
        self_index.add(seed, 0)
        if forward.valid:
            self_index.add(forward.previous_point, 1)
        if backward.valid:
            self_index.add(backward.previous_point, -1)

        dcirclejoin_sq = self.params_sq["dcirclejoin"]
        while count < self.params.path_iterations and (forward.valid or backward.valid):
            self._integration_step(forward, major, collide_both, self_index)
            self._integration_step(backward, major, collide_both, self_index)

            # Join up circles
            distance_sq = forward.previous_point.distance_to_sq(backward.previous_point)

            if not points_escaped and distance_sq > dcirclejoin_sq:
                points_escaped = True

            if (points_escaped and forward.valid and backward.valid
                    and distance_sq <= dcirclejoin_sq):
                forward.streamline.append(forward.previous_point)
                forward.streamline.append(backward.previous_point)
                backward.streamline.append(backward.previous_point)
                break

            count += 1

        backward.streamline.reverse()
        return backward.streamline + forward.streamline

    # ------------------------------------------------------------------
    # Dangling ends
    # ------------------------------------------------------------------

    def join_dangling_streamlines(self) -> None:
        """
        Extend open streamline ends towards a nearby road ahead of them.

        New points are added to the tier's grid so later queries see them,
        and the simplified streamlines are rebuilt.
        """
        joins = 0
        for major in (True, False):
            for streamline in self.streamlines(major):
                if is_closed(streamline) or len(streamline) < 2:
                    continue

                back = min(4, len(streamline) - 1)

                new_start = self.get_best_next_point(streamline[0], streamline[back])
                if new_start is not None:
                    points = self._join_points(streamline, streamline[0], new_start, major)
                    for p in points:
                        streamline.insert(0, p)
                    joins += bool(points)

                new_end = self.get_best_next_point(streamline[-1], streamline[-1 - back])
                if new_end is not None:
                    points = self._join_points(streamline, streamline[-1], new_end, major)
                    streamline.extend(points)
                    joins += bool(points)

        self.all_streamlines_simple = [self.simplify_streamline(s) for s in self.all_streamlines]
        logger.debug("Joined %d dangling ends", joins)

    def _join_points(
        self,
        streamline: Polyline,
        end: Vector,
        target: Vector,
        major: bool
    ) -> Polyline:
        """
        Points splicing end to target, or [] when the join is not admissible.

        Every new point must keep dtest from the tier's existing samples,
        apart from the streamline's own points and those around the target.
        """
        points = self.points_between(end, target)
        if not points:
            return []

        own = set(streamline)
        dtest = self.params.dtest
        reach_sq = (dtest + self.params.dstep) ** 2
        for p in points:
            if not self.point_in_bounds(p) or not self.in_region(p):
                return []
            for sample in self.grids[major].get_nearby_points(p, dtest):
                if sample in own or sample in self.joined_points:
                    continue
                if p.distance_to_sq(sample) < self.params_sq["dtest"] \
                        and sample.distance_to_sq(target) > reach_sq:
                    return []

        for p in points:
            self.grids[major].add_sample(p)
            self.joined_points.add(p)

        # Ordered from the end outwards
        return points

    def points_between(self, v1: Vector, v2: Vector) -> Polyline:
        """
        Points from v1 (exclusive) to v2 at most dstep apart.

        Stops early at the first degenerate field point.
        """
        distance = v1.distance_to(v2)
        n_points = math.ceil(distance / self.params.dstep)
        if n_points == 0:
            return []

        out = []
        for i in range(1, n_points + 1):
            point = v1.lerp(v2, i / n_points)
            if self.integrator.integrate(point, True).length_sq() > 0.001:
                out.append(point)
            else:
                break
        return out

    def get_best_next_point(
        self,
        point: Vector,
        previous_point: Vector
    ) -> Optional[Vector]:
        """
        Sample ahead of a dangling end that the road should join.

        Candidates come from both direction grids of this tier and of the
        referenced tiers, must lie in front of the end and within
        joinangle of its heading; a candidate closer than about one step
        wins outright.
        """
        lookahead = self.params.dlookahead
        nearby = []
        for grids in [self.grids] + self.reference_grids:
            nearby.extend(grids[True].get_nearby_points(point, lookahead))
            nearby.extend(grids[False].get_nearby_points(point, lookahead))

        direction = point - previous_point
        if direction.length_sq() == 0:
            return None

        closest_sample = None
        closest_distance = math.inf

        for sample in nearby:
            if sample == point or sample == previous_point:
                continue

            difference = sample - point
            if difference.dot(direction) < 0:
                # Backwards
                continue

            distance_sq = point.distance_to_sq(sample)
            if distance_sq < 2 * self.params_sq["dstep"]:
                closest_sample = sample
                break

            angle_between = abs(Vector.angle_between(direction, difference))
            if angle_between < self.params.joinangle and distance_sq < closest_distance:
                closest_distance = distance_sq
                closest_sample = sample

        if closest_sample is not None:
            # Overshoot so the join survives simplification as a crossing
            closest_sample = closest_sample + direction.set_length(
                self.params.simplify_tolerance * 4
            )

        return closest_sample

    def direction_at(self, point: Vector, major: bool) -> Vector:
        return self.integrator.sample_field_vector(point, major)
