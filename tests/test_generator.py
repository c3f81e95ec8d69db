"""End-to-end tests of the city pipeline."""

import math
from dataclasses import replace

import pytest
from shapely.geometry import Point

from tensor_city.field import TensorField
from tensor_city.generator import CityGenerator
from tensor_city.polygons import average_point, polygon_area, to_shapely
from tensor_city.validation import NetworkValidator
from tensor_city.vector import Vector

from .conftest import CENTRE, WORLD_SIZE, square


@pytest.fixture
def radial_city(radial_field, small_config):
    return CityGenerator(radial_field, small_config).generate()


def test_radial_city_has_block_over_centre(radial_city):
    assert radial_city.roads("main") == ()
    assert radial_city.roads("major") == ()
    assert radial_city.roads("minor")

    blocks = radial_city.blocks
    assert blocks
    assert all(polygon_area(b) > 0 for b in blocks)

    # The innermost ring road encloses the degenerate centre
    centre = Point(CENTRE.x, CENTRE.y)
    covering = [b for b in blocks if to_shapely(b).covers(centre)]
    assert covering
    assert polygon_area(covering[0]) > 0


def test_radial_city_is_valid(radial_city, small_config):
    result = NetworkValidator(small_config).validate(radial_city)
    assert result["valid"], result["checks"]
    assert result["metrics"]["blocks"]["count"] == len(radial_city.blocks)
    assert result["metrics"]["morphology"]["node_density"] > 0


def test_lots_come_from_shrunk_blocks(radial_city, small_config):
    lots = radial_city.lots
    assert lots
    assert sum(polygon_area(lot) for lot in lots) == pytest.approx(
        sum(polygon_area(b) for b in radial_city.shrunk_blocks), rel=1e-6
    )


def test_chance_no_divide_leaves_blocks_whole(radial_field, small_config):
    small_config.polygon_params = replace(small_config.polygon_params, chance_no_divide=1.0, max_length=1.0)
    city = CityGenerator(radial_field, small_config).generate()
    assert city.lots
    assert city.lots == city.shrunk_blocks


def test_water_is_avoided(small_config):
    field = TensorField()
    field.add_grid(CENTRE, WORLD_SIZE * 2, 1.0, math.pi / 7)
    field.sea.append(square(10, 10, 40))
    field.river.append([Vector(120, 0), Vector(135, 0), Vector(135, 200), Vector(120, 200)])

    city = CityGenerator(field, small_config).generate()
    snapshot = field.snapshot()
    points = [p for road in city.tier("minor").all_streamlines for p in road]
    assert points
    assert all(snapshot.on_land(p) for p in points)

    result = NetworkValidator(small_config).validate(city)
    assert result["checks"]["minor"]["off_land_points"] == 0
    for block in city.blocks:
        assert snapshot.on_land(average_point(block))


def test_stepwise_matches_blocking(radial_field, small_config):
    blocking = CityGenerator(radial_field, small_config).generate()

    small_config.update_budget_ms = 0.0
    stepwise = CityGenerator(radial_field, small_config).generate(stepwise=True)
    assert stepwise.blocks == ()
    ticks = 0
    while stepwise.update():
        ticks += 1
    assert ticks > 1
    assert stepwise.done
    assert stepwise.update() is False

    assert stepwise.all_roads == blocking.all_roads
    assert stepwise.blocks == blocking.blocks
    assert stepwise.lots == blocking.lots


def test_update_before_generate(radial_field, small_config):
    city = CityGenerator(radial_field, small_config)
    assert city.update() is False
    assert city.all_roads == ()
    assert city.lots == ()


def test_clear(radial_city):
    radial_city.clear()
    assert radial_city.all_roads == ()
    assert radial_city.blocks == ()
    assert radial_city.lots == ()
    assert radial_city.tier("minor") is None


def test_region_predicate(radial_field, small_config):
    city = CityGenerator(radial_field, small_config)
    city.set_region_predicate(lambda p: p.x < 120)
    city.generate()
    for road in city.roads("minor"):
        assert all(p.x < 120 for p in road)
    for lot in city.lots:
        assert sum(p.x for p in lot) / len(lot) < 120


def test_building_density_thins_lots(radial_field, small_config):
    full = CityGenerator(radial_field, small_config).generate()
    small_config.building_density = 0.5
    thinned = CityGenerator(radial_field, small_config).generate()
    assert len(thinned.lots) < len(full.lots)
    assert set(thinned.lots) <= set(full.lots)


def test_small_parks_remove_blocks(radial_field, small_config):
    without = CityGenerator(radial_field, small_config).generate()
    small_config.num_small_parks = 2
    with_parks = CityGenerator(radial_field, small_config).generate()
    assert len(with_parks.parks) == 2
    assert len(with_parks.blocks) < len(without.blocks)


def test_field_queries(radial_field, small_config):
    city = CityGenerator(radial_field, small_config)
    point = CENTRE + Vector(30, 0)
    assert abs(city.direction_at(point, "minor", True).y) == pytest.approx(1.0)
    assert abs(city.direction_at(point, "minor", False).x) == pytest.approx(1.0)
    assert city.on_land(point)
    with pytest.raises(ValueError):
        city.direction_at(point, "alley")


def test_direction_follows_tier_river_rule(small_config):
    field = TensorField()
    field.add_grid(CENTRE, WORLD_SIZE * 2, 1.0, 0.0)
    field.river.append([Vector(120, 0), Vector(135, 0), Vector(135, 200), Vector(120, 200)])
    city = CityGenerator(field, small_config)
    in_river = Vector(127, 100)

    # Before any tier has run the query uses the snapshot the tier would get
    assert city.direction_at(in_river, "major").length() == pytest.approx(1.0)
    assert city.direction_at(in_river, "minor") == Vector.zero()

    city.generate()
    assert city.direction_at(in_river, "main").length() == pytest.approx(1.0)
    assert city.direction_at(in_river, "major").length() == pytest.approx(1.0)
    assert city.direction_at(in_river, "minor") == Vector.zero()


def test_regenerating_tier_drops_later_stages(radial_field, small_config):
    small_config.num_small_parks = 1
    city = CityGenerator(radial_field, small_config).generate()
    assert city.blocks and city.lots and city.parks
    assert city.road_graph is not None

    major = city.generate_tier("major")
    assert city.tier("major") is major
    assert city.tier("minor") is None
    assert city.roads("minor") == ()
    assert city.road_graph is None
    assert city.blocks == ()
    assert city.shrunk_blocks == ()
    assert city.lots == ()
    assert city.parks == ()
    assert city.intersections == ()


def test_regenerating_minor_keeps_earlier_tiers_and_big_parks(radial_field, small_config):
    small_config.num_small_parks = 1
    city = CityGenerator(radial_field, small_config).generate()
    main, major = city.tier("main"), city.tier("major")
    big_park = square(150, 150, 30)
    city.big_parks = [big_park]

    minor = city.generate_tier("minor")
    assert city.tier("main") is main
    assert city.tier("major") is major
    assert minor.reference_grids == [main.grids, major.grids]
    assert city.big_parks == [big_park]
    assert city.small_parks == []
    assert city.parks == (tuple(big_park),)
    assert city.lots == ()
    assert city.polygon_finder is None


def test_tier_control(radial_field, small_config):
    city = CityGenerator(radial_field, small_config)
    with pytest.raises(ValueError):
        city.tier("alley")
    with pytest.raises(ValueError):
        city.generate_tier("alley")

    tracer = city.generate_tier("minor", stepwise=True)
    assert city.tier("minor") is tracer
    assert tracer.all_streamlines == []
    tracer.run_to_completion()
    assert city.roads("minor")


def test_snapshot_isolated_from_field_edits(radial_field, small_config):
    city = CityGenerator(radial_field, small_config).generate(stepwise=True)
    city.update()
    radial_field.reset()
    radial_field.add_grid(CENTRE, WORLD_SIZE, 1.0, 0.0)
    city.run_to_completion()

    reference = CityGenerator(TensorField(), small_config)
    reference.field.add_radial(CENTRE, WORLD_SIZE, 1.0)
    reference.generate()
    assert city.all_roads == reference.all_roads
