from __future__ import annotations

import math
import random

import pytest

from trackstream._constants import DEFAULT_AVERAGE_SPEED, DEFAULT_JITTER
from trackstream.exceptions import ConstructionError
from trackstream.models.control import ControlUpdate
from trackstream.models.point import Point, distance_between
from trackstream.models.waypoint import DEFAULT_WAYPOINTS, Waypoint, WaypointGraph
from trackstream.vehicle import VehicleController


def _graph(*crumb_lists: list[tuple[float, float]]) -> WaypointGraph:
    return WaypointGraph.from_raw(
        [{"name": f"WP{i}", "breadcrumbs": [list(c) for c in crumbs]} for i, crumbs in enumerate(crumb_lists)]
    )


def test_create_requires_two_waypoints() -> None:
    only = Waypoint(name="Solo", breadcrumbs=(Point(lat=0, lng=0),))
    with pytest.raises(ConstructionError):
        VehicleController.create([only])
    with pytest.raises(ConstructionError):
        VehicleController.create([])


def test_create_accepts_waypoint_list() -> None:
    waypoints = [
        Waypoint(name="A", breadcrumbs=(Point(lat=0, lng=0),)),
        Waypoint(name="B", breadcrumbs=(Point(lat=1, lng=1),)),
    ]
    controller = VehicleController.create(waypoints, start_index=1)
    assert controller.leg == ("B", "A")


@pytest.mark.parametrize("kwargs", [{"average_speed": math.inf}, {"jitter": math.inf}, {"jitter": math.nan}])
def test_create_rejects_non_finite_parameters(kwargs: dict[str, float]) -> None:
    with pytest.raises(ConstructionError):
        VehicleController.create(DEFAULT_WAYPOINTS, **kwargs)


def test_create_uses_defaults_when_parameters_missing() -> None:
    controller = VehicleController.create(DEFAULT_WAYPOINTS)
    assert controller.average_speed == DEFAULT_AVERAGE_SPEED
    assert controller.jitter == DEFAULT_JITTER


def test_create_rejects_invalid_initial_parameters() -> None:
    with pytest.raises(ConstructionError):
        VehicleController.create(DEFAULT_WAYPOINTS, average_speed=0)
    with pytest.raises(ConstructionError):
        VehicleController.create(DEFAULT_WAYPOINTS, jitter=-0.1)


def test_random_start_picks_valid_origin_and_next_destination() -> None:
    rng = random.Random(1234)
    seen: set[int] = set()
    for _ in range(50):
        controller = VehicleController.create(DEFAULT_WAYPOINTS, rng=rng)
        assert 0 <= controller.origin_index < len(DEFAULT_WAYPOINTS)
        assert controller.destination_index == (controller.origin_index + 1) % len(DEFAULT_WAYPOINTS)
        seen.add(controller.origin_index)
    assert len(seen) > 1


def test_scenario_first_steps() -> None:
    graph = _graph([(0, 0), (0, 1)], [(10, 10)])
    controller = VehicleController.create(graph, average_speed=5, jitter=0, start_index=0)
    assert controller.next() == Point(lat=0, lng=0)
    assert controller.next() == Point(lat=0, lng=1)
    p = controller.next()
    assert distance_between(Point(lat=0, lng=1), p) == pytest.approx(5.0)


def test_legs_cycle_sequentially() -> None:
    graph = _graph([(0, 0)], [(0, 1)], [(1, 1)])
    controller = VehicleController.create(graph, average_speed=100, jitter=0, start_index=0)

    legs = [(controller.origin_index, controller.destination_index)]
    for _ in range(12):
        controller.next()
        leg = (controller.origin_index, controller.destination_index)
        if leg != legs[-1]:
            legs.append(leg)

    assert legs[:4] == [(0, 1), (1, 2), (2, 0), (0, 1)]
    assert all(origin != destination for origin, destination in legs)


def test_each_track_is_done_before_replacement() -> None:
    controller = VehicleController.create(DEFAULT_WAYPOINTS, average_speed=0.01, jitter=0.0005, rng=random.Random(3))
    for _ in range(2000):
        before = controller.track
        controller.next()
        if controller.track is not before:
            assert before.is_done()
    assert controller.legs_completed >= 1


def test_leg_rollover_is_continuous() -> None:
    graph = _graph([(0, 0)], [(0, 2)])
    controller = VehicleController.create(graph, average_speed=5, jitter=0, start_index=0)
    assert controller.next() == Point(lat=0, lng=0)
    assert controller.next() == Point(lat=0, lng=2)
    assert controller.legs_completed == 1
    assert controller.leg == ("WP1", "WP0")
    # New leg starts where the previous one ended.
    assert controller.next() == Point(lat=0, lng=2)


def test_setters_ignore_non_positive_values() -> None:
    controller = VehicleController.create(DEFAULT_WAYPOINTS, average_speed=0.02, jitter=0.001)
    controller.set_average_speed(0)
    controller.set_average_speed(-3)
    controller.set_jitter(0)
    controller.set_jitter(-1)
    assert controller.average_speed == 0.02
    assert controller.jitter == 0.001

    controller.set_average_speed(0.5)
    controller.set_jitter(0.01)
    assert controller.parameters.average_speed == 0.5
    assert controller.parameters.jitter == 0.01


@pytest.mark.parametrize("value", [math.inf, -math.inf, math.nan])
def test_setters_ignore_non_finite_values(value: float) -> None:
    controller = VehicleController.create(DEFAULT_WAYPOINTS, average_speed=0.02, jitter=0.001)
    controller.set_average_speed(value)
    controller.set_jitter(value)
    assert controller.parameters.average_speed == 0.02
    assert controller.parameters.jitter == 0.001


def test_huge_jitter_keeps_generating_finite_positions() -> None:
    controller = VehicleController.create(DEFAULT_WAYPOINTS, rng=random.Random(7), start_index=0)
    controller.apply(ControlUpdate.model_validate({"Jitter": 1e200}))

    for _ in range(5):
        point = controller.next()
        assert math.isfinite(point.lat)
        assert math.isfinite(point.lng)


def test_apply_is_sparse_and_idempotent() -> None:
    controller = VehicleController.create(DEFAULT_WAYPOINTS, average_speed=0.02, jitter=0.001)
    update = ControlUpdate(average_speed=0.04)
    first = controller.apply(update)
    second = controller.apply(update)
    assert first == second
    assert first.average_speed == 0.04
    assert first.jitter == 0.001


def test_speed_update_doubles_step_without_resetting_position() -> None:
    graph = _graph([(0, 0)], [(100, 0)])
    controller = VehicleController.create(graph, average_speed=0.02, jitter=0, start_index=0)
    controller.next()
    a = controller.next()
    b = controller.next()
    assert distance_between(a, b) == pytest.approx(0.02)

    controller.apply(ControlUpdate.model_validate({"AverageSpeed": 0.04}))
    c = controller.next()
    d = controller.next()
    assert distance_between(b, c) == pytest.approx(0.04)
    assert distance_between(c, d) == pytest.approx(0.04)
    assert c.lat == pytest.approx(b.lat + 0.04)
