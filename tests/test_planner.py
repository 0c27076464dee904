import random

import pytest

from tourer.models import Coordinate, FailureKind, PlanningMode, WaypointKind
from tourer.planner import ROUTE_FAILED_MESSAGE, RoutePlanner, assign_waypoint_kinds


def assert_kinds_valid(waypoints):
    assert [wp.order for wp in waypoints] == list(range(len(waypoints)))
    if len(waypoints) == 1:
        assert waypoints[0].kind == WaypointKind.START
    if len(waypoints) >= 2:
        assert waypoints[0].kind == WaypointKind.START
        assert waypoints[-1].kind == WaypointKind.END
        assert all(wp.kind == WaypointKind.VIA for wp in waypoints[1:-1])


@pytest.fixture
def planner(fake_router, quiet_logger):
    p = RoutePlanner(fake_router, quiet_logger)
    p.start_planning(PlanningMode.POINT_TO_POINT)
    return p


def add_points(planner, count):
    for n in range(count):
        assert planner.add_waypoint(Coordinate(52.0 + n * 0.01, 4.0)) is None


def test_add_waypoint_assigns_kinds(planner):
    planner.add_waypoint(Coordinate(52.0, 4.0))
    assert planner.waypoints[0].kind == WaypointKind.START

    planner.add_waypoint(Coordinate(52.1, 4.0))
    planner.add_waypoint(Coordinate(52.2, 4.0))
    assert [wp.kind for wp in planner.waypoints] == [WaypointKind.START, WaypointKind.VIA, WaypointKind.END]
    assert_kinds_valid(planner.waypoints)


def test_kind_invariant_holds_for_random_edits(planner):
    rng = random.Random(7)
    for _ in range(200):
        op = rng.choice(["add", "remove", "reorder"])
        if op == "add" or not planner.waypoints:
            planner.add_waypoint(Coordinate(rng.uniform(-80, 80), rng.uniform(-170, 170)))
        elif op == "remove":
            planner.remove_waypoint(rng.choice(planner.waypoints).id)
        else:
            n = len(planner.waypoints)
            planner.reorder_waypoints(rng.randrange(n), rng.randrange(n))
        assert_kinds_valid(planner.waypoints)


def test_assign_waypoint_kinds_is_pure(planner):
    add_points(planner, 3)
    original = planner.waypoints
    reordered = assign_waypoint_kinds([original[2], original[0], original[1]])
    assert original == planner.waypoints
    assert reordered[0].id == original[2].id
    assert_kinds_valid(reordered)


def test_undo_k_times_restores_loaded_route(fake_router, quiet_logger, equator_route):
    planner = RoutePlanner(fake_router, quiet_logger)
    planner.load_existing_route(equator_route)
    before = (planner.waypoints, planner.geometry)
    assert planner.mode == PlanningMode.MODIFY_EXISTING
    assert planner.base_route_id == equator_route.id
    assert not planner.can_undo()

    planner.add_waypoint(Coordinate(0, 0.003))
    planner.insert_via_waypoint(Coordinate(0, 0.0015), 1)
    planner.reorder_waypoints(0, 2)
    planner.remove_waypoint(planner.waypoints[1].id)

    for _ in range(4):
        planner.undo()

    assert (planner.waypoints, planner.geometry) == before
    assert not planner.can_undo()
    assert planner.can_redo()


def test_redo_reapplies(planner):
    add_points(planner, 2)
    after = planner.waypoints
    planner.undo()
    assert len(planner.waypoints) == 1
    planner.redo()
    assert planner.waypoints == after


def test_history_is_capped(planner):
    add_points(planner, 60)
    assert len(planner.history) == 50
    undos = 0
    while planner.can_undo():
        planner.undo()
        undos += 1
    assert undos == 49
    # The first ten states were evicted
    assert len(planner.waypoints) == 11


def test_move_commits_one_history_entry(planner):
    add_points(planner, 2)
    entries = len(planner.history)
    wp_id = planner.waypoints[1].id
    original = planner.waypoints[1].coordinate
    for n in range(5):
        planner.move_waypoint(wp_id, Coordinate(53.0 + n * 0.001, 4.0))
    assert len(planner.history) == entries
    planner.finish_move_waypoint()
    assert len(planner.history) == entries + 1
    planner.finish_move_waypoint()
    assert len(planner.history) == entries + 1

    planner.undo()
    assert planner.waypoints[1].coordinate == original


def test_insert_via_waypoint(planner):
    add_points(planner, 2)
    assert planner.insert_via_waypoint(Coordinate(52.005, 4.0), 1) is None
    assert len(planner.waypoints) == 3
    assert planner.waypoints[1].coordinate == Coordinate(52.005, 4.0)
    assert_kinds_valid(planner.waypoints)

    # Out-of-range indexes are clamped between start and end
    planner.insert_via_waypoint(Coordinate(52.001, 4.0), 0)
    planner.insert_via_waypoint(Coordinate(52.009, 4.0), 99)
    assert planner.waypoints[1].coordinate == Coordinate(52.001, 4.0)
    assert planner.waypoints[-2].coordinate == Coordinate(52.009, 4.0)
    assert_kinds_valid(planner.waypoints)


def test_insert_via_needs_two_waypoints(planner):
    add_points(planner, 1)
    failure = planner.insert_via_waypoint(Coordinate(52.0, 4.1), 1)
    assert failure.kind == FailureKind.VALIDATION


def test_remove_unknown_waypoint(planner):
    add_points(planner, 2)
    entries = len(planner.history)
    failure = planner.remove_waypoint("nope")
    assert failure.kind == FailureKind.NOT_FOUND
    assert len(planner.waypoints) == 2
    assert len(planner.history) == entries


def test_reorder_out_of_range(planner):
    add_points(planner, 2)
    before = planner.waypoints
    failure = planner.reorder_waypoints(0, 5)
    assert failure.kind == FailureKind.VALIDATION
    assert planner.waypoints == before


def test_mutations_rejected_when_not_planning(fake_router):
    planner = RoutePlanner(fake_router)
    failure = planner.add_waypoint(Coordinate(0, 0))
    assert failure.kind == FailureKind.VALIDATION
    assert planner.waypoints == ()


def test_calculate_requires_two_waypoints(planner, fake_router):
    add_points(planner, 1)
    failure = planner.calculate_route()
    assert failure.kind == FailureKind.VALIDATION
    assert planner.geometry == ()
    assert fake_router.calls == []


def test_calculate_uses_router(planner, fake_router):
    add_points(planner, 2)
    entries = len(planner.history)
    assert planner.calculate_route("bike") is None
    assert len(planner.geometry) == 3
    assert planner.distance == 1234.0
    assert planner.duration == 300.0
    assert fake_router.calls[0][1] == "bike"
    assert not planner.is_calculating
    assert len(planner.history) == entries


def test_freeform_connects_waypoints_directly(fake_router, quiet_logger):
    planner = RoutePlanner(fake_router, quiet_logger)
    planner.start_planning(PlanningMode.FREEFORM)
    add_points(planner, 3)
    assert planner.calculate_route() is None
    assert planner.geometry == tuple(wp.coordinate for wp in planner.waypoints)
    assert planner.distance == pytest.approx(2 * 1111.95, rel=1e-3)
    assert fake_router.calls == []


def test_routing_failure_keeps_previous_geometry(planner, failing_router):
    add_points(planner, 2)
    planner.calculate_route()
    good = planner.geometry

    planner.router = failing_router
    planner.add_waypoint(Coordinate(52.5, 4.0))
    failure = planner.calculate_route()

    assert failure.kind == FailureKind.EXTERNAL_SERVICE
    assert planner.error == ROUTE_FAILED_MESSAGE
    assert planner.geometry == good
    assert not planner.is_calculating

    planner.clear_error()
    assert planner.error is None


def test_undo_to_different_geometry_clears_distance(planner):
    add_points(planner, 2)
    planner.calculate_route()
    planner.add_waypoint(Coordinate(52.5, 4.0))
    planner.calculate_route()
    assert planner.distance == 1234.0
    planner.undo()
    assert planner.distance is None


def test_prepare_for_save(planner):
    add_points(planner, 2)
    planner.calculate_route()
    record = planner.prepare_for_save("Commute", "to work")
    assert record.name == "Commute"
    assert record.description == "to work"
    assert record.mode == PlanningMode.POINT_TO_POINT
    assert record.waypoints == planner.waypoints
    assert record.geometry == planner.geometry
    assert record.distance == 1234.0
    assert record.created_at == record.updated_at

    again = planner.prepare_for_save("Commute")
    assert again.id != record.id


def test_cancel_planning_resets(planner):
    add_points(planner, 2)
    planner.cancel_planning()
    assert not planner.is_planning
    assert planner.mode is None
    assert planner.waypoints == ()
    assert len(planner.history) == 0


def test_clear_waypoints_can_be_undone(fake_router, quiet_logger, equator_route):
    planner = RoutePlanner(fake_router, quiet_logger)
    planner.load_existing_route(equator_route)
    before = (planner.waypoints, planner.geometry)

    assert planner.clear_waypoints() is None
    assert planner.waypoints == ()
    assert planner.geometry == ()
    assert planner.distance is None

    planner.undo()
    assert (planner.waypoints, planner.geometry) == before


def test_clear_waypoints_rejected_when_not_planning(fake_router):
    planner = RoutePlanner(fake_router)
    failure = planner.clear_waypoints()
    assert failure.kind == FailureKind.VALIDATION
    assert len(planner.history) == 0


def test_set_geometry_resets_distance_and_duration(planner):
    add_points(planner, 2)
    planner.calculate_route()
    assert planner.distance == 1234.0

    drawn = [Coordinate(52.0, 4.0), Coordinate(52.005, 4.002), Coordinate(52.01, 4.0)]
    planner.set_geometry(drawn)
    assert planner.geometry == tuple(drawn)
    assert planner.distance is None
    assert planner.duration is None
    assert planner.instructions == ()


def test_first_waypoint_of_new_route_cannot_be_undone(planner):
    add_points(planner, 1)
    assert not planner.can_undo()
    planner.undo()
    assert len(planner.waypoints) == 1

    add_points(planner, 1)
    assert planner.can_undo()
    planner.undo()
    assert len(planner.waypoints) == 1
    assert not planner.can_undo()
