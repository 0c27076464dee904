import pytest

from tourer.models import Coordinate, FailureKind, PlanningMode, WaypointKind
from tourer.planner import RoutePlanner
from tourer.segment_editor import RouteDrag, find_route_segment_for_insertion, is_within_route_threshold


@pytest.fixture
def three_stop_planner(quiet_logger, fake_router):
    """Waypoints at 0, 0.002 and 0.004 degrees east along the equator, freeform geometry"""
    planner = RoutePlanner(fake_router, quiet_logger)
    planner.start_planning(PlanningMode.FREEFORM)
    for lon in (0.0, 0.002, 0.004):
        planner.add_waypoint(Coordinate(0, lon))
    planner.calculate_route()
    return planner


def test_threshold_is_inclusive():
    assert is_within_route_threshold(50)
    assert not is_within_route_threshold(50.1)
    assert is_within_route_threshold(10, threshold=10)


def test_press_in_first_span(three_stop_planner):
    p = three_stop_planner
    info = find_route_segment_for_insertion(Coordinate(0.0001, 0.001), p.waypoints, p.geometry)
    assert info.segment_index == 0
    assert info.insert_at_index == 1
    assert info.nearest_geometry_index == 0
    assert info.distance_to_route == pytest.approx(11.1, abs=0.1)
    assert info.nearest_coordinate.latitude == pytest.approx(0, abs=1e-9)
    assert info.nearest_coordinate.longitude == pytest.approx(0.001)


def test_press_in_second_span(three_stop_planner):
    p = three_stop_planner
    info = find_route_segment_for_insertion(Coordinate(0, 0.003), p.waypoints, p.geometry)
    assert info.segment_index == 1
    assert info.insert_at_index == 2


def test_press_too_far_from_route(three_stop_planner):
    p = three_stop_planner
    # ~111 m north of the line
    assert find_route_segment_for_insertion(Coordinate(0.001, 0.001), p.waypoints, p.geometry) is None


def test_needs_two_waypoints_and_geometry():
    wp_geometry = (Coordinate(0, 0), Coordinate(0, 0.001))
    assert find_route_segment_for_insertion(Coordinate(0, 0.0005), (), wp_geometry) is None


def test_drag_confirm_inserts_via_on_route(three_stop_planner):
    p = three_stop_planner
    drag = RouteDrag(p)
    assert drag.press(Coordinate(0.0001, 0.003)) is not None
    assert drag.is_dragging

    assert drag.confirm() is None
    assert not drag.is_dragging
    assert len(p.waypoints) == 4
    inserted = p.waypoints[2]
    assert inserted.kind == WaypointKind.VIA
    # Snapped onto the route line, not the raw press
    assert inserted.coordinate.latitude == pytest.approx(0, abs=1e-9)
    assert inserted.coordinate.longitude == pytest.approx(0.003)


def test_drag_cancel_and_empty_confirm(three_stop_planner):
    drag = RouteDrag(three_stop_planner)
    drag.press(Coordinate(0, 0.001))
    drag.cancel()
    assert not drag.is_dragging
    failure = drag.confirm()
    assert failure.kind == FailureKind.VALIDATION
    assert len(three_stop_planner.waypoints) == 3
