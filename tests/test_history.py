from tourer.history import RouteHistory
from tourer.models import Coordinate, Waypoint, WaypointKind


def _wp(n):
    return Waypoint(id=f"wp{n}", coordinate=Coordinate(0, n * 0.001), kind=WaypointKind.START, order=0)


def test_empty_history():
    history = RouteHistory()
    assert history.index == -1
    assert history.current is None
    assert not history.can_undo()
    assert not history.can_redo()
    assert history.undo() is None
    assert history.redo() is None


def test_undo_redo_walks_the_cursor():
    history = RouteHistory()
    for n in range(3):
        history.push([_wp(n)], [])

    assert history.undo().waypoints == (_wp(1),)
    assert history.undo().waypoints == (_wp(0),)
    assert not history.can_undo()
    assert history.undo() is None

    assert history.redo().waypoints == (_wp(1),)
    assert history.redo().waypoints == (_wp(2),)
    assert not history.can_redo()


def test_push_discards_redo_states():
    history = RouteHistory()
    for n in range(3):
        history.push([_wp(n)], [])
    history.undo()
    history.undo()
    history.push([_wp(9)], [])

    assert len(history) == 2
    assert not history.can_redo()
    assert history.current.waypoints == (_wp(9),)


def test_cap_evicts_oldest_first():
    history = RouteHistory(max_size=50)
    for n in range(60):
        history.push([_wp(n)], [])

    assert len(history) == 50
    assert history.index == 49
    assert history.entries[0].waypoints == (_wp(10),)
    assert history.current.waypoints == (_wp(59),)


def test_eviction_keeps_cursor_on_same_entry():
    history = RouteHistory(max_size=3)
    for n in range(3):
        history.push([_wp(n)], [])
    history.push([_wp(3)], [])
    assert history.index == 2
    assert history.current.waypoints == (_wp(3),)


def test_entries_do_not_alias_caller_lists():
    history = RouteHistory()
    waypoints = [_wp(0)]
    history.push(waypoints, [Coordinate(0, 0)])
    waypoints.append(_wp(1))
    assert history.current.waypoints == (_wp(0),)
