import pytest

from tourer.gps import LocationUnavailable
from tourer.logger import Logger
from tourer.models import CalculatedRoute, Coordinate, PlanningMode, RouteRecord, WaypointKind, Waypoint
from tourer.routing import RoutingError


class FakeRouter:
    """Stands in for RoutingClient; returns a canned route or raises"""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def route(self, coordinates, profile=None):
        self.calls.append((list(coordinates), profile))
        if self.error:
            raise RoutingError(self.error)
        if self.result is not None:
            return self.result
        # Road-ish geometry: the waypoints with a midpoint between each pair
        geometry = [coordinates[0]]
        for a, b in zip(coordinates, coordinates[1:]):
            geometry.append(Coordinate((a.latitude + b.latitude) / 2, (a.longitude + b.longitude) / 2))
            geometry.append(b)
        return CalculatedRoute(geometry=tuple(geometry), distance=1234.0, duration=300.0)


class FakeProvider:
    """Location provider that delivers fixes only when the test pushes them"""

    def __init__(self, unavailable=False):
        self.unavailable = unavailable
        self.callback = None
        self.removed = 0

    def subscribe(self, callback):
        if self.unavailable:
            raise LocationUnavailable("no location permission")
        self.callback = callback
        return self

    def remove(self):
        self.removed += 1
        self.callback = None

    def push(self, fix):
        self.callback(fix)


@pytest.fixture
def quiet_logger():
    return Logger(echo=False)


@pytest.fixture
def fake_router():
    return FakeRouter()


@pytest.fixture
def equator_geometry():
    # ~111 m per segment along the equator
    return (Coordinate(0, 0), Coordinate(0, 0.001), Coordinate(0, 0.002))


def make_route(geometry, name="Test route", route_id="route-1"):
    waypoints = (
        Waypoint(id="wp-a", coordinate=geometry[0], kind=WaypointKind.START, order=0),
        Waypoint(id="wp-b", coordinate=geometry[-1], kind=WaypointKind.END, order=1),
    )
    return RouteRecord(
        id=route_id,
        name=name,
        mode=PlanningMode.POINT_TO_POINT,
        waypoints=waypoints,
        geometry=tuple(geometry),
        distance=0.0,
        created_at="2024-05-01T10:00:00+00:00",
        updated_at="2024-05-01T10:00:00+00:00",
    )


@pytest.fixture
def equator_route(equator_geometry):
    return make_route(equator_geometry)


@pytest.fixture
def route_factory():
    return make_route


@pytest.fixture
def failing_router():
    return FakeRouter(error="HTTP 503")


@pytest.fixture
def provider_factory():
    return FakeProvider
