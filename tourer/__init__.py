"""Tourer - Bicycle touring route planner and ride companion."""

from .config import CONFIG
from .models import (
    Coordinate,
    WaypointKind,
    Waypoint,
    PlanningMode,
    NavigationStatus,
    FailureKind,
    Failure,
    HistoryEntry,
    CalculatedRoute,
    RouteRecord,
    LocationFix,
    NavigationSnapshot,
)
from .logger import Logger
from .geo import (
    haversine_distance,
    distance_between,
    bearing_between,
    project_point_onto_segment,
    nearest_point_on_polyline,
    cumulative_distances,
    path_distance,
    retry_with_backoff,
)
from .history import RouteHistory
from .routing import RoutingClient, RoutingError
from .planner import RoutePlanner, assign_waypoint_kinds
from .segment_editor import SegmentInfo, RouteDrag, find_route_segment_for_insertion
from .gps import GPS, GPSRecorder, GPSPlayback, LocationUnavailable
from .navigation import NavigationEngine, LocationChannel
from .display import NavigationView, build_view
from .store import RouteStore
from .gpx import route_to_gpx, parse_gpx, gpx_to_route
from .app import Tourer
from .__main__ import main

__all__ = [
    "CONFIG",
    "Coordinate",
    "WaypointKind",
    "Waypoint",
    "PlanningMode",
    "NavigationStatus",
    "FailureKind",
    "Failure",
    "HistoryEntry",
    "CalculatedRoute",
    "RouteRecord",
    "LocationFix",
    "NavigationSnapshot",
    "Logger",
    "haversine_distance",
    "distance_between",
    "bearing_between",
    "project_point_onto_segment",
    "nearest_point_on_polyline",
    "cumulative_distances",
    "path_distance",
    "retry_with_backoff",
    "RouteHistory",
    "RoutingClient",
    "RoutingError",
    "RoutePlanner",
    "assign_waypoint_kinds",
    "SegmentInfo",
    "RouteDrag",
    "find_route_segment_for_insertion",
    "GPS",
    "GPSRecorder",
    "GPSPlayback",
    "LocationUnavailable",
    "NavigationEngine",
    "LocationChannel",
    "NavigationView",
    "build_view",
    "RouteStore",
    "route_to_gpx",
    "parse_gpx",
    "gpx_to_route",
    "Tourer",
    "main",
]
