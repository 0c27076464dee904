"""Map a press on the route line back to a waypoint-to-waypoint segment."""

from dataclasses import dataclass
from typing import Optional, Sequence

from .config import CONFIG
from .geo import NearestPoint, cumulative_distances, distance_between, nearest_point_on_polyline
from .models import Coordinate, Failure, FailureKind, Waypoint
from .planner import RoutePlanner


@dataclass(frozen=True)
class SegmentInfo:
    segment_index: int  # 0 = between waypoint 0 and 1
    insert_at_index: int  # position for the new via waypoint
    nearest_geometry_index: int
    distance_to_route: float  # meters
    nearest_coordinate: Coordinate


def is_within_route_threshold(distance: float, threshold: Optional[float] = None) -> bool:
    if threshold is None:
        threshold = CONFIG["route_press_threshold"]
    return distance <= threshold


def _distance_along(point: Coordinate, geometry: Sequence[Coordinate],
                    cumulative: Sequence[float]) -> tuple[float, NearestPoint]:
    nearest = nearest_point_on_polyline(point, geometry)
    along = cumulative[nearest.index] + distance_between(geometry[nearest.index], nearest.point)
    return along, nearest


def find_route_segment_for_insertion(pressed: Coordinate, waypoints: Sequence[Waypoint],
                                     geometry: Sequence[Coordinate],
                                     threshold: Optional[float] = None) -> Optional[SegmentInfo]:
    """Work out where a via waypoint pressed on the route line belongs.

    The press and every waypoint are projected onto the route geometry; the
    press falls in the last waypoint span whose along-route distances bracket
    it. Returns None when there is nothing to insert between or the press is
    too far from the route.
    """
    if len(waypoints) < 2 or len(geometry) < 2:
        return None

    cumulative = cumulative_distances(geometry)
    press_distance, nearest = _distance_along(pressed, geometry, cumulative)

    if not is_within_route_threshold(nearest.distance, threshold):
        return None

    waypoint_distances = [
        _distance_along(wp.coordinate, geometry, cumulative)[0] for wp in waypoints
    ]

    segment_index = 0
    for i in range(len(waypoint_distances) - 1):
        if waypoint_distances[i] <= press_distance <= waypoint_distances[i + 1]:
            segment_index = i

    return SegmentInfo(
        segment_index=segment_index,
        insert_at_index=segment_index + 1,
        nearest_geometry_index=nearest.index,
        distance_to_route=nearest.distance,
        nearest_coordinate=nearest.point,
    )


class RouteDrag:
    """Press-preview-confirm flow for adding via waypoints from the route line"""

    def __init__(self, planner: RoutePlanner, threshold: Optional[float] = None):
        self.planner = planner
        self.threshold = threshold
        self.preview: Optional[SegmentInfo] = None

    @property
    def is_dragging(self) -> bool:
        return self.preview is not None

    def press(self, coordinate: Coordinate) -> Optional[SegmentInfo]:
        """Start a preview if the press lands on the route"""
        self.preview = find_route_segment_for_insertion(
            coordinate, self.planner.waypoints, self.planner.geometry, self.threshold
        )
        return self.preview

    def confirm(self) -> Optional[Failure]:
        """Insert the previewed via waypoint at its on-route position"""
        preview = self.preview
        self.preview = None
        if preview is None:
            return Failure(FailureKind.VALIDATION, "No route press to confirm")
        return self.planner.insert_via_waypoint(preview.nearest_coordinate, preview.insert_at_index)

    def cancel(self):
        self.preview = None
