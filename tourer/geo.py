"""Geographic utility functions."""

from __future__ import annotations

import math
import time
from typing import TYPE_CHECKING, NamedTuple, Optional, Sequence

from .models import Coordinate

if TYPE_CHECKING:
    from .logger import Logger

EARTH_RADIUS_M = 6371000


class NearestPoint(NamedTuple):
    index: int  # start point of the nearest segment
    distance: float  # meters from the query point
    point: Coordinate  # projected point on the polyline


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points in meters using Haversine formula"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def distance_between(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between two coordinates in meters"""
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def bearing_between(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate bearing from point 1 to point 2 in degrees (0-360, 0=North)"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)

    x = math.sin(delta_lambda) * math.cos(phi2)
    y = (math.cos(phi1) * math.sin(phi2) -
         math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda))

    bearing = math.degrees(math.atan2(x, y))
    return (bearing + 360) % 360


def project_point_onto_segment(point: Coordinate, seg_start: Coordinate,
                               seg_end: Coordinate) -> tuple[float, Coordinate]:
    """Project a point onto a segment, returning (distance_m, closest_point).

    The projection parameter is clamped to [0, 1] so the closest point never
    leaves the segment. Longitudes are scaled by cos(latitude) so the
    projection is perpendicular on the ground rather than in degree space.
    """
    kx = math.cos(math.radians((seg_start.latitude + seg_end.latitude) / 2))
    dx = (seg_end.longitude - seg_start.longitude) * kx
    dy = seg_end.latitude - seg_start.latitude

    if dx == 0 and dy == 0:
        return distance_between(point, seg_start), seg_start

    px = (point.longitude - seg_start.longitude) * kx
    py = point.latitude - seg_start.latitude
    t = max(0.0, min(1.0, (px * dx + py * dy) / (dx * dx + dy * dy)))

    closest = Coordinate(
        latitude=seg_start.latitude + t * (seg_end.latitude - seg_start.latitude),
        longitude=seg_start.longitude + t * (seg_end.longitude - seg_start.longitude),
    )
    return distance_between(point, closest), closest


def nearest_point_on_polyline(point: Coordinate,
                              polyline: Sequence[Coordinate]) -> NearestPoint:
    """Find the closest point on a polyline with a linear scan over its segments.

    Ties resolve to the earliest segment.
    """
    if not polyline:
        return NearestPoint(0, math.inf, point)
    if len(polyline) == 1:
        return NearestPoint(0, distance_between(point, polyline[0]), polyline[0])

    nearest = NearestPoint(0, math.inf, polyline[0])
    for i in range(len(polyline) - 1):
        distance, closest = project_point_onto_segment(point, polyline[i], polyline[i + 1])
        if distance < nearest.distance:
            nearest = NearestPoint(i, distance, closest)
    return nearest


def cumulative_distances(polyline: Sequence[Coordinate]) -> list[float]:
    """Running distance from the first point to each point, in meters"""
    if not polyline:
        return []
    distances = [0.0]
    for i in range(1, len(polyline)):
        distances.append(distances[-1] + distance_between(polyline[i - 1], polyline[i]))
    return distances


def path_distance(polyline: Sequence[Coordinate]) -> float:
    """Total length of a polyline in meters"""
    total = 0.0
    for i in range(1, len(polyline)):
        total += distance_between(polyline[i - 1], polyline[i])
    return total


def coordinate_at_distance(polyline: Sequence[Coordinate], target_distance: float,
                           cumulative: Optional[Sequence[float]] = None) -> Optional[Coordinate]:
    """Interpolate the coordinate at an along-route distance.

    Distances past the end clamp to the last point.
    """
    if not polyline:
        return None
    if len(polyline) == 1:
        return polyline[0]

    distances = cumulative if cumulative is not None else cumulative_distances(polyline)
    for i in range(1, len(distances)):
        if distances[i] >= target_distance:
            seg_start = distances[i - 1]
            seg_length = distances[i] - seg_start
            if seg_length == 0:
                return polyline[i - 1]
            ratio = max(0.0, (target_distance - seg_start) / seg_length)
            a, b = polyline[i - 1], polyline[i]
            return Coordinate(
                latitude=a.latitude + (b.latitude - a.latitude) * ratio,
                longitude=a.longitude + (b.longitude - a.longitude) * ratio,
            )
    return polyline[-1]


def sample_path(polyline: Sequence[Coordinate], step: float) -> list[Coordinate]:
    """Points every `step` meters along the polyline, both ends included"""
    if not polyline:
        return []
    if step <= 0:
        raise ValueError("step must be positive")
    distances = cumulative_distances(polyline)
    total = distances[-1]
    samples = []
    d = 0.0
    while d < total:
        samples.append(coordinate_at_distance(polyline, d, distances))
        d += step
    samples.append(polyline[-1])
    return samples


def retry_with_backoff(func, max_time: float = 30.0, initial_delay: float = 1.0,
                       max_delay: float = 8.0, description: str = "operation",
                       logger: Optional["Logger"] = None):
    """Retry a function with exponential backoff.

    Args:
        func: Function that returns a truthy value on success, falsy on failure
        max_time: Maximum total time to retry (seconds)
        initial_delay: Initial delay between retries (seconds)
        max_delay: Maximum delay between retries (seconds)
        description: Description for logging
        logger: Where to report retries; silent when omitted

    Returns:
        The result of func() on success, or None if all retries failed
    """
    start_time = time.time()
    delay = initial_delay
    attempt = 1

    while True:
        result = func()
        if result:
            return result

        elapsed = time.time() - start_time
        if elapsed >= max_time:
            if logger:
                logger.log(f"Failed to complete {description}",
                           {"elapsed": round(elapsed, 1), "attempts": attempt})
            return None

        remaining = max_time - elapsed
        sleep_time = min(delay, remaining, max_delay)
        if sleep_time > 0:
            if logger:
                logger.log(f"Retrying {description}",
                           {"delay": round(sleep_time, 1), "attempt": attempt})
            time.sleep(sleep_time)

        delay = min(delay * 2, max_delay)
        attempt += 1
