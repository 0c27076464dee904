"""Active navigation: project live GPS fixes onto a route to track progress."""

import queue
import threading
from typing import Callable, NamedTuple, Optional, Protocol, Sequence

from .config import CONFIG
from .geo import cumulative_distances, distance_between, nearest_point_on_polyline
from .gps import LocationCallback, LocationUnavailable
from .logger import Logger
from .models import (
    Coordinate, Failure, FailureKind, LocationFix, NavigationSession, NavigationSnapshot,
    NavigationStatus, RouteRecord,
)

SnapshotListener = Callable[[NavigationSnapshot], None]


class LocationProvider(Protocol):
    def subscribe(self, callback: LocationCallback): ...


class Progress(NamedTuple):
    distance_traveled: float
    distance_remaining: float
    percent: float


def calculate_progress(nearest_index: int, nearest_point: Coordinate,
                       geometry: Sequence[Coordinate], cumulative: Sequence[float],
                       total_distance: float) -> Progress:
    """Distance along the route up to the projected point"""
    if len(geometry) < 2 or total_distance <= 0:
        return Progress(0.0, total_distance, 0.0)

    traveled = cumulative[nearest_index] + distance_between(geometry[nearest_index], nearest_point)
    remaining = max(0.0, total_distance - traveled)
    percent = min(100.0, traveled / total_distance * 100)
    return Progress(traveled, remaining, percent)


def smooth_speed(history: Sequence[float]) -> float:
    """Linearly weighted moving average, newest sample weighted highest.

    Weights run 1..n from oldest to newest.
    """
    readings = [s for s in history if s >= 0]
    if not readings:
        return 0.0
    weighted_sum = 0.0
    total_weight = 0
    for i, speed in enumerate(readings):
        weight = i + 1
        weighted_sum += speed * weight
        total_weight += weight
    return weighted_sum / total_weight


def estimate_time_remaining(distance_remaining: float, speed: Optional[float],
                            stopped_below: Optional[float] = None) -> Optional[float]:
    """Seconds to the end of the route, or None when the rider is stopped"""
    if stopped_below is None:
        stopped_below = CONFIG["stopped_speed_threshold"]
    if speed is None or speed <= stopped_below:
        return None
    return distance_remaining / speed


class LocationChannel:
    """Queue between location providers and the single session writer.

    Providers call put() from their own threads; one consumer thread hands
    each fix to the handler, strictly one at a time.
    """

    _STOP = object()

    def __init__(self, handler: Callable[[LocationFix], object],
                 on_error: Optional[Callable[[Exception], None]] = None):
        self.handler = handler
        self.on_error = on_error
        self.queue: queue.Queue = queue.Queue()
        self.thread = threading.Thread(target=self._run, daemon=True, name="location-channel")
        self.closed = False

    def start(self):
        self.thread.start()

    def put(self, fix: LocationFix):
        if not self.closed:
            self.queue.put(fix)

    def _run(self):
        while True:
            item = self.queue.get()
            try:
                if item is self._STOP:
                    return
                try:
                    self.handler(item)
                except Exception as e:
                    if self.on_error is None:
                        raise
                    self.on_error(e)
            finally:
                self.queue.task_done()

    def wait_idle(self):
        """Block until every queued fix has been handled"""
        self.queue.join()

    def close(self, timeout: float = 5.0):
        if self.closed:
            return
        self.closed = True
        self.queue.put(self._STOP)
        if self.thread.is_alive() and self.thread is not threading.current_thread():
            self.thread.join(timeout)


class NavigationEngine:
    """Owns the one live navigation session.

    Usage:
        engine = NavigationEngine(logger=logger)
        engine.subscribe(print_view)
        engine.start_navigation(route, GPS())
        ...
        engine.stop_navigation()

    Without a provider, feed fixes directly with on_location_update().
    """

    def __init__(self, off_route_threshold: Optional[float] = None,
                 logger: Optional[Logger] = None,
                 on_off_route: Optional[SnapshotListener] = None):
        self.off_route_threshold = (off_route_threshold if off_route_threshold is not None
                                    else CONFIG["off_route_threshold"])
        self.logger = logger
        self.on_off_route = on_off_route
        self.session = NavigationSession()
        self._cumulative: list[float] = []
        self._subscription = None
        self._channel: Optional[LocationChannel] = None
        self._listeners: list[SnapshotListener] = []
        self._snapshot = self._make_snapshot()

    def _log(self, message: str, data: Optional[dict] = None):
        if self.logger:
            self.logger.log(message, data)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def _make_snapshot(self, off_route_alert: bool = False) -> NavigationSnapshot:
        s = self.session
        return NavigationSnapshot(
            route_id=s.route_id,
            route_name=s.route_name,
            status=s.status,
            total_distance=s.total_distance,
            current_location=s.current_location,
            current_speed=s.current_speed,
            current_heading=s.current_heading,
            smoothed_speed=s.smoothed_speed,
            speed_history=tuple(s.speed_history),
            nearest_index=s.nearest_index,
            distance_from_route=s.distance_from_route,
            is_off_route=s.is_off_route,
            distance_traveled=s.distance_traveled,
            distance_remaining=s.distance_remaining,
            progress_percent=s.progress_percent,
            eta_seconds=s.eta_seconds,
            error=s.error,
            off_route_alert=off_route_alert,
        )

    def _publish(self, off_route_alert: bool = False) -> NavigationSnapshot:
        self._snapshot = self._make_snapshot(off_route_alert)
        for listener in list(self._listeners):
            listener(self._snapshot)
        return self._snapshot

    def snapshot(self) -> NavigationSnapshot:
        return self._snapshot

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register for snapshots; returns an unsubscribe function"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    @property
    def status(self) -> NavigationStatus:
        return self.session.status

    @property
    def is_navigating(self) -> bool:
        return self.session.status != NavigationStatus.IDLE

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_navigation(self, route: RouteRecord,
                         provider: Optional[LocationProvider] = None) -> Optional[Failure]:
        """Begin navigating a route, optionally consuming a location provider"""
        if len(route.geometry) < 2:
            return Failure(FailureKind.VALIDATION, "Route needs at least 2 geometry points to navigate")

        if self.is_navigating:
            self.stop_navigation()

        geometry = tuple(route.geometry)
        self._cumulative = cumulative_distances(geometry)
        total = self._cumulative[-1]
        self.session = NavigationSession(
            route_id=route.id,
            route_name=route.name,
            geometry=geometry,
            total_distance=total,
            status=NavigationStatus.ACTIVE,
            distance_remaining=total,
        )
        self._log("Navigation started", {
            "route_id": route.id, "route_name": route.name,
            "points": len(geometry), "distance": round(total, 1),
        })
        self._publish()

        if provider is not None:
            self._channel = LocationChannel(self.on_location_update, on_error=self._on_update_error)
            self._channel.start()
            try:
                self._subscription = provider.subscribe(self._channel.put)
            except LocationUnavailable as e:
                self._log("Location unavailable", {"error": str(e)})
                self.stop_navigation()
                return Failure(FailureKind.EXTERNAL_SERVICE, str(e))
            except Exception:
                self.stop_navigation()
                raise
        return None

    def pause_navigation(self):
        if self.session.status == NavigationStatus.ACTIVE:
            self.session.status = NavigationStatus.PAUSED
            self._log("Navigation paused")
            self._publish()

    def resume_navigation(self):
        if self.session.status == NavigationStatus.PAUSED:
            self.session.status = NavigationStatus.ACTIVE
            self._log("Navigation resumed")
            self._publish()

    def release_provider(self):
        """Stop listening to the location provider, keeping the session.

        Fixes the provider already delivered stay queued; follow with
        wait_idle() to apply them.
        """
        if self._subscription is not None:
            subscription, self._subscription = self._subscription, None
            subscription.remove()

    def stop_navigation(self):
        """End the session, always releasing the location subscription"""
        was_navigating = self.is_navigating
        try:
            if self._subscription is not None:
                self._subscription.remove()
        finally:
            self._subscription = None
            if self._channel is not None:
                self._channel.close()
                self._channel = None
            self._cumulative = []
            self.session = NavigationSession()
        if was_navigating:
            self._log("Navigation stopped")
        self._publish()

    def wait_idle(self):
        """Block until queued location updates have been applied"""
        if self._channel is not None:
            self._channel.wait_idle()

    # ------------------------------------------------------------------
    # Location updates
    # ------------------------------------------------------------------

    def _on_update_error(self, error: Exception):
        self.session.error = "Failed to update navigation"
        self._log("Error updating location", {"error": repr(error)})
        self._publish()

    def on_location_update(self, fix: LocationFix) -> Optional[NavigationSnapshot]:
        """Apply one fix to the session.

        Dropped while idle or paused. A fix with the same timestamp as the
        last applied one changes nothing.
        """
        s = self.session
        if s.status != NavigationStatus.ACTIVE:
            return None
        if fix.timestamp is not None and fix.timestamp == s.last_timestamp:
            return self._snapshot

        position = fix.coordinate
        nearest = nearest_point_on_polyline(position, s.geometry)
        progress = calculate_progress(nearest.index, nearest.point, s.geometry,
                                      self._cumulative, s.total_distance)

        raw_speed = fix.speed if fix.speed is not None and fix.speed >= 0 else 0.0
        s.speed_history.append(raw_speed)

        was_off_route = s.is_off_route
        s.is_off_route = nearest.distance > self.off_route_threshold
        alert = s.is_off_route and not was_off_route

        s.current_location = position
        s.current_speed = fix.speed
        s.current_heading = fix.heading
        s.smoothed_speed = smooth_speed(s.speed_history)
        s.nearest_index = nearest.index
        s.distance_from_route = nearest.distance
        s.distance_traveled = progress.distance_traveled
        s.distance_remaining = progress.distance_remaining
        s.progress_percent = progress.percent
        s.eta_seconds = estimate_time_remaining(progress.distance_remaining, raw_speed)
        s.last_timestamp = fix.timestamp

        if alert:
            self._log("Off route!", {"distance": round(nearest.distance, 1)})

        snapshot = self._publish(off_route_alert=alert)
        if alert and self.on_off_route:
            self.on_off_route(snapshot)
        return snapshot
