"""Main Tourer application."""

import threading
import time
from typing import Optional, Sequence

from .config import CONFIG
from .display import build_view, format_distance, format_duration
from .geo import retry_with_backoff
from .gps import GPS, GPSPlayback, GPSRecorder
from .gpx import read_gpx, write_gpx
from .logger import Logger
from .models import Coordinate, NavigationSnapshot, PlanningMode, RouteRecord
from .navigation import NavigationEngine
from .planner import RoutePlanner
from .route_map import save_route_map
from .routing import RoutingClient
from .store import RouteStore


class Tourer:
    """Main application"""

    def __init__(self, log_path: Optional[str] = None, db_path: Optional[str] = None,
                 off_route_threshold: Optional[float] = None,
                 router: Optional[RoutingClient] = None,
                 echo: bool = True):
        self.gps = GPS()
        self.store = RouteStore(db_path)
        self.logger = Logger(log_path, echo=echo)
        self.planner = RoutePlanner(router or RoutingClient(), self.logger)
        self.engine = NavigationEngine(off_route_threshold, self.logger,
                                       on_off_route=self._on_off_route)

        self.last_log_update = 0.0
        self.ride_start_time = 0.0
        self._finished = threading.Event()

        # GPS source (can be swapped for recording/playback)
        self.gps_source = self.gps

    def set_gps_source(self, source):
        """Set GPS source (GPS, GPSRecorder, or GPSPlayback)"""
        self.gps_source = source

    def get_state(self, snapshot: Optional[NavigationSnapshot] = None) -> dict:
        """Get current state as dict for logging"""
        snapshot = snapshot or self.engine.snapshot()
        state = {
            "status": snapshot.status.value,
            "progress": round(snapshot.progress_percent, 1),
            "traveled": round(snapshot.distance_traveled, 1),
            "remaining": round(snapshot.distance_remaining, 1),
            "speed": round(snapshot.smoothed_speed, 2),
            "off_route": snapshot.is_off_route,
            "distance_from_route": round(snapshot.distance_from_route, 1),
            "gps_status": self.gps_source.get_status(),
        }
        if snapshot.current_location:
            state["location"] = snapshot.current_location.to_dict()
        return state

    def close(self):
        self.store.close()
        self.logger.close()

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def plan_route(self, coordinates: Sequence[Coordinate], name: str,
                   description: Optional[str] = None, freeform: bool = False,
                   profile: Optional[str] = None) -> Optional[RouteRecord]:
        """Plan a route through the given points, calculate it and save it"""
        mode = PlanningMode.FREEFORM if freeform else PlanningMode.POINT_TO_POINT
        self.planner.start_planning(mode)
        for coordinate in coordinates:
            self.planner.add_waypoint(coordinate)

        if not self.planner.can_calculate():
            print("At least 2 waypoints are needed to plan a route")
            self.planner.cancel_planning()
            return None

        print("Calculating route...")
        calculated = retry_with_backoff(
            lambda: self.planner.calculate_route(profile) is None,
            max_time=CONFIG["routing_retry_time"],
            initial_delay=2.0,
            max_delay=8.0,
            description="Route calculation",
            logger=self.logger
        )
        if not calculated:
            print(self.planner.error or "Could not calculate route")
            self.planner.cancel_planning()
            return None

        route = self.planner.prepare_for_save(name, description)
        self.store.save(route)
        self.planner.cancel_planning()
        self.logger.log("Route saved", {"route_id": route.id, "name": route.name,
                                        "distance": round(route.distance, 1)})
        return route

    def import_gpx(self, path: str, name: Optional[str] = None) -> RouteRecord:
        route = read_gpx(path, name)
        self.store.save(route)
        self.logger.log("Route imported", {"route_id": route.id, "file": path,
                                           "points": len(route.geometry)})
        return route

    def get_route(self, route_id: str) -> Optional[RouteRecord]:
        route = self.store.get(route_id)
        if not route:
            print(f"No route with id {route_id}")
        return route

    def delete_route(self, route_id: str) -> bool:
        deleted = self.store.delete(route_id)
        if deleted:
            self.logger.log("Route deleted", {"route_id": route_id})
        else:
            print(f"No route with id {route_id}")
        return deleted

    def list_routes(self):
        routes = self.store.list()
        if not routes:
            print("No saved routes")
            return
        for r in routes:
            print(f"{r['id']}  {r['name']:<30} {format_distance(r['distance']):>9}  "
                  f"{r['waypoint_count']} waypoints  {r['mode']}  {r['updated_at'][:16]}")

    def display_route_summary(self, route: RouteRecord):
        """Print a summary of a route"""
        print("\n" + "=" * 60)
        print(f"ROUTE: {route.name}")
        print("=" * 60)
        if route.description:
            print(route.description)
        print(f"\nId: {route.id}")
        print(f"Mode: {route.mode.value}")
        print(f"Distance: {format_distance(route.distance)}")
        print(f"Duration: {format_duration(route.duration)}")
        print(f"Geometry points: {len(route.geometry)}")

        print("\n" + "-" * 60)
        print("WAYPOINTS")
        print("-" * 60)
        for wp in route.waypoints:
            label = f" {wp.name}" if wp.name else ""
            print(f"{wp.order:>3} {wp.kind.value:<5} {wp.coordinate.latitude:.5f}, "
                  f"{wp.coordinate.longitude:.5f}{label}")
        print("=" * 60)

    def export_gpx(self, route: RouteRecord, path: str):
        write_gpx(route, path)
        print(f"\nGPX route saved to: {path}")
        print(f"  {len(route.waypoints)} waypoints, {len(route.geometry)} track points")
        print("  Import into OsmAnd: Menu -> My Places -> Tracks -> Import")

    def export_html(self, route: RouteRecord, path: str):
        save_route_map(route, path)
        print(f"\nRoute visualization saved to: {path}")

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _on_off_route(self, snapshot: NavigationSnapshot):
        print(f"Off route! {format_distance(snapshot.distance_from_route)} from the route")

    def _on_snapshot(self, snapshot: NavigationSnapshot):
        if not snapshot.is_navigating:
            return
        if snapshot.current_location:
            print(build_view(snapshot).status_line())

        now = time.time()
        if now - self.last_log_update >= CONFIG["log_interval"]:
            self.logger.log("STATE", self.get_state(snapshot))
            self.last_log_update = now

        if snapshot.progress_percent >= 100 and not self._finished.is_set():
            self.logger.log("Route complete")
            print("Route complete!")
            self._finished.set()

    def is_playback_finished(self) -> bool:
        if isinstance(self.gps_source, GPSPlayback):
            return self.gps_source.is_finished()
        return False

    def navigate(self, route_id: str) -> bool:
        """Ride a saved route until it is complete, playback ends, or Ctrl+C"""
        route = self.get_route(route_id)
        if not route:
            return False

        print(f"\n=== Tourer: {route.name} ===")
        print(f"Distance: {format_distance(route.distance)}")
        if isinstance(self.gps_source, GPSPlayback):
            print(f"Playback mode: {self.gps_source.speed}x speed")
        print("Press Ctrl+C to stop\n")

        self._finished.clear()
        unsubscribe = self.engine.subscribe(self._on_snapshot)
        failure = self.engine.start_navigation(route, self.gps_source)
        if failure:
            unsubscribe()
            print(f"Could not start navigation: {failure.message}")
            return False

        self.ride_start_time = time.time()
        self.last_log_update = self.ride_start_time
        try:
            while not self._finished.wait(CONFIG["gps_poll_interval"]):
                if self.is_playback_finished():
                    print("\nPlayback finished")
                    self.logger.log("Playback finished")
                    break
        except KeyboardInterrupt:
            print("\nRide interrupted")
            self.logger.log("Ride interrupted by user")
        finally:
            # Join the poll thread first so its last fix is queued
            self.engine.release_provider()
            self.engine.wait_idle()
            last = self.engine.snapshot()
            self.engine.stop_navigation()
            unsubscribe()

            # Save GPS recording if applicable
            if isinstance(self.gps_source, GPSRecorder):
                self.gps_source.save()

            summary = {
                "route_id": route.id,
                "distance": last.distance_traveled,
                "progress": last.progress_percent,
                "duration": time.time() - self.ride_start_time,
            }
            self.logger.log("Ride summary", summary)

            print(f"\nRide summary:")
            print(f"  Distance: {format_distance(summary['distance'])}")
            print(f"  Progress: {summary['progress']:.1f}%")
            print(f"  Duration: {summary['duration']/60:.1f} minutes")
        return True
