"""Route planning state machine with bounded undo/redo."""

import dataclasses
import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence

from .geo import path_distance
from .history import RouteHistory
from .logger import Logger
from .models import (
    Coordinate, Failure, FailureKind, PlanningMode, RouteInstruction, RouteRecord,
    Waypoint, WaypointKind,
)
from .routing import RoutingClient, RoutingError

ROUTE_FAILED_MESSAGE = "Failed to calculate route. Please try again."


def generate_id() -> str:
    return uuid.uuid4().hex


def assign_waypoint_kinds(waypoints: Sequence[Waypoint]) -> tuple[Waypoint, ...]:
    """First is START, last is END, the rest VIA; order follows list position"""
    last = len(waypoints) - 1
    result = []
    for index, wp in enumerate(waypoints):
        if index == 0:
            kind = WaypointKind.START
        elif index == last:
            kind = WaypointKind.END
        else:
            kind = WaypointKind.VIA
        result.append(dataclasses.replace(wp, kind=kind, order=index))
    return tuple(result)


class RoutePlanner:
    """Owns the route being planned: mode, waypoints, geometry and history.

    Usage:
        planner = RoutePlanner(router)
        planner.start_planning(PlanningMode.POINT_TO_POINT)
        planner.add_waypoint(Coordinate(52.37, 4.89))
        planner.add_waypoint(Coordinate(52.09, 5.12))
        planner.calculate_route()
        record = planner.prepare_for_save("Amsterdam - Utrecht")

    Mutations return None on success or a Failure describing why nothing
    changed.
    """

    def __init__(self, router: Optional[RoutingClient] = None,
                 logger: Optional[Logger] = None,
                 max_history: Optional[int] = None):
        self.router = router or RoutingClient()
        self.logger = logger
        self.history = RouteHistory(max_history)
        self.mode: Optional[PlanningMode] = None
        self.is_planning = False
        self.waypoints: tuple[Waypoint, ...] = ()
        self.geometry: tuple[Coordinate, ...] = ()
        self.distance: Optional[float] = None  # meters, from the last calculation
        self.duration: Optional[float] = None  # seconds
        self.instructions: tuple[RouteInstruction, ...] = ()
        self.base_route_id: Optional[str] = None
        self.is_calculating = False
        self.error: Optional[str] = None
        self._move_in_progress = False

    def _log(self, message: str, data: Optional[dict] = None):
        if self.logger:
            self.logger.log(message, data)

    def _reset(self):
        self.waypoints = ()
        self.geometry = ()
        self.distance = None
        self.duration = None
        self.instructions = ()
        self.base_route_id = None
        self.history.clear()
        self.error = None
        self._move_in_progress = False

    def _push_history(self):
        self.history.push(self.waypoints, self.geometry)
        self._move_in_progress = False

    def _not_planning(self) -> Optional[Failure]:
        if not self.is_planning:
            return Failure(FailureKind.VALIDATION, "Not currently planning a route")
        return None

    def _find_index(self, waypoint_id: str) -> int:
        for i, wp in enumerate(self.waypoints):
            if wp.id == waypoint_id:
                return i
        return -1

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_planning(self, mode: PlanningMode):
        """Begin a fresh route in the given mode"""
        self._reset()
        self.mode = mode
        self.is_planning = True
        self._log("Planning started", {"mode": mode.value})

    def cancel_planning(self):
        self._reset()
        self.mode = None
        self.is_planning = False
        self._log("Planning cancelled")

    def load_existing_route(self, route: RouteRecord):
        """Seed the planner from a saved route for modification.

        History starts with a single entry, so undo has nothing to go back to
        until a further edit is made.
        """
        self._reset()
        self.mode = PlanningMode.MODIFY_EXISTING
        self.is_planning = True
        self.waypoints = assign_waypoint_kinds(route.waypoints)
        self.geometry = tuple(route.geometry)
        self.distance = route.distance
        self.duration = route.duration
        self.base_route_id = route.id
        self._push_history()
        self._log("Loaded route for modification", {
            "route_id": route.id, "waypoints": len(self.waypoints),
        })

    # ------------------------------------------------------------------
    # Waypoint operations
    # ------------------------------------------------------------------

    def add_waypoint(self, coordinate: Coordinate, name: Optional[str] = None) -> Optional[Failure]:
        """Append a waypoint as the new END, demoting the previous END to VIA"""
        failure = self._not_planning()
        if failure:
            return failure

        demoted = tuple(
            dataclasses.replace(wp, kind=WaypointKind.VIA) if wp.kind == WaypointKind.END else wp
            for wp in self.waypoints
        )
        new_waypoint = Waypoint(
            id=generate_id(),
            coordinate=coordinate,
            kind=WaypointKind.START if not demoted else WaypointKind.END,
            order=len(demoted),
            name=name,
        )
        self.waypoints = demoted + (new_waypoint,)
        self._push_history()
        return None

    def insert_via_waypoint(self, coordinate: Coordinate, index: int,
                            name: Optional[str] = None) -> Optional[Failure]:
        """Insert a VIA waypoint between existing ones (drag-to-modify)"""
        failure = self._not_planning()
        if failure:
            return failure
        if len(self.waypoints) < 2:
            return Failure(FailureKind.VALIDATION, "Need a start and an end to insert a via point")

        index = max(1, min(index, len(self.waypoints) - 1))
        new_waypoint = Waypoint(
            id=generate_id(), coordinate=coordinate, kind=WaypointKind.VIA, order=index, name=name,
        )
        waypoints = list(self.waypoints)
        waypoints.insert(index, new_waypoint)
        self.waypoints = assign_waypoint_kinds(waypoints)
        self._push_history()
        return None

    def remove_waypoint(self, waypoint_id: str) -> Optional[Failure]:
        failure = self._not_planning()
        if failure:
            return failure
        if self._find_index(waypoint_id) < 0:
            self._log("Waypoint not found", {"id": waypoint_id})
            return Failure(FailureKind.NOT_FOUND, f"No waypoint with id {waypoint_id}")

        self.waypoints = assign_waypoint_kinds(
            [wp for wp in self.waypoints if wp.id != waypoint_id]
        )
        self._push_history()
        return None

    def move_waypoint(self, waypoint_id: str, coordinate: Coordinate) -> Optional[Failure]:
        """Move a waypoint during a drag gesture without touching history.

        Call finish_move_waypoint() when the gesture ends.
        """
        failure = self._not_planning()
        if failure:
            return failure
        index = self._find_index(waypoint_id)
        if index < 0:
            return Failure(FailureKind.NOT_FOUND, f"No waypoint with id {waypoint_id}")

        waypoints = list(self.waypoints)
        waypoints[index] = dataclasses.replace(waypoints[index], coordinate=coordinate)
        self.waypoints = tuple(waypoints)
        self._move_in_progress = True
        return None

    def finish_move_waypoint(self):
        """Commit one history entry for the whole drag gesture"""
        if self._move_in_progress:
            self._push_history()

    def reorder_waypoints(self, from_index: int, to_index: int) -> Optional[Failure]:
        failure = self._not_planning()
        if failure:
            return failure
        count = len(self.waypoints)
        if not (0 <= from_index < count and 0 <= to_index < count):
            return Failure(FailureKind.VALIDATION,
                           f"Cannot move waypoint {from_index} to {to_index} in a list of {count}")

        waypoints = list(self.waypoints)
        moved = waypoints.pop(from_index)
        waypoints.insert(to_index, moved)
        self.waypoints = assign_waypoint_kinds(waypoints)
        self._push_history()
        return None

    def clear_waypoints(self) -> Optional[Failure]:
        failure = self._not_planning()
        if failure:
            return failure
        self.waypoints = ()
        self.geometry = ()
        self.distance = None
        self.duration = None
        self.instructions = ()
        self._push_history()
        return None

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def _restore(self, waypoints: tuple[Waypoint, ...], geometry: tuple[Coordinate, ...]):
        if geometry != self.geometry:
            self.distance = None
            self.duration = None
            self.instructions = ()
        self.waypoints = waypoints
        self.geometry = geometry
        self._move_in_progress = False

    def undo(self):
        entry = self.history.undo()
        if entry:
            self._restore(entry.waypoints, entry.geometry)

    def redo(self):
        entry = self.history.redo()
        if entry:
            self._restore(entry.waypoints, entry.geometry)

    def can_undo(self) -> bool:
        return self.history.can_undo()

    def can_redo(self) -> bool:
        return self.history.can_redo()

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def can_calculate(self) -> bool:
        return len(self.waypoints) >= 2

    def calculate_route(self, profile: Optional[str] = None) -> Optional[Failure]:
        """Compute geometry for the current waypoints.

        Freeform routes connect the waypoints directly. Other modes ask the
        routing service; on failure the previous geometry is kept. Overlapping
        calls are not coalesced, so callers should wait for is_calculating to
        clear before issuing another.
        """
        failure = self._not_planning()
        if failure:
            return failure
        if not self.can_calculate():
            return Failure(FailureKind.VALIDATION, "At least 2 waypoints are required to calculate a route")

        coordinates = [wp.coordinate for wp in self.waypoints]
        self.is_calculating = True
        self.error = None
        try:
            if self.mode == PlanningMode.FREEFORM:
                self.geometry = tuple(coordinates)
                self.distance = path_distance(self.geometry)
                self.duration = None
                self.instructions = ()
            else:
                result = self.router.route(coordinates, profile)
                self.geometry = result.geometry
                self.distance = result.distance
                self.duration = result.duration
                self.instructions = result.instructions
        except RoutingError as e:
            self.error = ROUTE_FAILED_MESSAGE
            self._log("Route calculation failed", {"error": str(e), "waypoints": len(coordinates)})
            return Failure(FailureKind.EXTERNAL_SERVICE, str(e))
        finally:
            self.is_calculating = False

        self._log("Route calculated", {
            "mode": self.mode.value if self.mode else None,
            "points": len(self.geometry),
            "distance": round(self.distance or 0, 1),
        })
        return None

    def set_geometry(self, geometry: Sequence[Coordinate]):
        self.geometry = tuple(geometry)
        self.distance = None
        self.duration = None
        self.instructions = ()

    def clear_error(self):
        self.error = None

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def prepare_for_save(self, name: str, description: Optional[str] = None) -> RouteRecord:
        """Build a new, self-contained route record with a fresh id"""
        now = datetime.now(timezone.utc).isoformat()
        distance = self.distance if self.distance is not None else path_distance(self.geometry)
        return RouteRecord(
            id=generate_id(),
            name=name,
            description=description,
            mode=self.mode or PlanningMode.POINT_TO_POINT,
            waypoints=self.waypoints,
            geometry=self.geometry,
            distance=distance,
            duration=self.duration,
            base_route_id=self.base_route_id,
            created_at=now,
            updated_at=now,
        )
