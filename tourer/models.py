"""Data classes for Tourer."""

from collections import deque
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional

from .config import CONFIG


@dataclass(frozen=True)
class Coordinate:
    """Immutable WGS84 coordinate in degrees."""
    latitude: float
    longitude: float

    def to_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, d: dict) -> "Coordinate":
        return cls(latitude=float(d["latitude"]), longitude=float(d["longitude"]))


class WaypointKind(Enum):
    START = "start"
    VIA = "via"
    END = "end"


class PlanningMode(Enum):
    POINT_TO_POINT = "point-to-point"
    FREEFORM = "freeform"
    MODIFY_EXISTING = "modify-existing"


class NavigationStatus(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"


class FailureKind(Enum):
    VALIDATION = "validation"
    EXTERNAL_SERVICE = "external_service"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Failure:
    """A rejected operation. Returned to the caller, never raised."""
    kind: FailureKind
    message: str


@dataclass(frozen=True)
class Waypoint:
    """A user-placed routing anchor"""
    id: str
    coordinate: Coordinate
    kind: WaypointKind
    order: int
    name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "latitude": self.coordinate.latitude,
            "longitude": self.coordinate.longitude,
            "name": self.name,
            "kind": self.kind.value,
            "order": self.order,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Waypoint":
        return cls(
            id=d["id"],
            coordinate=Coordinate(float(d["latitude"]), float(d["longitude"])),
            kind=WaypointKind(d["kind"]),
            order=int(d["order"]),
            name=d.get("name"),
        )


@dataclass(frozen=True)
class HistoryEntry:
    """Snapshot of the planner for undo/redo.

    Waypoints and coordinates are immutable, so holding them in tuples is
    enough to keep entries independent of the live planner state.
    """
    waypoints: tuple[Waypoint, ...]
    geometry: tuple[Coordinate, ...]
    timestamp: float


@dataclass(frozen=True)
class RouteInstruction:
    type: str
    text: str
    distance: float  # meters
    duration: float  # seconds
    modifier: Optional[str] = None


@dataclass(frozen=True)
class CalculatedRoute:
    """Response of the external routing service"""
    geometry: tuple[Coordinate, ...]
    distance: float  # meters
    duration: float  # seconds
    instructions: tuple[RouteInstruction, ...] = ()


@dataclass(frozen=True)
class RouteRecord:
    """A complete, self-contained saved route"""
    id: str
    name: str
    mode: PlanningMode
    waypoints: tuple[Waypoint, ...]
    geometry: tuple[Coordinate, ...]
    distance: float  # meters
    created_at: str  # ISO-8601
    updated_at: str  # ISO-8601
    description: Optional[str] = None
    duration: Optional[float] = None  # seconds
    base_route_id: Optional[str] = None  # set when modifying a saved route

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "mode": self.mode.value,
            "waypoints": [wp.to_dict() for wp in self.waypoints],
            "geometry": [[c.latitude, c.longitude] for c in self.geometry],
            "distance": self.distance,
            "duration": self.duration,
            "base_route_id": self.base_route_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "RouteRecord":
        return cls(
            id=d["id"],
            name=d["name"],
            description=d.get("description"),
            mode=PlanningMode(d["mode"]),
            waypoints=tuple(Waypoint.from_dict(wp) for wp in d["waypoints"]),
            geometry=tuple(Coordinate(lat, lon) for lat, lon in d["geometry"]),
            distance=float(d["distance"]),
            duration=d.get("duration"),
            base_route_id=d.get("base_route_id"),
            created_at=d["created_at"],
            updated_at=d["updated_at"],
        )


@dataclass(frozen=True)
class LocationFix:
    """One reading from a location provider"""
    latitude: float
    longitude: float
    speed: Optional[float] = None  # m/s
    heading: Optional[float] = None  # degrees
    accuracy: Optional[float] = None  # meters
    timestamp: Optional[float] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "LocationFix":
        return cls(**d)


@dataclass
class NavigationSession:
    """Mutable state of the single live navigation session"""
    route_id: Optional[str] = None
    route_name: Optional[str] = None
    geometry: tuple[Coordinate, ...] = ()
    total_distance: float = 0.0
    status: NavigationStatus = NavigationStatus.IDLE
    current_location: Optional[Coordinate] = None
    current_speed: Optional[float] = None
    current_heading: Optional[float] = None
    smoothed_speed: float = 0.0
    speed_history: deque = field(
        default_factory=lambda: deque(maxlen=CONFIG["speed_history_size"]))
    nearest_index: int = 0
    distance_from_route: float = 0.0
    is_off_route: bool = False
    distance_traveled: float = 0.0
    distance_remaining: float = 0.0
    progress_percent: float = 0.0
    eta_seconds: Optional[float] = None
    last_timestamp: Optional[float] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class NavigationSnapshot:
    """Read-only view of the session published after every update"""
    route_id: Optional[str]
    route_name: Optional[str]
    status: NavigationStatus
    total_distance: float
    current_location: Optional[Coordinate]
    current_speed: Optional[float]
    current_heading: Optional[float]
    smoothed_speed: float
    speed_history: tuple[float, ...]
    nearest_index: int
    distance_from_route: float
    is_off_route: bool
    distance_traveled: float
    distance_remaining: float
    progress_percent: float
    eta_seconds: Optional[float]
    error: Optional[str] = None
    off_route_alert: bool = False

    @property
    def is_navigating(self) -> bool:
        return self.status != NavigationStatus.IDLE

    @property
    def is_paused(self) -> bool:
        return self.status == NavigationStatus.PAUSED
