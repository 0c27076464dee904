"""SQLite storage for saved routes."""

import json
import sqlite3
from datetime import datetime, timezone
from typing import Optional, Sequence

from .config import CONFIG
from .models import Coordinate, PlanningMode, RouteRecord, Waypoint, WaypointKind


class RouteStore:
    """SQLite database of saved route records"""

    def __init__(self, db_path: Optional[str] = None):
        self.conn = sqlite3.connect(db_path or CONFIG["db_path"], check_same_thread=False)
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self):
        """Create database tables"""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS routes (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT,
                mode TEXT NOT NULL,
                distance REAL NOT NULL,
                duration REAL,
                base_route_id TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS route_waypoints (
                id TEXT NOT NULL,
                route_id TEXT NOT NULL REFERENCES routes(id) ON DELETE CASCADE,
                latitude REAL NOT NULL,
                longitude REAL NOT NULL,
                name TEXT,
                kind TEXT NOT NULL,
                order_index INTEGER NOT NULL,
                PRIMARY KEY (route_id, id)
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS route_geometry (
                route_id TEXT PRIMARY KEY REFERENCES routes(id) ON DELETE CASCADE,
                geometry_json TEXT NOT NULL
            )
        """)
        self.conn.commit()

    def _write_waypoints(self, route_id: str, waypoints: Sequence[Waypoint]):
        self.conn.execute("DELETE FROM route_waypoints WHERE route_id = ?", (route_id,))
        self.conn.executemany(
            "INSERT INTO route_waypoints (id, route_id, latitude, longitude, name, kind, order_index) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            [(wp.id, route_id, wp.coordinate.latitude, wp.coordinate.longitude,
              wp.name, wp.kind.value, wp.order) for wp in waypoints]
        )

    def _write_geometry(self, route_id: str, geometry: Sequence[Coordinate]):
        self.conn.execute(
            "INSERT OR REPLACE INTO route_geometry (route_id, geometry_json) VALUES (?, ?)",
            (route_id, json.dumps([[c.latitude, c.longitude] for c in geometry]))
        )

    def save(self, route: RouteRecord):
        """Insert a new route with its waypoints and geometry"""
        with self.conn:
            self.conn.execute(
                "INSERT INTO routes (id, name, description, mode, distance, duration, "
                "base_route_id, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (route.id, route.name, route.description, route.mode.value, route.distance,
                 route.duration, route.base_route_id, route.created_at, route.updated_at)
            )
            self._write_waypoints(route.id, route.waypoints)
            self._write_geometry(route.id, route.geometry)

    def get(self, route_id: str) -> Optional[RouteRecord]:
        """Load a full route record, or None if no such route"""
        row = self.conn.execute(
            "SELECT id, name, description, mode, distance, duration, base_route_id, "
            "created_at, updated_at FROM routes WHERE id = ?",
            (route_id,)
        ).fetchone()
        if not row:
            return None

        waypoints = tuple(
            Waypoint(
                id=wp[0],
                coordinate=Coordinate(wp[1], wp[2]),
                name=wp[3],
                kind=WaypointKind(wp[4]),
                order=wp[5],
            )
            for wp in self.conn.execute(
                "SELECT id, latitude, longitude, name, kind, order_index FROM route_waypoints "
                "WHERE route_id = ? ORDER BY order_index",
                (route_id,)
            )
        )

        geometry_row = self.conn.execute(
            "SELECT geometry_json FROM route_geometry WHERE route_id = ?", (route_id,)
        ).fetchone()
        geometry = tuple(Coordinate(lat, lon) for lat, lon in json.loads(geometry_row[0])) if geometry_row else ()

        return RouteRecord(
            id=row[0],
            name=row[1],
            description=row[2],
            mode=PlanningMode(row[3]),
            waypoints=waypoints,
            geometry=geometry,
            distance=row[4],
            duration=row[5],
            base_route_id=row[6],
            created_at=row[7],
            updated_at=row[8],
        )

    def list(self) -> list[dict]:
        """Summaries of all saved routes, most recently updated first"""
        cursor = self.conn.execute("""
            SELECT r.id, r.name, r.description, r.mode, r.distance, r.created_at, r.updated_at,
                   (SELECT COUNT(*) FROM route_waypoints w WHERE w.route_id = r.id)
            FROM routes r
            ORDER BY r.updated_at DESC
        """)
        routes = []
        for row in cursor.fetchall():
            routes.append({
                "id": row[0],
                "name": row[1],
                "description": row[2],
                "mode": row[3],
                "distance": row[4],
                "created_at": row[5],
                "updated_at": row[6],
                "waypoint_count": row[7],
            })
        return routes

    def update(self, route_id: str, name: Optional[str] = None,
               description: Optional[str] = None,
               waypoints: Optional[Sequence[Waypoint]] = None,
               geometry: Optional[Sequence[Coordinate]] = None,
               distance: Optional[float] = None,
               duration: Optional[float] = None) -> bool:
        """Update parts of a saved route. Returns False if it does not exist."""
        now = datetime.now(timezone.utc).isoformat()
        with self.conn:
            cursor = self.conn.execute(
                "UPDATE routes SET name = COALESCE(?, name), description = COALESCE(?, description), "
                "distance = COALESCE(?, distance), duration = COALESCE(?, duration), updated_at = ? "
                "WHERE id = ?",
                (name, description, distance, duration, now, route_id)
            )
            if cursor.rowcount == 0:
                return False
            if waypoints is not None:
                self._write_waypoints(route_id, waypoints)
            if geometry is not None:
                self._write_geometry(route_id, geometry)
        return True

    def delete(self, route_id: str) -> bool:
        """Delete a route. Returns False if it did not exist."""
        with self.conn:
            cursor = self.conn.execute("DELETE FROM routes WHERE id = ?", (route_id,))
        return cursor.rowcount > 0

    def close(self):
        self.conn.close()
