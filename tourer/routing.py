"""Road-following route calculation via an OSRM-compatible service, with disk caching."""

import hashlib
import json
import os
import time
from typing import Optional, Sequence

import requests

from .config import CONFIG
from .models import CalculatedRoute, Coordinate, RouteInstruction


class RoutingError(Exception):
    """The routing service could not produce a route"""


class RoutingClient:
    """Fetch routes from an OSRM /route endpoint"""

    def __init__(self, base_url: Optional[str] = None, profile: Optional[str] = None,
                 timeout: Optional[float] = None, cache_dir: Optional[str] = CONFIG["routing_cache_dir"],
                 cache_max_age: float = CONFIG["routing_cache_max_age"]):
        self.base_url = (base_url or CONFIG["routing_url"]).rstrip("/")
        self.profile = profile or CONFIG["routing_profile"]
        self.timeout = timeout or CONFIG["routing_timeout"]
        self.cache_dir = cache_dir  # None disables caching
        self.cache_max_age = cache_max_age

    @staticmethod
    def format_coordinates(coordinates: Sequence[Coordinate]) -> str:
        """OSRM wants 'lon,lat;lon,lat;...'"""
        return ";".join(f"{c.longitude:.6f},{c.latitude:.6f}" for c in coordinates)

    def _cache_path(self, profile: str, coords: str) -> Optional[str]:
        if not self.cache_dir:
            return None
        h = hashlib.md5(f"{profile}/{coords}".encode()).hexdigest()[:12]
        return os.path.join(self.cache_dir, f"route_{h}.json")

    def _load_cached(self, path: Optional[str]) -> Optional[dict]:
        if not path or not os.path.exists(path):
            return None
        try:
            if time.time() - os.path.getmtime(path) > self.cache_max_age:
                return None
            with open(path) as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError):
            return None

    def _store_cached(self, path: Optional[str], data: dict):
        if not path:
            return
        try:
            os.makedirs(self.cache_dir, exist_ok=True)
            with open(path, "w") as f:
                json.dump(data, f)
        except OSError:
            # A cache miss next time is harmless
            return

    def route(self, coordinates: Sequence[Coordinate],
              profile: Optional[str] = None) -> CalculatedRoute:
        """Calculate a route through the ordered coordinates.

        Raises:
            RoutingError: fewer than two coordinates, HTTP failure or timeout,
                or a response without a usable route.
        """
        if len(coordinates) < 2:
            raise RoutingError("At least 2 waypoints required")

        profile = profile or self.profile
        coords = self.format_coordinates(coordinates)
        cache_path = self._cache_path(profile, coords)

        data = self._load_cached(cache_path)
        if data is None:
            url = f"{self.base_url}/{profile}/{coords}"
            try:
                response = requests.get(url, params={
                    "overview": "full",
                    "geometries": "geojson",
                    "steps": "true",
                    "alternatives": "false",
                }, timeout=self.timeout)
                response.raise_for_status()
                data = response.json()
            except requests.RequestException as e:
                raise RoutingError(f"Routing request failed: {e}") from e
            except ValueError as e:
                raise RoutingError(f"Routing response was not JSON: {e}") from e

            if data.get("code") == "Ok" and data.get("routes"):
                self._store_cached(cache_path, data)

        return self.parse_response(data)

    @staticmethod
    def parse_response(data: dict) -> CalculatedRoute:
        """Normalize an OSRM route response"""
        if data.get("code") != "Ok":
            raise RoutingError(f"Routing failed: {data.get('message', data.get('code', 'unknown error'))}")
        if not data.get("routes"):
            raise RoutingError("No route found")

        route = data["routes"][0]
        try:
            geometry = tuple(
                Coordinate(latitude=lat, longitude=lon)
                for lon, lat in route["geometry"]["coordinates"]
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RoutingError(f"Malformed route geometry: {e}") from e

        instructions = []
        for leg in route.get("legs", []):
            for step in leg.get("steps", []):
                maneuver = step.get("maneuver", {})
                instructions.append(RouteInstruction(
                    type=maneuver.get("type", ""),
                    text=maneuver.get("instruction") or step.get("name") or maneuver.get("type", ""),
                    distance=step.get("distance", 0.0),
                    duration=step.get("duration", 0.0),
                    modifier=maneuver.get("modifier"),
                ))

        return CalculatedRoute(
            geometry=geometry,
            distance=float(route.get("distance", 0.0)),
            duration=float(route.get("duration", 0.0)),
            instructions=tuple(instructions),
        )
