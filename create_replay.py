#!/usr/bin/env python3
"""
Create a GPS playback trace by riding a saved route virtually.

Usage:
    python create_replay.py ROUTE_ID [--speed-kmh 18] [--offset-m 0] [-o trace.json]

The trace has the same format as one written by --record, so it can be fed
back with `python -m tourer --navigate ROUTE_ID --playback trace.json`.
A lateral offset shifts every fix sideways from the route, which is handy
for exercising the off-route warning.
"""

import argparse
import json
import math
import time
from datetime import datetime
from typing import Optional

from tourer import CONFIG, Coordinate, LocationFix, RouteStore, bearing_between, cumulative_distances
from tourer.geo import EARTH_RADIUS_M, coordinate_at_distance


def offset_coordinate(coord: Coordinate, bearing: float, meters: float) -> Coordinate:
    """Move a coordinate `meters` to the right of the direction of travel"""
    if meters == 0:
        return coord
    angle = math.radians(bearing + 90)
    dlat = meters * math.cos(angle) / EARTH_RADIUS_M
    dlon = meters * math.sin(angle) / (EARTH_RADIUS_M * math.cos(math.radians(coord.latitude)))
    return Coordinate(coord.latitude + math.degrees(dlat), coord.longitude + math.degrees(dlon))


def segment_at(geometry: list[Coordinate], distances: list[float],
               traveled: float) -> tuple[Coordinate, Coordinate]:
    """Endpoints of the non-empty segment containing an along-route distance"""
    last = len(geometry) - 1
    for i in range(1, len(geometry)):
        if distances[i] > distances[i - 1] and (distances[i] > traveled or i == last):
            return geometry[i - 1], geometry[i]
    return geometry[-2], geometry[-1]


def create_trace(geometry: list[Coordinate], speed_kmh: float, offset_m: float = 0.0,
                 sample_interval: Optional[float] = None) -> list[dict]:
    """Sample fixes along the geometry at a constant speed"""
    sample_interval = sample_interval or CONFIG["replay_sample_interval"]
    speed = speed_kmh / 3.6
    step = speed * sample_interval
    distances = cumulative_distances(geometry)
    total = distances[-1]
    start = time.time()

    trace = []
    elapsed = 0.0
    traveled = 0.0
    while True:
        on_route = coordinate_at_distance(geometry, traveled, distances)
        a, b = segment_at(geometry, distances, traveled)
        heading = bearing_between(a.latitude, a.longitude, b.latitude, b.longitude)
        position = offset_coordinate(on_route, heading, offset_m)

        fix = LocationFix(
            latitude=position.latitude,
            longitude=position.longitude,
            speed=speed,
            heading=heading,
            accuracy=5.0,
            timestamp=start + elapsed,
        )
        trace.append({
            "elapsed": elapsed,
            "timestamp": start + elapsed,
            "location": fix.to_dict(),
            "status": "Synthesized",
        })

        if traveled >= total:
            break
        traveled = min(traveled + step, total)
        elapsed += sample_interval

    return trace


def main():
    parser = argparse.ArgumentParser(description="Create GPS playback trace from a saved route")
    parser.add_argument("route_id", help="Saved route id")
    parser.add_argument("--speed-kmh", type=float, default=18.0,
                        help="Riding speed in km/h (default: 18)")
    parser.add_argument("--offset-m", type=float, default=0.0,
                        help="Lateral offset from the route in meters (default: 0)")
    parser.add_argument("-o", "--output", default="trace.json",
                        help="Output file (default: trace.json)")
    parser.add_argument("--db", default=CONFIG["db_path"],
                        help="Route database path")

    args = parser.parse_args()

    if args.speed_kmh <= 0:
        print("Speed must be positive")
        return 1

    store = RouteStore(args.db)
    try:
        route = store.get(args.route_id)
    finally:
        store.close()

    if not route:
        print(f"No route with id {args.route_id}")
        return 1
    if len(route.geometry) < 2:
        print(f"Route {route.name} has no geometry to ride")
        return 1

    trace = create_trace(list(route.geometry), args.speed_kmh, args.offset_m)

    with open(args.output, "w") as f:
        json.dump({
            "recorded_at": datetime.now().isoformat(),
            "route_id": route.id,
            "trace": trace,
        }, f, indent=2)

    duration = trace[-1]["elapsed"]
    print(f"Trace saved to {args.output}")
    print(f"  {len(trace)} fixes over {route.distance/1000:.1f} km, {duration/60:.1f} minutes")
    return 0


if __name__ == "__main__":
    exit(main())
