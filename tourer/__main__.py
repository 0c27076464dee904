#!/usr/bin/env python3
"""
Tourer - Bicycle touring route planner and ride companion

Usage:
    python -m tourer [options]

Options:
    --waypoint LAT,LON   Add a waypoint (repeat for each point) and save the route
    --name NAME          Name for the planned or imported route
    --description TEXT   Description for the planned route
    --freeform           Connect waypoints with straight lines instead of routing
    --profile PROFILE    Routing profile (default: cycling)
    --import-gpx FILE    Import a route from a GPX file
    --list               List saved routes
    --delete ID          Delete a saved route
    --navigate ID        Ride a saved route
    --playback FILE      Playback GPS trace from JSON file
    --speed FACTOR       Playback speed multiplier (default: 1.0)
    --record FILE        Record GPS trace to JSON file for debugging
    --off-route-threshold METERS
                         Distance from the route that counts as off route
    --route ID           Saved route to export with --gpx/--html
    --gpx FILE           Export route to GPX file
    --html FILE          Output route visualization to HTML file
    --log FILE           Log file path
    --db FILE            Route database path
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from .app import Tourer
from .gps import GPSPlayback, GPSRecorder, LocationUnavailable
from .gpx import GPXError
from .models import Coordinate, RouteRecord


def parse_waypoint(value: str) -> Coordinate:
    """argparse type for 'LAT,LON'"""
    try:
        lat, lon = (float(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected LAT,LON, got {value!r}")
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise argparse.ArgumentTypeError(f"coordinate out of range: {value}")
    return Coordinate(lat, lon)


def main():
    parser = argparse.ArgumentParser(
        description="Tourer - Bicycle touring route planner and ride companion"
    )
    parser.add_argument("--waypoint", type=parse_waypoint, action="append", metavar="LAT,LON",
                        help="Add a waypoint; repeat for each point in order")
    parser.add_argument("--name", help="Route name")
    parser.add_argument("--description", help="Route description")
    parser.add_argument("--freeform", action="store_true",
                        help="Draw straight lines between waypoints instead of routing")
    parser.add_argument("--profile", help="Routing profile (default: cycling)")
    parser.add_argument("--import-gpx", metavar="FILE",
                        help="Import a route from a GPX file")
    parser.add_argument("--list", action="store_true",
                        help="List saved routes and exit")
    parser.add_argument("--delete", metavar="ID",
                        help="Delete a saved route and exit")
    parser.add_argument("--navigate", metavar="ID",
                        help="Ride a saved route")
    parser.add_argument("--playback", metavar="FILE",
                        help="Playback GPS trace from JSON file")
    parser.add_argument("--speed", type=float, default=1.0,
                        help="Playback speed multiplier (default: 1.0)")
    parser.add_argument("--record", metavar="FILE",
                        help="Record GPS trace to JSON file")
    parser.add_argument("--off-route-threshold", type=float, metavar="METERS",
                        help="Distance from the route that counts as off route (default: 50)")
    parser.add_argument("--route", metavar="ID",
                        help="Saved route to export with --gpx or --html")
    parser.add_argument("--gpx", metavar="FILE",
                        help="Export route to GPX file")
    parser.add_argument("--html", metavar="FILE",
                        help="Output route visualization to HTML file")
    parser.add_argument("--log", metavar="FILE",
                        help="Log file path")
    parser.add_argument("--db", metavar="FILE",
                        help="Route database path (default: tourer_routes.db)")

    args = parser.parse_args()

    if args.playback and args.record:
        parser.error("--playback and --record cannot be used together")
    if (args.playback or args.record) and not args.navigate:
        parser.error("--playback and --record require --navigate")
    if args.waypoint and args.import_gpx:
        parser.error("--waypoint and --import-gpx cannot be used together")
    if args.waypoint and not args.name:
        parser.error("--waypoint requires --name")
    if args.speed <= 0:
        parser.error("--speed must be positive")

    tourer = Tourer(log_path=args.log, db_path=args.db,
                    off_route_threshold=args.off_route_threshold)
    try:
        return run(tourer, args)
    finally:
        tourer.close()


def run(tourer: Tourer, args: argparse.Namespace) -> int:
    # List / delete: early exit
    if args.list:
        tourer.list_routes()
        return 0

    if args.delete:
        return 0 if tourer.delete_route(args.delete) else 1

    route: Optional[RouteRecord] = None

    if args.waypoint:
        route = tourer.plan_route(args.waypoint, args.name, args.description,
                                  freeform=args.freeform, profile=args.profile)
        if not route:
            return 1
        tourer.display_route_summary(route)
    elif args.import_gpx:
        if not Path(args.import_gpx).exists():
            print(f"GPX file not found: {args.import_gpx}")
            return 1
        try:
            route = tourer.import_gpx(args.import_gpx, args.name)
        except GPXError as e:
            print(f"Could not import GPX: {e}")
            return 1
        tourer.display_route_summary(route)
    elif args.route:
        route = tourer.get_route(args.route)
        if not route:
            return 1

    if args.gpx or args.html:
        if not route:
            print("--gpx and --html need a route: plan one, import one, or pass --route ID")
            return 1
        if args.gpx:
            tourer.export_gpx(route, args.gpx)
        if args.html:
            tourer.export_html(route, args.html)

    if args.navigate:
        # Set up GPS source
        if args.playback:
            if not Path(args.playback).exists():
                print(f"Playback file not found: {args.playback}")
                return 1
            try:
                tourer.set_gps_source(GPSPlayback(args.playback, args.speed))
            except LocationUnavailable as e:
                print(e)
                return 1
        elif args.record:
            tourer.set_gps_source(GPSRecorder(tourer.gps, args.record))
        return 0 if tourer.navigate(args.navigate) else 1

    if not route:
        print("Nothing to do. See --help.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
