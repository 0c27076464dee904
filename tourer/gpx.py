"""GPX export and import of route records."""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from xml.sax.saxutils import escape

from .geo import path_distance
from .models import Coordinate, PlanningMode, RouteRecord, Waypoint, WaypointKind
from .planner import assign_waypoint_kinds, generate_id

GPX_NS = "http://www.topografix.com/GPX/1/1"

_SYMBOLS = {
    WaypointKind.START: "Flag, Green",
    WaypointKind.END: "Flag, Red",
    WaypointKind.VIA: "Waypoint",
}


class GPXError(ValueError):
    """The document is not usable GPX"""


def _xml(text: str) -> str:
    return escape(text, {'"': "&quot;", "'": "&apos;"})


def route_to_gpx(route: RouteRecord) -> str:
    """Generate a GPX 1.1 document for use in OsmAnd or other GPS navigation apps"""
    timestamp = datetime.now(timezone.utc).isoformat()

    gpx_lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<gpx version="1.1" creator="Tourer"',
        f'     xmlns="{GPX_NS}"',
        '     xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"',
        f'     xsi:schemaLocation="{GPX_NS} http://www.topografix.com/GPX/1/1/gpx.xsd">',
        '  <metadata>',
        f'    <name>{_xml(route.name)}</name>',
    ]
    if route.description:
        gpx_lines.append(f'    <desc>{_xml(route.description)}</desc>')
    gpx_lines.append(f'    <time>{timestamp}</time>')
    gpx_lines.append(f'    <keywords>bike, cycling, tour, {route.mode.value}</keywords>')
    gpx_lines.append('  </metadata>')

    for wp in route.waypoints:
        gpx_lines.append(f'  <wpt lat="{wp.coordinate.latitude:.6f}" lon="{wp.coordinate.longitude:.6f}">')
        if wp.name:
            gpx_lines.append(f'    <name>{_xml(wp.name)}</name>')
        gpx_lines.append(f'    <desc>{wp.kind.value} waypoint</desc>')
        gpx_lines.append(f'    <sym>{_SYMBOLS[wp.kind]}</sym>')
        gpx_lines.append('  </wpt>')

    gpx_lines.append('  <trk>')
    gpx_lines.append(f'    <name>{_xml(route.name)}</name>')
    gpx_lines.append(f'    <type>{route.mode.value}</type>')
    gpx_lines.append('    <trkseg>')
    for c in route.geometry:
        gpx_lines.append(f'      <trkpt lat="{c.latitude:.6f}" lon="{c.longitude:.6f}"/>')
    gpx_lines.append('    </trkseg>')
    gpx_lines.append('  </trk>')
    gpx_lines.append('</gpx>')

    return '\n'.join(gpx_lines)


def write_gpx(route: RouteRecord, path: str):
    with open(path, "w", encoding="utf-8") as f:
        f.write(route_to_gpx(route))


@dataclass
class GPXTrack:
    name: Optional[str] = None
    type: Optional[str] = None
    segments: list[list[Coordinate]] = field(default_factory=list)


@dataclass
class GPXData:
    name: Optional[str] = None
    description: Optional[str] = None
    time: Optional[str] = None
    waypoints: list[tuple[Coordinate, Optional[str]]] = field(default_factory=list)
    tracks: list[GPXTrack] = field(default_factory=list)
    route_points: list[Coordinate] = field(default_factory=list)


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _text(element: ET.Element, name: str) -> Optional[str]:
    for child in _children(element, name):
        if child.text and child.text.strip():
            return child.text.strip()
    return None


def _point(element: ET.Element) -> Coordinate:
    try:
        return Coordinate(float(element.attrib["lat"]), float(element.attrib["lon"]))
    except (KeyError, ValueError) as e:
        raise GPXError(f"Invalid point in GPX: {e}") from e


def parse_gpx(text: str) -> GPXData:
    """Parse waypoints, tracks and routes from a GPX 1.0 or 1.1 document"""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise GPXError(f"Invalid GPX file: {e}") from e
    if _local(root.tag) != "gpx":
        raise GPXError("Invalid GPX file: missing gpx root element")

    data = GPXData()
    for metadata in _children(root, "metadata"):
        data.name = _text(metadata, "name")
        data.description = _text(metadata, "desc")
        data.time = _text(metadata, "time")

    for wpt in _children(root, "wpt"):
        data.waypoints.append((_point(wpt), _text(wpt, "name")))

    for trk in _children(root, "trk"):
        track = GPXTrack(name=_text(trk, "name"), type=_text(trk, "type"))
        for seg in _children(trk, "trkseg"):
            points = [_point(pt) for pt in _children(seg, "trkpt")]
            if points:
                track.segments.append(points)
        data.tracks.append(track)

    for rte in _children(root, "rte"):
        data.route_points.extend(_point(pt) for pt in _children(rte, "rtept"))

    return data


def gpx_to_route(data: GPXData, name: Optional[str] = None) -> RouteRecord:
    """Build a route record from parsed GPX.

    Track points become the geometry, falling back to route points. Without
    explicit waypoints the first and last geometry points are used.
    """
    geometry = [pt for track in data.tracks for seg in track.segments for pt in seg]
    if not geometry:
        geometry = list(data.route_points)
    if len(geometry) < 2:
        raise GPXError("GPX file contains no track with at least 2 points")

    named_points = data.waypoints or [(geometry[0], None), (geometry[-1], None)]
    waypoints = assign_waypoint_kinds([
        Waypoint(id=generate_id(), coordinate=coord, kind=WaypointKind.VIA, order=i, name=wp_name)
        for i, (coord, wp_name) in enumerate(named_points)
    ])

    mode = PlanningMode.POINT_TO_POINT
    track_type = data.tracks[0].type if data.tracks else None
    if track_type and ("freeform" in track_type.lower() or "draw" in track_type.lower()):
        mode = PlanningMode.FREEFORM

    track_name = data.tracks[0].name if data.tracks else None
    now = datetime.now(timezone.utc).isoformat()
    return RouteRecord(
        id=generate_id(),
        name=name or data.name or track_name or "Imported Route",
        description=data.description,
        mode=mode,
        waypoints=waypoints,
        geometry=tuple(geometry),
        distance=path_distance(geometry),
        created_at=data.time or now,
        updated_at=now,
    )


def read_gpx(path: str, name: Optional[str] = None) -> RouteRecord:
    with open(path, encoding="utf-8") as f:
        return gpx_to_route(parse_gpx(f.read()), name)
