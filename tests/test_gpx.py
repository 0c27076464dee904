import dataclasses
import xml.etree.ElementTree as ET

import pytest

from tourer.gpx import GPX_NS, GPXError, gpx_to_route, parse_gpx, read_gpx, route_to_gpx, write_gpx
from tourer.models import PlanningMode, WaypointKind

GPX_10_TRACK = """<?xml version="1.0"?>
<gpx version="1.0" creator="other" xmlns="http://www.topografix.com/GPX/1/0">
  <trk>
    <name>Morning loop</name>
    <type>Freeform drawing</type>
    <trkseg>
      <trkpt lat="48.1" lon="11.5"/>
      <trkpt lat="48.11" lon="11.51"/>
    </trkseg>
    <trkseg>
      <trkpt lat="48.12" lon="11.52"/>
    </trkseg>
  </trk>
</gpx>
"""

GPX_ROUTE_ONLY = """<gpx version="1.1" xmlns="http://www.topografix.com/GPX/1/1">
  <rte>
    <rtept lat="45.0" lon="7.0"/>
    <rtept lat="45.01" lon="7.02"/>
  </rte>
</gpx>
"""


def test_export_contains_waypoints_and_track(equator_route):
    route = dataclasses.replace(equator_route, name="Coast & Hills", description="<day 1>")
    text = route_to_gpx(route)
    root = ET.fromstring(text)
    ns = {"g": GPX_NS}

    assert root.find("g:metadata/g:name", ns).text == "Coast & Hills"
    assert root.find("g:metadata/g:desc", ns).text == "<day 1>"
    wpts = root.findall("g:wpt", ns)
    assert [w.find("g:sym", ns).text for w in wpts] == ["Flag, Green", "Flag, Red"]
    trkpts = root.findall("g:trk/g:trkseg/g:trkpt", ns)
    assert len(trkpts) == 3
    assert trkpts[1].attrib == {"lat": "0.000000", "lon": "0.001000"}
    assert root.find("g:trk/g:type", ns).text == "point-to-point"


def test_export_then_import_keeps_route_shape(equator_route, tmp_path):
    path = tmp_path / "route.gpx"
    write_gpx(equator_route, str(path))
    imported = read_gpx(str(path))

    assert imported.name == equator_route.name
    assert imported.mode == PlanningMode.POINT_TO_POINT
    assert imported.geometry == equator_route.geometry
    assert [wp.coordinate for wp in imported.waypoints] == [wp.coordinate for wp in equator_route.waypoints]
    assert imported.id != equator_route.id
    assert imported.distance == pytest.approx(222.39, abs=0.05)


def test_import_gpx_10_track_without_waypoints():
    data = parse_gpx(GPX_10_TRACK)
    assert len(data.tracks[0].segments) == 2

    route = gpx_to_route(data)
    assert route.name == "Morning loop"
    assert route.mode == PlanningMode.FREEFORM
    assert len(route.geometry) == 3
    # Endpoints become start and end waypoints
    assert [wp.kind for wp in route.waypoints] == [WaypointKind.START, WaypointKind.END]
    assert route.waypoints[0].coordinate == route.geometry[0]
    assert route.waypoints[1].coordinate == route.geometry[-1]


def test_import_route_points_and_name_override():
    route = gpx_to_route(parse_gpx(GPX_ROUTE_ONLY), name="Col de Tende")
    assert route.name == "Col de Tende"
    assert len(route.geometry) == 2


def test_import_named_waypoints_get_kinds():
    text = f"""<gpx xmlns="{GPX_NS}">
      <wpt lat="1" lon="1"><name>Home</name></wpt>
      <wpt lat="1.5" lon="1.5"/>
      <wpt lat="2" lon="2"><name>Camp</name></wpt>
      <trk><trkseg><trkpt lat="1" lon="1"/><trkpt lat="2" lon="2"/></trkseg></trk>
    </gpx>"""
    route = gpx_to_route(parse_gpx(text))
    assert [wp.kind for wp in route.waypoints] == [WaypointKind.START, WaypointKind.VIA, WaypointKind.END]
    assert [wp.name for wp in route.waypoints] == ["Home", None, "Camp"]
    assert route.name == "Imported Route"


@pytest.mark.parametrize("text", [
    "not xml at all",
    "<kml></kml>",
    f'<gpx xmlns="{GPX_NS}"><trk><trkseg><trkpt lat="1" lon="1"/></trkseg></trk></gpx>',
    f'<gpx xmlns="{GPX_NS}"><trk><trkseg><trkpt lat="x" lon="1"/><trkpt lat="1" lon="1"/></trkseg></trk></gpx>',
])
def test_invalid_gpx(text):
    with pytest.raises(GPXError):
        gpx_to_route(parse_gpx(text))
