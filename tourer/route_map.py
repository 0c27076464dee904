"""HTML map preview of a route, optionally with a ridden GPS trace."""

import html
from typing import Optional, Sequence

import folium
from folium import plugins

from .display import format_distance, format_duration
from .models import Coordinate, LocationFix, RouteRecord, WaypointKind

_MARKER_STYLE = {
    WaypointKind.START: ("green", "play"),
    WaypointKind.VIA: ("blue", "flag"),
    WaypointKind.END: ("red", "stop"),
}


def create_route_map(route: RouteRecord, trace: Optional[Sequence[LocationFix]] = None,
                     position: Optional[Coordinate] = None) -> folium.Map:
    """Build a folium map of the route line and its waypoints"""
    points = route.geometry or tuple(wp.coordinate for wp in route.waypoints)
    if not points:
        raise ValueError(f"Route {route.id} has no geometry or waypoints to draw")

    center_lat = sum(c.latitude for c in points) / len(points)
    center_lon = sum(c.longitude for c in points) / len(points)
    m = folium.Map(location=[center_lat, center_lon], zoom_start=13)

    folium.TileLayer("OpenStreetMap", name="OpenStreetMap").add_to(m)
    folium.TileLayer("CartoDB positron", name="Light").add_to(m)

    if len(route.geometry) >= 2:
        folium.PolyLine(
            [[c.latitude, c.longitude] for c in route.geometry],
            weight=5,
            color="#2563eb",
            opacity=0.8,
            popup=f"{route.name} ({format_distance(route.distance)})"
        ).add_to(m)

    waypoints_group = folium.FeatureGroup(name="Waypoints", show=True)
    for wp in route.waypoints:
        color, icon = _MARKER_STYLE[wp.kind]
        label = wp.name or f"{wp.kind.value.title()} ({wp.order})"
        folium.Marker(
            [wp.coordinate.latitude, wp.coordinate.longitude],
            popup=label,
            icon=folium.Icon(color=color, icon=icon)
        ).add_to(waypoints_group)
    waypoints_group.add_to(m)

    if trace:
        folium.PolyLine(
            [[fix.latitude, fix.longitude] for fix in trace],
            weight=3,
            color="orange",
            opacity=0.9,
            popup="GPS Trace"
        ).add_to(m)

    if position:
        folium.CircleMarker(
            location=[position.latitude, position.longitude],
            radius=8,
            color="black",
            fill=True,
            fill_opacity=0.8,
            popup="Current position"
        ).add_to(m)

    folium.LayerControl().add_to(m)

    summary_html = f"""
    <div style="
        position: fixed;
        bottom: 50px;
        left: 50px;
        z-index: 1000;
        background-color: white;
        padding: 10px;
        border-radius: 5px;
        border: 2px solid grey;
        font-family: Arial;
        font-size: 12px;
    ">
        <b>{html.escape(route.name)}</b><br>
        <hr style="margin: 5px 0">
        Mode: {route.mode.value}<br>
        Distance: {format_distance(route.distance)}<br>
        Duration: {format_duration(route.duration)}<br>
        Waypoints: {len(route.waypoints)}<br>
    </div>
    """
    m.get_root().html.add_child(folium.Element(summary_html))

    plugins.Fullscreen().add_to(m)

    if len(points) >= 2:
        lats = [c.latitude for c in points]
        lons = [c.longitude for c in points]
        m.fit_bounds([[min(lats), min(lons)], [max(lats), max(lons)]])

    return m


def save_route_map(route: RouteRecord, output_path: str,
                   trace: Optional[Sequence[LocationFix]] = None):
    create_route_map(route, trace).save(output_path)
