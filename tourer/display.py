"""Formatting of navigation state for display."""

from dataclasses import dataclass
from typing import Optional

from .models import NavigationSnapshot


def mps_to_kmh(speed: float) -> float:
    return speed * 3.6


def format_speed(speed: Optional[float]) -> str:
    """m/s to km/h with one decimal"""
    return f"{mps_to_kmh(speed or 0.0):.1f} km/h"


def format_distance(meters: float) -> str:
    """Whole meters below 1 km, otherwise km with one decimal"""
    if round(meters) < 1000:
        return f"{meters:.0f} m"
    return f"{meters / 1000:.1f} km"


def format_duration(seconds: Optional[float]) -> str:
    if seconds is None:
        return "--:--"
    minutes = int(round(seconds / 60))
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes} min"


@dataclass(frozen=True)
class NavigationView:
    route_name: Optional[str]
    speed_kmh: float
    speed: str
    distance_remaining: str
    distance_traveled: str
    eta: str
    progress_percent: float
    is_off_route: bool
    off_route_distance: str
    is_paused: bool
    is_navigating: bool

    def status_line(self) -> str:
        parts = [
            f"{self.progress_percent:5.1f}%",
            self.speed,
            f"{self.distance_remaining} left",
            f"ETA {self.eta}",
        ]
        if self.is_off_route:
            parts.append(f"OFF ROUTE ({self.off_route_distance})")
        if self.is_paused:
            parts.append("PAUSED")
        return " | ".join(parts)


def build_view(snapshot: NavigationSnapshot) -> NavigationView:
    return NavigationView(
        route_name=snapshot.route_name,
        speed_kmh=round(mps_to_kmh(snapshot.smoothed_speed), 1),
        speed=format_speed(snapshot.smoothed_speed),
        distance_remaining=format_distance(snapshot.distance_remaining),
        distance_traveled=format_distance(snapshot.distance_traveled),
        eta=format_duration(snapshot.eta_seconds),
        progress_percent=round(snapshot.progress_percent, 1),
        is_off_route=snapshot.is_off_route,
        off_route_distance=format_distance(snapshot.distance_from_route),
        is_paused=snapshot.is_paused,
        is_navigating=snapshot.is_navigating,
    )
