"""GPS access, recording and playback behind a push subscription."""

import json
import shutil
import subprocess
import threading
import time
from datetime import datetime
from typing import Callable, Optional

from .config import CONFIG
from .models import LocationFix

LocationCallback = Callable[[LocationFix], None]


class LocationUnavailable(Exception):
    """A location provider could not start delivering fixes"""


class LocationSubscription:
    """Polls a provider on a background thread and pushes fixes to a callback.

    remove() is safe to call more than once and from the callback itself.
    """

    def __init__(self, poll: Callable[[], Optional[LocationFix]], callback: LocationCallback,
                 interval: Callable[[], float],
                 finished: Optional[Callable[[], bool]] = None):
        self._poll = poll
        self._callback = callback
        self._interval = interval
        self._finished = finished
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True, name="location-poll")
        self._thread.start()

    def _run(self):
        while not self._stop.is_set():
            fix = self._poll()
            if fix and not self._stop.is_set():
                self._callback(fix)
            if self._finished and self._finished():
                break
            self._stop.wait(self._interval())

    @property
    def active(self) -> bool:
        return self._thread.is_alive() and not self._stop.is_set()

    def remove(self, timeout: float = 5.0):
        self._stop.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout)


class GPS:
    """GPS access via Termux API"""

    def __init__(self, poll_interval: Optional[float] = None):
        self.poll_interval = poll_interval or CONFIG["gps_poll_interval"]
        self.last_location: Optional[LocationFix] = None
        self.consecutive_failures = 0

    def get_location(self, timeout: int = 30) -> Optional[LocationFix]:
        """Get current location using termux-location"""
        try:
            result = subprocess.run(
                ["termux-location", "-p", "gps", "-r", "once"],
                capture_output=True,
                text=True,
                timeout=timeout
            )

            if result.returncode != 0 or not result.stdout or not result.stdout.strip():
                self.consecutive_failures += 1
                return None

            data = json.loads(result.stdout)
            location = LocationFix(
                latitude=data["latitude"],
                longitude=data["longitude"],
                speed=data.get("speed"),
                heading=data.get("bearing"),
                accuracy=data.get("accuracy"),
                timestamp=time.time()
            )
            self.last_location = location
            self.consecutive_failures = 0
            return location

        except subprocess.TimeoutExpired:
            self.consecutive_failures += 1
            return None
        except (json.JSONDecodeError, KeyError):
            self.consecutive_failures += 1
            return None
        except FileNotFoundError:
            self.consecutive_failures += 1
            return None

    def subscribe(self, callback: LocationCallback) -> LocationSubscription:
        """Deliver fixes to callback roughly every poll interval"""
        if shutil.which("termux-location") is None:
            raise LocationUnavailable("termux-location not found; is Termux:API installed?")
        return LocationSubscription(
            lambda: self.get_location(timeout=10), callback, lambda: self.poll_interval
        )

    def get_status(self) -> str:
        """Get GPS status string"""
        if self.consecutive_failures == 0:
            acc = f", accuracy {self.last_location.accuracy:.0f}m" if self.last_location and self.last_location.accuracy else ""
            return f"GPS OK{acc}"
        else:
            return f"GPS: {self.consecutive_failures} consecutive failures"


class GPSRecorder:
    """Records GPS trace to file"""

    def __init__(self, gps: GPS, record_path: str):
        self.gps = gps
        self.record_path = record_path
        self.trace: list[dict] = []
        self.start_time = time.time()

    def get_location(self, timeout: int = 30) -> Optional[LocationFix]:
        """Get location and record it"""
        location = self.gps.get_location(timeout)

        # Record even failed attempts
        entry = {
            "elapsed": time.time() - self.start_time,
            "timestamp": time.time(),
            "location": location.to_dict() if location else None,
            "status": self.gps.get_status()
        }
        self.trace.append(entry)

        return location

    def subscribe(self, callback: LocationCallback) -> LocationSubscription:
        if shutil.which("termux-location") is None:
            raise LocationUnavailable("termux-location not found; is Termux:API installed?")
        return LocationSubscription(
            lambda: self.get_location(timeout=10), callback, lambda: self.gps.poll_interval
        )

    def get_status(self) -> str:
        return self.gps.get_status()

    def save(self):
        """Save trace to file"""
        with open(self.record_path, "w") as f:
            json.dump({
                "recorded_at": datetime.now().isoformat(),
                "trace": self.trace
            }, f, indent=2)


class GPSPlayback:
    """Plays back GPS trace from file"""

    def __init__(self, playback_path: str, speed: float = 1.0):
        self.playback_path = playback_path
        self.speed = speed
        self.trace: list[dict] = []
        self.index = 0
        self.last_location: Optional[LocationFix] = None
        self.consecutive_failures = 0

        try:
            with open(playback_path) as f:
                data = json.load(f)
                self.trace = data["trace"]
        except (OSError, json.JSONDecodeError, KeyError) as e:
            raise LocationUnavailable(f"Cannot read GPS trace {playback_path}: {e}") from e

    def get_location(self, timeout: int = 30) -> Optional[LocationFix]:
        """Get next location from trace sequentially"""
        if self.index >= len(self.trace):
            return None

        entry = self.trace[self.index]
        self.index += 1

        if entry["location"]:
            location = LocationFix.from_dict(entry["location"])
            self.last_location = location
            self.consecutive_failures = 0
            return location
        else:
            self.consecutive_failures += 1
            return None

    def get_poll_interval(self) -> float:
        """Get the interval to wait between polls based on trace timing and speed"""
        if self.index <= 0 or self.index >= len(self.trace):
            return CONFIG["gps_poll_interval"] / self.speed

        prev_elapsed = self.trace[self.index - 1].get("elapsed", 0)
        curr_elapsed = self.trace[self.index].get("elapsed", 0)
        delta = curr_elapsed - prev_elapsed

        # Apply speed multiplier and clamp to reasonable range
        interval = delta / self.speed
        return max(0.01, min(interval, 5.0))

    def is_finished(self) -> bool:
        """Check if playback is complete"""
        return self.index >= len(self.trace)

    def subscribe(self, callback: LocationCallback) -> LocationSubscription:
        return LocationSubscription(self.get_location, callback, self.get_poll_interval,
                                    finished=self.is_finished)

    def get_status(self) -> str:
        progress = f"{self.index}/{len(self.trace)}"
        if self.consecutive_failures == 0:
            return f"Playback OK ({progress})"
        else:
            return f"Playback: {self.consecutive_failures} failures ({progress})"
