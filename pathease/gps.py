"""Position sources: continuous location watches plus recording/playback."""

import asyncio
import json
import math
import subprocess
import time
from datetime import datetime
from typing import AsyncIterator, Callable, Optional

from .config import CONFIG
from .errors import PermissionDeniedError
from .geo import distance_meters
from .models import Coordinate, Itinerary


class WatchHandle:
    """One consumer's location watch. release() ends it; repeated calls are harmless."""

    def __init__(self, source: "PositionSource",
                 on_update: Optional[Callable[[Coordinate], None]] = None,
                 on_error: Optional[Callable[[Exception], None]] = None):
        self.source = source
        self.on_update = on_update
        self.on_error = on_error
        self.task: Optional[asyncio.Task] = None
        self.active = True
        self.release_count = 0

    def release(self):
        if not self.active:
            return
        self.active = False
        self.release_count += 1
        self.source._detach(self)


class PositionSource:
    """Base class for location streams.

    Subclasses implement positions(), an async iterator of Coordinates. The
    base class turns it into callback watches on the running event loop.
    Every consumer gets its own handle, all handles share one underlying
    stream, and the stream is cancelled when the last handle is released.
    Errors reach each consumer once, and nothing is delivered to a handle
    after an error or after release.
    """

    def __init__(self):
        self._handles: list[WatchHandle] = []
        self._task: Optional[asyncio.Task] = None
        self.last_location: Optional[Coordinate] = None
        self.consecutive_failures = 0

    def positions(self) -> AsyncIterator[Coordinate]:
        raise NotImplementedError

    @property
    def watching(self) -> bool:
        return bool(self._handles)

    def start_watching(self, on_update: Callable[[Coordinate], None],
                       on_error: Callable[[Exception], None]) -> WatchHandle:
        """Start delivering positions; a consumer already watching gets its existing handle"""
        for handle in self._handles:
            if handle.on_update == on_update:
                return handle
        handle = WatchHandle(self, on_update, on_error)
        self._handles.append(handle)
        if self._task is None or self._task.done():
            self._task = self._open_stream()
        handle.task = self._task
        return handle

    def stop_watching(self, handle: WatchHandle):
        handle.release()

    def _open_stream(self) -> Optional[asyncio.Task]:
        return asyncio.get_running_loop().create_task(self._pump())

    def _detach(self, handle: WatchHandle):
        if handle in self._handles:
            self._handles.remove(handle)
        if not self._handles and self._task is not None:
            if not self._task.done():
                self._task.cancel()
            self._task = None

    def _deliver(self, coordinate: Coordinate):
        self.last_location = coordinate
        for handle in list(self._handles):
            if handle.active:
                handle.on_update(coordinate)

    def _fail_all(self, exc: Exception):
        # Dead stream: every consumer is detached first, then told once
        handles, self._handles = self._handles, []
        self._task = None
        for handle in handles:
            handle.active = False
        for handle in handles:
            handle.on_error(exc)

    async def _pump(self):
        try:
            async for coordinate in self.positions():
                if not self._handles:
                    break
                self._deliver(coordinate)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._handles:
                self._fail_all(e)

    def get_status(self) -> str:
        if self.consecutive_failures == 0:
            acc = ""
            if self.last_location and self.last_location.accuracy:
                acc = f", accuracy {self.last_location.accuracy:.0f}m"
            return f"GPS OK{acc}"
        return f"GPS: {self.consecutive_failures} consecutive failures"


class TermuxPositionSource(PositionSource):
    """Device location via the Termux API"""

    def __init__(self, interval: Optional[float] = None, timeout: Optional[int] = None,
                 provider: str = "gps"):
        super().__init__()
        self.interval = interval if interval is not None else CONFIG["gps_poll_interval"]
        self.timeout = timeout if timeout is not None else CONFIG["gps_timeout"]
        self.provider = provider

    def read_once(self) -> Optional[Coordinate]:
        """One termux-location reading; None on a transient failure"""
        try:
            result = subprocess.run(
                ["termux-location", "-p", self.provider, "-r", "once"],
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except FileNotFoundError:
            raise PermissionDeniedError("Geolocation not supported (termux-location not found)")
        except subprocess.TimeoutExpired:
            self.consecutive_failures += 1
            return None

        if result.returncode != 0:
            error_msg = result.stderr.strip() if result.stderr else "unknown error"
            if "permission" in error_msg.lower():
                raise PermissionDeniedError(f"Unable to access location: {error_msg}")
            self.consecutive_failures += 1
            return None

        if not result.stdout or not result.stdout.strip():
            self.consecutive_failures += 1
            return None

        try:
            data = json.loads(result.stdout)
            location = Coordinate(
                lat=data["latitude"],
                lng=data["longitude"],
                accuracy=data.get("accuracy"),
                timestamp=time.time()
            )
        except (json.JSONDecodeError, KeyError, ValueError):
            self.consecutive_failures += 1
            return None

        self.last_location = location
        self.consecutive_failures = 0
        return location

    async def positions(self):
        while True:
            location = await asyncio.to_thread(self.read_once)
            if location:
                yield location
            await asyncio.sleep(self.interval)


class StaticPositionSource(PositionSource):
    """A fixed location, for running without GPS"""

    def __init__(self, coordinate: Coordinate, interval: Optional[float] = None):
        super().__init__()
        self.coordinate = coordinate
        self.interval = interval if interval is not None else CONFIG["gps_poll_interval"]

    async def positions(self):
        # Reported on every poll, like a receiver that never moves
        while True:
            yield self.coordinate
            await asyncio.sleep(self.interval)

    def get_status(self) -> str:
        return f"Fixed location ({self.coordinate.lat:.5f}, {self.coordinate.lng:.5f})"


class RecordingPositionSource(PositionSource):
    """Records every sample from another source to a trace file"""

    def __init__(self, source: PositionSource, record_path: str):
        super().__init__()
        self.source = source
        self.record_path = record_path
        self.trace: list[dict] = []
        self.start_time = time.time()

    async def positions(self):
        async for location in self.source.positions():
            self.trace.append({
                "elapsed": time.time() - self.start_time,
                "timestamp": time.time(),
                "location": location.to_dict(),
                "status": self.source.get_status(),
            })
            yield location

    def get_status(self) -> str:
        return self.source.get_status()

    def save(self):
        """Save trace to file"""
        with open(self.record_path, "w") as f:
            json.dump({
                "recorded_at": datetime.now().isoformat(),
                "trace": self.trace
            }, f, indent=2)
        print(f"GPS trace saved to {self.record_path} ({len(self.trace)} entries)")


class PlaybackPositionSource(PositionSource):
    """Plays back a recorded trace, honouring its timing scaled by speed"""

    def __init__(self, playback_path: str, speed: float = 1.0, sleep=asyncio.sleep):
        super().__init__()
        self.playback_path = playback_path
        self.speed = speed
        self.index = 0
        self._sleep = sleep

        with open(playback_path) as f:
            data = json.load(f)
            self.trace: list[dict] = data["trace"]
        print(f"Loaded GPS trace from {playback_path} ({len(self.trace)} entries)")

    def get_poll_interval(self) -> float:
        """Wait before the current entry, from the recorded gap and speed"""
        if self.index <= 0 or self.index >= len(self.trace):
            return 0.0
        prev_elapsed = self.trace[self.index - 1].get("elapsed", 0)
        curr_elapsed = self.trace[self.index].get("elapsed", 0)
        interval = (curr_elapsed - prev_elapsed) / self.speed
        return max(0.05, min(interval, 5.0))

    async def positions(self):
        while self.index < len(self.trace):
            await self._sleep(self.get_poll_interval())
            entry = self.trace[self.index]
            self.index += 1
            if entry.get("location"):
                location = Coordinate.from_dict(entry["location"])
                self.last_location = location
                self.consecutive_failures = 0
                yield location
            else:
                self.consecutive_failures += 1

    def is_finished(self) -> bool:
        return self.index >= len(self.trace)

    def get_status(self) -> str:
        progress = f"{self.index}/{len(self.trace)}"
        if self.consecutive_failures == 0:
            return f"Playback OK ({progress})"
        return f"Playback: {self.consecutive_failures} failures ({progress})"


def synthesize_trace(itinerary: Itinerary, start: Coordinate, step_meters: float = 25.0,
                     dwell: int = 2, interval: float = 1.0) -> dict:
    """Build a playback trace that walks from start through every stop in order.

    Each leg is cut into straight-line steps of about step_meters; the trace
    then lingers for `dwell` samples at each stop so arrival is seen.
    """
    trace = []
    elapsed = 0.0

    def add(lat: float, lng: float):
        nonlocal elapsed
        trace.append({
            "elapsed": round(elapsed, 3),
            "timestamp": None,
            "location": {"lat": lat, "lng": lng},
            "status": "synthetic",
        })
        elapsed += interval

    current = start
    add(current.lat, current.lng)
    for day in itinerary.days:
        for stop in day.stops:
            if not stop.coordinate:
                continue
            target = stop.coordinate
            steps = max(1, math.ceil(distance_meters(current, target) / step_meters))
            for i in range(1, steps + 1):
                t = i / steps
                add(current.lat + (target.lat - current.lat) * t,
                    current.lng + (target.lng - current.lng) * t)
            for _ in range(dwell):
                add(target.lat, target.lng)
            current = target

    return {"recorded_at": datetime.now().isoformat(), "trace": trace}
