"""Guardian live tracking: partner location polling and location sharing."""

import asyncio
import itertools
from typing import Callable, Optional

import requests

from .api import PathEaseClient
from .config import CONFIG
from .errors import ApiError, PartnerLocationUnavailable
from .geo import distance_meters
from .gps import PositionSource, WatchHandle
from .logger import Logger
from .models import Coordinate, GuardianConnection, LiveLocationSample

# Failures a single poll or push may hit; none of them end the loop
BACKGROUND_ERRORS = (ApiError, PartnerLocationUnavailable, requests.RequestException,
                     KeyError, TypeError, ValueError)


class PartnerPoller:
    """Polls a partner's last known location on a fixed interval.

    Polls may overlap. Each one takes a sequence number when issued and a
    reply is kept only if it is newer than the reply already stored, so a
    slow stale reply never overwrites fresher data. Failures keep the last
    good sample and only flag the error.
    """

    def __init__(self, fetch: Callable[[str], LiveLocationSample],
                 interval: Optional[float] = None,
                 logger: Optional[Logger] = None):
        self.fetch = fetch
        self.interval = interval if interval is not None else CONFIG["guardian_poll_interval"]
        self.logger = logger or Logger(echo=False)
        self.partner: Optional[str] = None
        self.sample: Optional[LiveLocationSample] = None
        self.error: Optional[str] = None
        self.status_message = "Ready to track."
        self.on_change: Optional[Callable[[], None]] = None
        self._seq = itertools.count(1)
        self._result_seq = 0
        self._error_seq = 0
        self._timer: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def select(self, partner: Optional[str]):
        """Track a partner, or stop tracking with None"""
        if partner == self.partner and (self.running or not partner):
            return
        self.stop()
        self.partner = partner or None
        self.sample = None
        self.error = None
        self._result_seq = 0
        self._error_seq = 0
        if not self.partner:
            self.status_message = "Ready to track."
            self._changed()
            return
        self.status_message = f"Tracking {self.partner}."
        self.logger.log("Partner selected", {"partner": self.partner})
        self._timer = asyncio.get_running_loop().create_task(self._run())
        self._changed()

    def stop(self):
        """Cancel the timer and any polls still in flight"""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for task in list(self._inflight):
            task.cancel()
        self._inflight.clear()

    async def _run(self):
        while True:
            self.poll_now()
            await asyncio.sleep(self.interval)

    def poll_now(self) -> int:
        seq = self.issue()
        task = asyncio.get_running_loop().create_task(self._poll(seq, self.partner))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return seq

    async def _poll(self, seq: int, partner: str):
        try:
            sample = await asyncio.to_thread(self.fetch, partner)
        except BACKGROUND_ERRORS as e:
            self.fail(seq, partner, e)
        else:
            self.resolve(seq, partner, sample)

    def issue(self) -> int:
        """Next request sequence number"""
        return next(self._seq)

    def resolve(self, seq: int, partner: str, sample: LiveLocationSample) -> bool:
        """Store a reply unless it is stale; returns whether it was kept"""
        if partner != self.partner or seq <= self._result_seq:
            self.logger.log("Discarded stale partner location", {"seq": seq, "kept": self._result_seq})
            return False
        self._result_seq = seq
        self.sample = sample
        if seq > self._error_seq:
            self.error = None
        self.status_message = f"{partner} last updated: {sample.age_text()}"
        self._changed()
        return True

    def fail(self, seq: int, partner: str, exc: Exception) -> bool:
        """Flag a failed poll; the last good sample stays"""
        if partner != self.partner or seq <= self._result_seq:
            return False
        self._error_seq = max(self._error_seq, seq)
        self.error = str(exc) or type(exc).__name__
        self.status_message = f"Waiting for {partner}..."
        self.logger.error("Partner location unavailable", exc, {"partner": partner, "seq": seq})
        self._changed()
        return True

    def _changed(self):
        if self.on_change:
            self.on_change()


class LocationSharer:
    """Pushes every position sample to the backend while sharing is on"""

    def __init__(self, position_source: PositionSource,
                 push: Callable[[Coordinate], object],
                 logger: Optional[Logger] = None):
        self.position_source = position_source
        self.push = push
        self.logger = logger or Logger(echo=False)
        self.sharing = False
        self.my_location: Optional[Coordinate] = None
        self.status_message = "Location sharing is off."
        self.on_change: Optional[Callable[[], None]] = None
        self._handle: Optional[WatchHandle] = None
        self._pushes: set[asyncio.Task] = set()

    def start(self):
        if self.sharing:
            return
        self.status_message = "Starting location sharing..."
        self.sharing = True
        self._handle = self.position_source.start_watching(self._on_sample, self._on_error)
        self.logger.log("Location sharing started")
        self._changed()

    def stop(self):
        if self._handle is not None:
            self.position_source.stop_watching(self._handle)
            self._handle = None
        if self.sharing:
            self.sharing = False
            self.status_message = "Stopped sharing location."
            self.logger.log("Location sharing stopped")
            self._changed()

    def toggle(self):
        if self.sharing:
            self.stop()
        else:
            self.start()

    def _on_sample(self, location: Coordinate):
        self.my_location = location
        task = asyncio.get_running_loop().create_task(self._push(location))
        self._pushes.add(task)
        task.add_done_callback(self._pushes.discard)
        self.status_message = "Live location sharing active."
        self._changed()

    async def _push(self, location: Coordinate):
        try:
            await asyncio.to_thread(self.push, location)
        except BACKGROUND_ERRORS as e:
            self.logger.error("Live location update failed", e)

    def _on_error(self, exc: Exception):
        self._handle = None
        self.sharing = False
        self.status_message = f"Error: {exc}"
        self.logger.error("Location sharing failed", exc)
        self._changed()

    def _changed(self):
        if self.on_change:
            self.on_change()


class GuardianTracker:
    """Live tracking for one signed-in user"""

    def __init__(self, client: PathEaseClient, email: str, position_source: PositionSource,
                 logger: Optional[Logger] = None, interval: Optional[float] = None):
        self.client = client
        self.email = email
        self.logger = logger or Logger(echo=False)
        self.poller = PartnerPoller(
            lambda partner: client.get_partner_location(email, partner),
            interval=interval,
            logger=self.logger,
        )
        self.sharer = LocationSharer(
            position_source,
            lambda location: client.update_live_location(email, location),
            logger=self.logger,
        )
        self.connections: list[GuardianConnection] = []

    def refresh_connections(self) -> list[GuardianConnection]:
        self.connections = self.client.get_my_connections(self.email)
        self.logger.log("Connections loaded", {"count": len(self.connections)})
        return self.connections

    def select_partner(self, partner_email: Optional[str]):
        self.poller.select(partner_email)

    @property
    def partner_location(self) -> Optional[LiveLocationSample]:
        return self.poller.sample

    def distance_to_partner(self) -> Optional[float]:
        sample = self.poller.sample
        mine = self.sharer.my_location or self.sharer.position_source.last_location
        if not sample or not mine:
            return None
        return distance_meters(mine, sample.coordinate)

    def map_center(self) -> Optional[Coordinate]:
        if self.poller.sample:
            return self.poller.sample.coordinate
        return self.sharer.my_location

    # --- connection lifecycle ---

    def incoming_requests(self) -> list[dict]:
        return self.client.get_incoming_requests(self.email)

    def send_request(self, partner_email: str) -> str:
        message = self.client.send_tracking_request(self.email, partner_email.lower())
        self.refresh_connections()
        return message

    def respond(self, request_id: str, status: str) -> str:
        message = self.client.respond_tracking_request(request_id, status)
        self.refresh_connections()
        return message

    def stop_tracking(self, partner_email: str) -> str:
        message = self.client.stop_tracking(self.email, partner_email)
        if self.poller.partner == partner_email:
            self.poller.select(None)
        self.refresh_connections()
        return message

    def close(self):
        self.poller.stop()
        self.sharer.stop()
