"""Main PathEase application."""

import asyncio
import time
from typing import Optional

from .api import PathEaseClient
from .commands import (
    HELP_TEXT, CommandBus, Confirm, Help, PauseNavigation, ResumeNavigation,
    SelectDay, SelectStop, SetSpeech, StartNavigation, StopNavigation,
)
from .config import CONFIG
from .debug_gui import DebugServer, WebSocketPositionSource
from .errors import EmptyItineraryError, InvalidSelectionError, PathEaseError
from .geo import retry_with_backoff
from .gps import (
    PlaybackPositionSource, PositionSource, RecordingPositionSource,
    StaticPositionSource, TermuxPositionSource,
)
from .guardian import GuardianTracker
from .itinerary_map import save_map
from .logger import Logger
from .models import Coordinate, Itinerary, NavStatus
from .navigation import Navigator
from .planner import TripPlanner
from .speech import Announcer, EspeakOutput, NullSpeechInput, SpeechInput, SpeechOutput
from .storage import ItineraryStore, SettingsStore


class NavigatorApp:
    """Main application"""

    def __init__(self, user: Optional[str] = None,
                 log_path: Optional[str] = None,
                 db_path: Optional[str] = None,
                 position_source: Optional[PositionSource] = None,
                 debug_gui: bool = False,
                 speech: Optional[bool] = None,
                 speech_output: Optional[SpeechOutput] = None,
                 speech_input: Optional[SpeechInput] = None,
                 client: Optional[PathEaseClient] = None,
                 html_output: Optional[str] = None,
                 tick: float = 0.5):
        self.user = user
        self.html_output = html_output  # HTML map written when navigation ends
        self.tick = tick

        self.settings_store = SettingsStore(db_path)
        self.itinerary_store = ItineraryStore(conn=self.settings_store.conn)
        self.settings = self.settings_store.load(user)
        if speech is not None:
            self.settings = self.settings_store.update(user, speechOn=speech)

        # Debug GUI server
        self.debug_server: Optional[DebugServer] = None
        if debug_gui:
            self.debug_server = DebugServer(CONFIG["debug_http_port"], CONFIG["debug_ws_port"])
            self.debug_server.start()

        # Logger with optional callback for debug GUI
        log_callback = self.debug_server.send_log if self.debug_server else None
        self.logger = Logger(log_path, callback=log_callback)

        if position_source is None:
            position_source = (WebSocketPositionSource(self.debug_server) if self.debug_server
                               else TermuxPositionSource())
        self.position_source = position_source

        self.announcer = Announcer(
            speech_output or EspeakOutput(lang=self.settings.get("voiceLang")),
            enabled=lambda: bool(self.settings.get("speechOn")),
            logger=self.logger,
            callback=self.debug_server.send_audio if self.debug_server else None,
        )
        self.navigator = Navigator(self.position_source, announcer=self.announcer, logger=self.logger)

        self.client = client or PathEaseClient()
        self.bus = CommandBus(self.logger)
        self.planner = TripPlanner(self.client, self.itinerary_store,
                                   locate=self.current_location_fix, logger=self.logger)
        self.planner.attach(self.bus)
        self._wire_commands()
        self.speech_input = speech_input or NullSpeechInput()

        self.guardian: Optional[GuardianTracker] = None
        if user:
            self.guardian = GuardianTracker(self.client, user, self.position_source, logger=self.logger)

        self.last_log_update = 0.0
        self.start_time = 0.0
        self._last_message: Optional[str] = None

    def _wire_commands(self):
        nav = self.navigator
        self.bus.subscribe(StartNavigation, lambda c: self._guarded(nav.start))
        self.bus.subscribe(PauseNavigation, lambda c: nav.pause())
        self.bus.subscribe(ResumeNavigation, lambda c: nav.resume())
        self.bus.subscribe(StopNavigation, lambda c: nav.stop())
        self.bus.subscribe(Confirm, lambda c: nav.answer(c.accepted))
        self.bus.subscribe(SelectDay, lambda c: self._guarded(nav.select_day, c.day_index))
        self.bus.subscribe(SelectStop, lambda c: self._guarded(nav.select_stop, c.stop_index))
        self.bus.subscribe(SetSpeech, lambda c: self.set_speech(c.enabled))
        self.bus.subscribe(Help, lambda c: print(HELP_TEXT))

    def _guarded(self, action, *args):
        """Run a user action, reporting rejected preconditions instead of raising"""
        try:
            action(*args)
        except EmptyItineraryError as e:
            print(self.navigator.state.status_message)
            self.logger.log("Command rejected", {"reason": str(e)})
        except InvalidSelectionError as e:
            print(f"Cannot select: {e}")
            self.logger.log("Command rejected", {"reason": str(e)})

    def set_speech(self, enabled: bool):
        self.settings = self.settings_store.update(self.user, speechOn=enabled)
        self.logger.log("Speech setting changed", {"speechOn": enabled})
        print(f"Speech {'on' if enabled else 'off'}")

    def handle_transcript(self, text: str):
        """Route one recognised (or typed) phrase through the command bus"""
        if self.bus.dispatch_text(text) is None:
            print("Sorry, I didn't catch that. Say 'help' for commands.")
            self.logger.log("Unrecognised command", {"text": text})

    def _on_speech_error(self, exc: Exception):
        self.logger.error("Voice input stopped", exc)

    def current_location_fix(self) -> Optional[Coordinate]:
        """Best known location, asking the device for a fix if there is none yet"""
        if self.position_source.last_location:
            return self.position_source.last_location
        if self.navigator.current_location:
            return self.navigator.current_location
        if isinstance(self.position_source, StaticPositionSource):
            return self.position_source.coordinate
        if isinstance(self.position_source, TermuxPositionSource):
            return self.initial_fix()
        return None

    def initial_fix(self) -> Optional[Coordinate]:
        """GPS fix with retry and backoff (up to 30s)"""
        print("Getting GPS fix...")

        def try_gps():
            loc = self.position_source.read_once()
            if loc:
                self.logger.log("GPS fix obtained", {"lat": loc.lat, "lng": loc.lng})
            else:
                self.logger.log("GPS attempt failed")
            return loc

        location = retry_with_backoff(
            try_gps,
            max_time=30.0,
            initial_delay=1.0,
            max_delay=8.0,
            description="GPS fix"
        )
        if not location:
            self.logger.log("Could not get GPS location after retries")
        return location

    def get_state(self) -> dict:
        """Navigator state plus partner tracking, for logging and the debug GUI"""
        state = self.navigator.get_state()
        if self.guardian and self.guardian.poller.partner:
            state["partner_status"] = self.guardian.poller.status_message
            sample = self.guardian.partner_location
            if sample:
                state["partner_location"] = {"lat": sample.coordinate.lat, "lng": sample.coordinate.lng}
            distance = self.guardian.distance_to_partner()
            if distance is not None:
                state["partner_distance"] = round(distance)
        return state

    def periodic_update(self, now: Optional[float] = None):
        """Handle periodic status updates"""
        now = time.time() if now is None else now
        state = self.get_state()
        if now - self.last_log_update >= CONFIG["log_interval"]:
            self.logger.log("STATE", state)
            self.last_log_update = now
        if self.debug_server:
            self.debug_server.send_state(state)
            for text in self.debug_server.pending_commands():
                self.handle_transcript(text)

    def _print_status(self):
        message = self.navigator.state.status_message
        if self.navigator.state.pending_prompt:
            message += " (yes/no)"
        if message != self._last_message:
            print(message)
            self._last_message = message

    def is_playback_finished(self) -> bool:
        """Check if playback is complete"""
        if isinstance(self.position_source, PlaybackPositionSource):
            return self.position_source.is_finished()
        return False

    def select_itinerary(self, itinerary: Itinerary):
        self.navigator.select_itinerary(itinerary)
        if self.debug_server:
            self.debug_server.send_itinerary(itinerary.to_dict())

    async def run_navigation(self, itinerary: Itinerary) -> bool:
        """Navigate an itinerary until finished, stopped, or playback runs out"""
        self.start_time = time.time()
        if isinstance(self.position_source, TermuxPositionSource):
            fix = await asyncio.to_thread(self.initial_fix)
            if not fix:
                print("Could not get GPS location")
                self.announcer.announce("Could not get GPS location")
                return False
            self.navigator.current_location = fix

        try:
            self.select_itinerary(itinerary)
        except EmptyItineraryError:
            print(self.navigator.state.status_message)
            return False

        self.speech_input.listen(self.handle_transcript, self._on_speech_error)
        try:
            while True:
                self.navigator.expire_prompt()
                self.periodic_update()
                self._print_status()
                status = self.navigator.status
                if status is NavStatus.FINISHED:
                    break
                if status is NavStatus.IDLE:
                    # Stopped by the user or by a location error
                    break
                if self.is_playback_finished() and not self.navigator.state.pending_prompt:
                    print("\nPlayback finished")
                    self.logger.log("Playback finished")
                    break
                await asyncio.sleep(self.tick)
        finally:
            self.speech_input.stop()
            self.navigator.stop()
            self._finish_session()
        return self.navigator.state.error is None

    def _finish_session(self):
        if isinstance(self.position_source, RecordingPositionSource):
            self.position_source.save()

        if self.html_output and self.navigator.itinerary:
            try:
                save_map(self.navigator.itinerary, self.html_output,
                         visited=self.navigator.state.visited,
                         current_location=self.navigator.current_location)
                print(f"Map saved to: {self.html_output}")
            except ValueError as e:
                self.logger.error("Map not saved", e)

        summary = {
            **self.navigator.progress(),
            "duration": time.time() - self.start_time if self.start_time else 0,
        }
        self.logger.log("Navigation summary", summary)
        print("\nNavigation summary:")
        print(f"  Stops visited: {summary['visited']}/{summary['total']}")
        print(f"  Duration: {summary['duration'] / 60:.1f} minutes")

    async def run_tracking(self, partner: Optional[str] = None, share: bool = False,
                           duration: Optional[float] = None):
        """Follow a partner's live location and/or share ours until interrupted"""
        if not self.guardian:
            raise PathEaseError("Tracking needs a signed-in user (--user)")
        try:
            connections = await asyncio.to_thread(self.guardian.refresh_connections)
            for c in connections:
                print(f"  {c.partner_email} ({c.status.value})")
        except PathEaseError as e:
            self.logger.error("Could not load connections", e)

        if share:
            self.guardian.sharer.start()
        if partner:
            self.guardian.select_partner(partner)

        last_status = None
        started = time.monotonic()
        try:
            while duration is None or time.monotonic() - started < duration:
                self.periodic_update()
                status = " | ".join(filter(None, [
                    self.guardian.poller.status_message if partner else None,
                    self.guardian.sharer.status_message if share else None,
                ]))
                distance = self.guardian.distance_to_partner()
                if distance is not None:
                    status += f" | {distance:.0f} m away"
                if status != last_status:
                    print(status)
                    last_status = status
                await asyncio.sleep(self.tick)
        finally:
            self.guardian.close()

    def run(self, itinerary: Itinerary) -> bool:
        """Run navigation on a fresh event loop; Ctrl+C ends it cleanly"""
        print("\n=== PathEase ===")
        print(f"Itinerary: {itinerary.title} ({len(itinerary.days)} days, {itinerary.stop_count()} stops)")
        if isinstance(self.position_source, PlaybackPositionSource):
            print(f"Playback mode: {self.position_source.speed}x speed")
        print("Type 'help' for commands. Press Ctrl+C to stop")
        print()

        try:
            return asyncio.run(self.run_navigation(itinerary))
        except KeyboardInterrupt:
            print("\nNavigation interrupted")
            self.announcer.announce("Navigation ended")
            self.logger.log("Navigation interrupted by user")
            return False
        finally:
            self.close()

    def track(self, partner: Optional[str] = None, share: bool = False):
        try:
            asyncio.run(self.run_tracking(partner, share))
        except KeyboardInterrupt:
            print("\nTracking stopped")
            self.logger.log("Tracking interrupted by user")
        finally:
            self.close()

    def plan(self, destination: str, days: int, **params) -> Itinerary:
        """Generate an itinerary with the AI planner and save it"""
        draft = self.planner.params
        draft.destination = destination
        draft.days = days
        for key, value in params.items():
            if value is not None:
                setattr(draft, key, value)
        print(f"Planning {days} days in {destination}...")
        self.planner.generate()
        itinerary = self.planner.save()
        if itinerary is None:
            raise PathEaseError("The planner returned an empty itinerary")
        return itinerary

    def close(self):
        if self.guardian:
            self.guardian.close()
        if self.debug_server:
            self.debug_server.stop()
        self.settings_store.close()
        self.logger.close()
