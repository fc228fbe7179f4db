"""Itinerary navigation: day/stop progress driven by position updates."""

import time
from typing import Callable, Optional

from .config import CONFIG
from .errors import EmptyItineraryError, InvalidSelectionError
from .geo import direction_hint, directions_url, has_arrived
from .gps import PositionSource, WatchHandle
from .logger import Logger
from .models import Coordinate, Itinerary, NavigationState, NavStatus, Prompt, Waypoint
from .speech import Announcer


class Navigator:
    """State machine walking a user through an itinerary.

    Idle -> Navigating(day, stop, paused) -> Finished. Arrival at the current
    stop marks it visited and raises a prompt; the UI answers through
    confirm_continue() / confirm_day_advance(). Nothing advances while paused
    or while a prompt is unanswered.
    """

    def __init__(self, position_source: PositionSource,
                 announcer: Optional[Announcer] = None,
                 logger: Optional[Logger] = None,
                 itinerary: Optional[Itinerary] = None,
                 arrival_threshold: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.position_source = position_source
        self.logger = logger or Logger(echo=False)
        self.announcer = announcer or Announcer(logger=self.logger)
        self.itinerary = itinerary
        self.arrival_threshold = (arrival_threshold if arrival_threshold is not None
                                  else CONFIG["arrival_threshold"])
        self.clock = clock
        self.state = NavigationState()
        self.current_location: Optional[Coordinate] = None
        self._handle: Optional[WatchHandle] = None
        self.on_change: Optional[Callable[[], None]] = None

    # --- queries ---

    @property
    def status(self) -> NavStatus:
        return self.state.status

    def current_stops(self) -> list[Waypoint]:
        if not self.itinerary or self.state.day_index >= len(self.itinerary.days):
            return []
        return self.itinerary.days[self.state.day_index].stops

    def current_stop(self) -> Optional[Waypoint]:
        stops = self.current_stops()
        if self.state.stop_index < len(stops):
            return stops[self.state.stop_index]
        return None

    def current_target(self) -> Optional[Coordinate]:
        stop = self.current_stop()
        return stop.coordinate if stop else None

    def progress(self) -> dict:
        total = self.itinerary.stop_count() if self.itinerary else 0
        return {"visited": len(self.state.visited), "total": total}

    def directions_link(self) -> Optional[str]:
        target = self.current_target()
        if not target:
            return None
        return directions_url(self.current_location, target)

    def get_state(self) -> dict:
        """Snapshot for logging and the debug GUI"""
        stop = self.current_stop()
        state = {
            "status": self.state.status.value,
            "day_index": self.state.day_index,
            "stop_index": self.state.stop_index,
            "paused": self.state.paused,
            "pending_prompt": self.state.pending_prompt.value if self.state.pending_prompt else None,
            "visited_stops": [list(k) for k in sorted(self.state.visited)],
            "next_stop": stop.name if stop else None,
            "status_message": self.state.status_message,
            "error": self.state.error,
            "gps_status": self.position_source.get_status(),
            **self.progress(),
        }
        if self.current_location:
            state["location"] = {"lat": self.current_location.lat, "lng": self.current_location.lng}
        target = self.current_target()
        if target:
            state["target_location"] = {"lat": target.lat, "lng": target.lng}
        return state

    # --- transitions ---

    def start(self):
        """Idle -> Navigating(0, 0). No-op if already navigating."""
        if self.state.status is NavStatus.NAVIGATING:
            return
        if not self.itinerary or self.itinerary.is_empty():
            self.state.status_message = "This itinerary has no stops to navigate."
            raise EmptyItineraryError("itinerary has no stops")
        self._begin(0, 0)

    def _begin(self, day_index: int, stop_index: int):
        self.state.status = NavStatus.NAVIGATING
        self.state.day_index = day_index
        self.state.stop_index = stop_index
        self.state.paused = False
        self.state.error = None
        self._clear_prompt()
        self._handle = self.position_source.start_watching(self.on_position, self.on_position_error)
        self.state.status_message = "Navigation started."
        self.logger.log("Navigation started", {"day": day_index, "stop": stop_index})
        self._announce_target()
        self._changed()

    def stop(self):
        """Any state -> Idle, releasing the location watch"""
        if self._handle is not None:
            self.position_source.stop_watching(self._handle)
            self._handle = None
        was = self.state.status
        self.state.status = NavStatus.IDLE
        self.state.paused = False
        self._clear_prompt()
        if was is not NavStatus.IDLE:
            self.state.status_message = "Navigation stopped."
            self.logger.log("Navigation stopped", {"from": was.value})
        self._changed()

    def pause(self):
        if not self.state.active or self.state.paused:
            return
        if self.state.pending_prompt:
            # Pausing answers the open question with "no"
            self._clear_prompt()
        self.state.paused = True
        self.state.status_message = "Navigation paused."
        self.logger.log("Navigation paused", self._position())
        self._changed()

    def resume(self):
        if not self.state.active or not self.state.paused:
            return
        self.state.paused = False
        hint = self._stuck_hint()
        self.state.status_message = f"Navigation resumed. {hint}" if hint else "Navigation resumed."
        self.logger.log("Navigation resumed", self._position())
        self._announce_target()
        self._changed()

    def select_itinerary(self, itinerary: Itinerary):
        """Switch plans: stop, forget visited stops, start from day 1"""
        self.stop()
        self.itinerary = itinerary
        self.state.visited = set()
        self.state.day_index = 0
        self.state.stop_index = 0
        self.logger.log("Itinerary selected", {"title": itinerary.title, "days": len(itinerary.days)})
        self.start()

    def select_day(self, day_index: int):
        if not self.itinerary or not 0 <= day_index < len(self.itinerary.days):
            raise InvalidSelectionError(f"no day {day_index + 1} in this itinerary")
        self.stop()
        self._begin(day_index, 0)

    def select_stop(self, stop_index: int):
        day_index = self.state.day_index
        if not 0 <= stop_index < len(self.current_stops()):
            raise InvalidSelectionError(f"no stop {stop_index + 1} on day {day_index + 1}")
        self.stop()
        self._begin(day_index, stop_index)

    def mark_visited(self, day_index: int, stop_index: int):
        """Manual checklist tick; the stop will not prompt on arrival"""
        self.state.visited.add((day_index, stop_index))
        self._changed()

    # --- position stream ---

    def on_position(self, location: Coordinate):
        self.current_location = location
        if not self.state.active or self.state.paused or self.state.pending_prompt:
            return
        target = self.current_target()
        if not target:
            self._report_unreachable()
            return
        key = (self.state.day_index, self.state.stop_index)
        if key in self.state.visited:
            return
        if not has_arrived(location, target, self.arrival_threshold):
            return

        self.state.visited.add(key)
        stop = self.current_stop()
        self.logger.log("Arrived", {"day": key[0], "stop": key[1], "name": stop.name})
        self.announcer.announce(f"You have reached {stop.name}.")
        self._raise_prompt(Prompt.CONTINUE, "Reached this place. Continue to next place?")

    def on_position_error(self, error: Exception):
        self.logger.error("Location unavailable", error)
        self._handle = None
        self.stop()
        self.state.error = str(error) or type(error).__name__
        self.state.status_message = "Unable to access location."

    # --- prompts ---

    def confirm_continue(self, accepted: bool):
        if self.state.pending_prompt is not Prompt.CONTINUE:
            return
        self._clear_prompt()
        if not accepted:
            self._pause_for_prompt()
            return

        stops = self.current_stops()
        if self.state.stop_index + 1 < len(stops):
            self.state.stop_index += 1
            next_stop = stops[self.state.stop_index]
            message = f"Next place: {next_stop.name}."
            if self.current_location and next_stop.coordinate:
                message += f" Head {direction_hint(self.current_location, next_stop.coordinate)}."
            self.state.status_message = message
            self.logger.log("Next stop", self._position())
            self.announcer.announce(message)
        elif self.state.day_index + 1 < len(self.itinerary.days):
            self._raise_prompt(Prompt.NEXT_DAY, "Day completed. Move to next day?")
            return
        else:
            self._finish()
            return
        self._changed()

    def confirm_day_advance(self, accepted: bool):
        if self.state.pending_prompt is not Prompt.NEXT_DAY:
            return
        self._clear_prompt()
        if not accepted:
            self._pause_for_prompt()
            return
        self.state.day_index += 1
        self.state.stop_index = 0
        message = f"Starting day {self.state.day_index + 1}."
        self.state.status_message = message
        self.logger.log("Next day", self._position())
        self.announcer.announce(message)
        self._announce_target()
        self._changed()

    def answer(self, accepted: bool):
        """Answer whichever prompt is open"""
        if self.state.pending_prompt is Prompt.CONTINUE:
            self.confirm_continue(accepted)
        elif self.state.pending_prompt is Prompt.NEXT_DAY:
            self.confirm_day_advance(accepted)

    def expire_prompt(self, now: Optional[float] = None) -> bool:
        """Apply the headless policy to a prompt left unanswered too long"""
        timeout = CONFIG["confirmation_timeout"]
        if self.state.pending_prompt is None or timeout is None:
            return False
        now = self.clock() if now is None else now
        if now - self.state.prompt_issued_at < timeout:
            return False
        accepted = CONFIG["confirmation_policy"] == "continue"
        self.logger.log("Prompt timed out", {
            "prompt": self.state.pending_prompt.value,
            "policy": CONFIG["confirmation_policy"],
        })
        self.answer(accepted)
        return True

    # --- helpers ---

    def _raise_prompt(self, prompt: Prompt, message: str):
        self.state.pending_prompt = prompt
        self.state.prompt_issued_at = self.clock()
        self.state.status_message = message
        self.logger.log("Prompt", {"prompt": prompt.value, **self._position()})
        self._changed()

    def _clear_prompt(self):
        self.state.pending_prompt = None
        self.state.prompt_issued_at = None

    def _pause_for_prompt(self):
        self.state.paused = True
        self.state.status_message = "Navigation paused."
        self.logger.log("Navigation paused", self._position())
        self._changed()

    def _finish(self):
        # The watch stays open until stop()
        self.state.status = NavStatus.FINISHED
        self.state.paused = False
        message = "Successfully finished the itinerary."
        self.state.status_message = message
        self.logger.log("Itinerary finished", self.progress())
        self.announcer.announce(message)
        self._changed()

    def _announce_target(self):
        stop = self.current_stop()
        if stop and self.state.active and not self.state.paused:
            self.announcer.announce(f"Navigate to {stop.name}")

    def _move_on_phrase(self) -> str:
        if self.state.stop_index + 1 < len(self.current_stops()):
            return f"stop {self.state.stop_index + 2}"
        if self.itinerary and self.state.day_index + 1 < len(self.itinerary.days):
            return f"day {self.state.day_index + 2}"
        return "stop navigation"

    def _stuck_hint(self) -> Optional[str]:
        """What to say when the current target can never trigger an arrival"""
        stop = self.current_stop()
        if stop is None:
            reason = f"Day {self.state.day_index + 1} has no stops."
        elif stop.coordinate is None:
            reason = f"{stop.name} has no location."
        elif (self.state.day_index, self.state.stop_index) in self.state.visited:
            reason = f"{stop.name} is already visited."
        else:
            return None
        return f"{reason} Say '{self._move_on_phrase()}' to move on."

    def _report_unreachable(self):
        hint = self._stuck_hint()
        if not hint or hint == self.state.status_message:
            return
        self.state.status_message = hint
        self.logger.log("Target unreachable", {"hint": hint, **self._position()})
        self._changed()

    def _position(self) -> dict:
        return {"day": self.state.day_index, "stop": self.state.stop_index}

    def _changed(self):
        if self.on_change:
            self.on_change()
