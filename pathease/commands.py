"""Typed voice/chat commands and the bus that routes them."""

import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .logger import Logger


# Trip planner form
@dataclass(frozen=True)
class SetDestination:
    value: str


@dataclass(frozen=True)
class SetDays:
    days: int


@dataclass(frozen=True)
class SetBudget:
    value: str


@dataclass(frozen=True)
class SetTravelType:
    value: str


@dataclass(frozen=True)
class SetInterests:
    value: str


@dataclass(frozen=True)
class SetCurrency:
    value: str


@dataclass(frozen=True)
class UseCurrentLocation:
    pass


@dataclass(frozen=True)
class GenerateItinerary:
    pass


@dataclass(frozen=True)
class SaveItinerary:
    pass


# Navigation
@dataclass(frozen=True)
class StartNavigation:
    pass


@dataclass(frozen=True)
class PauseNavigation:
    pass


@dataclass(frozen=True)
class ResumeNavigation:
    pass


@dataclass(frozen=True)
class StopNavigation:
    pass


@dataclass(frozen=True)
class Confirm:
    accepted: bool


@dataclass(frozen=True)
class SelectDay:
    day_index: int


@dataclass(frozen=True)
class SelectStop:
    stop_index: int


# Settings / misc
@dataclass(frozen=True)
class SetSpeech:
    enabled: bool


@dataclass(frozen=True)
class Help:
    pass


Command = Union[
    SetDestination, SetDays, SetBudget, SetTravelType, SetInterests, SetCurrency,
    UseCurrentLocation, GenerateItinerary, SaveItinerary,
    StartNavigation, PauseNavigation, ResumeNavigation, StopNavigation,
    Confirm, SelectDay, SelectStop, SetSpeech, Help,
]

HELP_TEXT = ("Try: start navigation, pause, resume, stop, yes, no, day 2, stop 3, "
             "speech on, speech off, destination Goa, 3 days, generate itinerary, save itinerary.")

_YES = {"yes", "y", "ok", "okay", "continue", "sure", "yes please"}
_NO = {"no", "n", "not now", "no thanks", "wait"}

# (pattern, factory) tried in order against the raw text
_VALUE_PATTERNS: list[tuple[re.Pattern, Callable[[re.Match], Command]]] = [
    (re.compile(r"^(?:go to |navigate to )?stop (\d+)$", re.I),
     lambda m: SelectStop(int(m.group(1)) - 1)),
    (re.compile(r"^(?:go to |start |switch to )?day (\d+)$", re.I),
     lambda m: SelectDay(int(m.group(1)) - 1)),
    (re.compile(r"^(?:set )?destination (?:to |is )?(.+)$", re.I),
     lambda m: SetDestination(m.group(1).strip())),
    (re.compile(r"^(?:set )?days? (?:to |is )?(\d+)$|^(?:for |plan )?(\d+) days?$", re.I),
     lambda m: SetDays(int(m.group(1) or m.group(2)))),
    (re.compile(r"^(?:set )?budget (?:to |is )?(.+)$", re.I),
     lambda m: SetBudget(m.group(1).strip())),
    (re.compile(r"^(?:set )?travel type (?:to |is )?(.+)$", re.I),
     lambda m: SetTravelType(m.group(1).strip().lower())),
    (re.compile(r"^(?:set )?interests? (?:to |are |is )?(.+)$", re.I),
     lambda m: SetInterests(m.group(1).strip())),
    (re.compile(r"^(?:set )?currency (?:to |is )?([a-z]{3})$", re.I),
     lambda m: SetCurrency(m.group(1).upper())),
]


def parse_command(raw_text: str) -> Optional[Command]:
    """Map a spoken or typed phrase to a command, or None if not understood"""
    raw = (raw_text or "").strip().rstrip(".!?")
    text = raw.lower()
    if not text:
        return None

    if text.startswith("help"):
        return Help()
    if text in _YES:
        return Confirm(True)
    if text in _NO:
        return Confirm(False)
    if "speech on" in text:
        return SetSpeech(True)
    if "speech off" in text:
        return SetSpeech(False)
    if "save itinerary" in text or "save iternery" in text:
        return SaveItinerary()
    if "generate itinerary" in text or "create itinerary" in text:
        return GenerateItinerary()
    if "current location" in text or "my location" in text:
        return UseCurrentLocation()
    if text in ("start", "start navigation", "navigate"):
        return StartNavigation()
    if text in ("pause", "pause navigation"):
        return PauseNavigation()
    if text in ("resume", "resume navigation"):
        return ResumeNavigation()
    if text in ("stop", "stop navigation", "end navigation"):
        return StopNavigation()

    for pattern, factory in _VALUE_PATTERNS:
        match = pattern.match(raw)
        if match:
            return factory(match)
    return None


class CommandBus:
    """Routes commands to the handlers subscribed for their type"""

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = logger or Logger(echo=False)
        self._handlers: dict[type, list[Callable]] = defaultdict(list)

    def subscribe(self, command_type: type, handler: Callable) -> Callable[[], None]:
        """Register a handler; returns a function that unregisters it"""
        self._handlers[command_type].append(handler)

        def unsubscribe():
            if handler in self._handlers[command_type]:
                self._handlers[command_type].remove(handler)

        return unsubscribe

    def publish(self, command: Command) -> bool:
        """Deliver to every handler; False when nobody handles this command type"""
        handlers = list(self._handlers.get(type(command), ()))
        if not handlers:
            self.logger.log("Unhandled command", {"command": type(command).__name__})
            return False
        self.logger.log("Command", {"command": repr(command)})
        for handler in handlers:
            handler(command)
        return True

    def dispatch_text(self, text: str) -> Optional[Command]:
        """Parse and publish; returns the parsed command (None if not understood)"""
        command = parse_command(text)
        if command is not None:
            self.publish(command)
        return command
