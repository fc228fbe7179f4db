"""PathEase - Accessible itinerary navigation and guardian tracking."""

from .config import CONFIG
from .errors import (
    PathEaseError,
    PermissionDeniedError,
    EmptyItineraryError,
    InvalidSelectionError,
    PartnerLocationUnavailable,
    AnnouncementUnsupported,
    SpeechInputUnsupported,
    ApiError,
    PlanningError,
)
from .models import (
    Coordinate,
    Waypoint,
    Day,
    Itinerary,
    NavStatus,
    Prompt,
    NavigationState,
    GuardianConnection,
    LiveLocationSample,
    Place,
)
from .logger import Logger
from .geo import (
    haversine_distance,
    distance_meters,
    has_arrived,
    bearing_between,
    bearing_to_compass,
    direction_hint,
    directions_url,
    retry_with_backoff,
)
from .gps import (
    WatchHandle,
    PositionSource,
    TermuxPositionSource,
    StaticPositionSource,
    RecordingPositionSource,
    PlaybackPositionSource,
    synthesize_trace,
)
from .speech import (
    SpeechOutput,
    NullSpeechOutput,
    EspeakOutput,
    Announcer,
    SpeechInput,
    NullSpeechInput,
    ConsoleSpeechInput,
)
from .navigation import Navigator
from .api import PathEaseClient, plan_to_itinerary, filter_places
from .guardian import PartnerPoller, LocationSharer, GuardianTracker
from .storage import SettingsStore, ItineraryStore
from .commands import CommandBus, parse_command
from .planner import PlanningParameters, TripPlanner
from .debug_gui import DebugServer, WebSocketPositionSource
from .itinerary_map import create_map, save_map
from .app import NavigatorApp
from .__main__ import main

__all__ = [
    "CONFIG",
    "PathEaseError",
    "PermissionDeniedError",
    "EmptyItineraryError",
    "InvalidSelectionError",
    "PartnerLocationUnavailable",
    "AnnouncementUnsupported",
    "SpeechInputUnsupported",
    "ApiError",
    "PlanningError",
    "Coordinate",
    "Waypoint",
    "Day",
    "Itinerary",
    "NavStatus",
    "Prompt",
    "NavigationState",
    "GuardianConnection",
    "LiveLocationSample",
    "Place",
    "Logger",
    "haversine_distance",
    "distance_meters",
    "has_arrived",
    "bearing_between",
    "bearing_to_compass",
    "direction_hint",
    "directions_url",
    "retry_with_backoff",
    "WatchHandle",
    "PositionSource",
    "TermuxPositionSource",
    "StaticPositionSource",
    "RecordingPositionSource",
    "PlaybackPositionSource",
    "synthesize_trace",
    "SpeechOutput",
    "NullSpeechOutput",
    "EspeakOutput",
    "Announcer",
    "SpeechInput",
    "NullSpeechInput",
    "ConsoleSpeechInput",
    "Navigator",
    "PathEaseClient",
    "plan_to_itinerary",
    "filter_places",
    "PartnerPoller",
    "LocationSharer",
    "GuardianTracker",
    "SettingsStore",
    "ItineraryStore",
    "CommandBus",
    "parse_command",
    "PlanningParameters",
    "TripPlanner",
    "DebugServer",
    "WebSocketPositionSource",
    "create_map",
    "save_map",
    "NavigatorApp",
    "main",
]
