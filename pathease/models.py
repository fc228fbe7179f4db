"""Data classes for PathEase."""

import time
from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float
    accuracy: Optional[float] = field(default=None, compare=False)
    timestamp: Optional[float] = field(default=None, compare=False)

    def __post_init__(self):
        if not -90 <= self.lat <= 90:
            raise ValueError(f"latitude out of range: {self.lat}")
        if not -180 <= self.lng <= 180:
            raise ValueError(f"longitude out of range: {self.lng}")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "Coordinate":
        # Traces recorded by older tools use "lon"
        lng = d["lng"] if "lng" in d else d["lon"]
        return cls(
            lat=float(d["lat"]),
            lng=float(lng),
            accuracy=d.get("accuracy"),
            timestamp=d.get("timestamp"),
        )


@dataclass
class Waypoint:
    """A single named stop within a day"""
    name: str
    coordinate: Optional[Coordinate] = None
    distance_km: Optional[float] = None

    def to_dict(self) -> dict:
        d = {"name": self.name, "distance_km": self.distance_km}
        if self.coordinate:
            d["lat"] = self.coordinate.lat
            d["lng"] = self.coordinate.lng
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Waypoint":
        coordinate = None
        if d.get("lat") is not None and d.get("lng") is not None:
            coordinate = Coordinate(lat=float(d["lat"]), lng=float(d["lng"]))
        return cls(name=d["name"], coordinate=coordinate, distance_km=d.get("distance_km"))


@dataclass
class Day:
    stops: list[Waypoint] = field(default_factory=list)
    title: str = ""
    morning: str = ""
    afternoon: str = ""
    evening: str = ""

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "morning": self.morning,
            "afternoon": self.afternoon,
            "evening": self.evening,
            "stops": [s.to_dict() for s in self.stops],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Day":
        # Planner output sometimes carries placeholder stops with no name
        stops = [Waypoint.from_dict(s) for s in d.get("stops") or [] if s and s.get("name")]
        return cls(
            stops=stops,
            title=d.get("title") or "",
            morning=d.get("morning") or "",
            afternoon=d.get("afternoon") or "",
            evening=d.get("evening") or "",
        )


@dataclass
class Itinerary:
    """A saved multi-day plan, in the shape the trip planner page stores it"""
    days: list[Day] = field(default_factory=list)
    id: Optional[int] = None
    title: str = "Trip Itinerary"
    destination: str = ""
    created_at: str = ""
    notes: str = ""
    meta: dict = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not any(day.stops for day in self.days)

    def stop_count(self) -> int:
        return sum(len(day.stops) for day in self.days)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "created_at": self.created_at,
            "title": self.title,
            "destination": self.destination,
            "itinerary": [day.to_dict() for day in self.days],
            "notes": self.notes,
            "meta": self.meta,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Itinerary":
        return cls(
            days=[Day.from_dict(day) for day in d.get("itinerary") or []],
            id=d.get("id"),
            title=d.get("title") or "Trip Itinerary",
            destination=d.get("destination") or "",
            created_at=d.get("created_at") or "",
            notes=d.get("notes") or "",
            meta=d.get("meta") or {},
        )


class NavStatus(Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    FINISHED = "finished"


class Prompt(Enum):
    """Question the navigator is waiting on"""
    CONTINUE = "continue"
    NEXT_DAY = "next_day"


@dataclass
class NavigationState:
    status: NavStatus = NavStatus.IDLE
    day_index: int = 0
    stop_index: int = 0
    visited: set[tuple[int, int]] = field(default_factory=set)
    paused: bool = False
    pending_prompt: Optional[Prompt] = None
    prompt_issued_at: Optional[float] = None
    error: Optional[str] = None
    status_message: str = "Ready to navigate."

    @property
    def active(self) -> bool:
        return self.status is NavStatus.NAVIGATING


class ConnectionStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass
class GuardianConnection:
    id: str
    partner_email: str
    status: ConnectionStatus = ConnectionStatus.ACCEPTED

    @classmethod
    def from_dict(cls, d: dict) -> "GuardianConnection":
        status = d.get("status") or "accepted"
        return cls(
            id=str(d.get("id") or d.get("_id") or ""),
            partner_email=d.get("email") or d.get("partner_email") or "",
            status=ConnectionStatus(status),
        )


@dataclass
class LiveLocationSample:
    coordinate: Coordinate
    age_seconds: float
    updated_at: Optional[str] = None
    received_at: float = field(default_factory=time.time)

    def age_text(self) -> str:
        if self.age_seconds < 60:
            return "Just now"
        return f"{round(self.age_seconds / 60)} mins ago"

    @classmethod
    def from_dict(cls, d: dict) -> "LiveLocationSample":
        try:
            lat, lng = float(d["lat"]), float(d["lng"])
        except (KeyError, TypeError, ValueError):
            raise ValueError(f"partner location has no usable coordinates: {d!r}")
        return cls(
            coordinate=Coordinate(lat=lat, lng=lng),
            age_seconds=float(d.get("age_seconds") or 0),
            updated_at=d.get("updatedAt") or d.get("updated_at"),
        )


@dataclass
class Place:
    """An approved place from the backend catalogue"""
    id: str
    name: str
    city: str = ""
    coordinate: Optional[Coordinate] = None
    accessibility_level: str = ""
    features: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict) -> "Place":
        # Mongo ids arrive either as plain strings or as {"$oid": ...}
        raw_id = d.get("_id") or d.get("id") or ""
        if isinstance(raw_id, dict):
            raw_id = raw_id.get("$oid", "")
        loc = d.get("location") or {}
        coordinate = None
        if loc.get("lat") is not None and loc.get("lng") is not None:
            coordinate = Coordinate(lat=float(loc["lat"]), lng=float(loc["lng"]))
        return cls(
            id=str(raw_id),
            name=d.get("placeName") or d.get("name") or "",
            city=d.get("city") or "",
            coordinate=coordinate,
            accessibility_level=d.get("accessibility_level") or "",
            features=d.get("features") or {},
        )
