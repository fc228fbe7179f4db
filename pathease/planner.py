"""Trip planner client: collects planning parameters and saves generated plans."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from .api import PathEaseClient, plan_to_itinerary
from .commands import (
    CommandBus, GenerateItinerary, SaveItinerary, SetBudget, SetCurrency,
    SetDays, SetDestination, SetInterests, SetTravelType, UseCurrentLocation,
)
from .errors import PlanningError
from .logger import Logger
from .models import Coordinate, Itinerary
from .storage import ItineraryStore


@dataclass
class PlanningParameters:
    destination: str = ""
    days: int = 3
    budget: str = ""
    travel_type: str = "leisure"
    interests: list[str] = field(default_factory=list)
    language: str = "en"
    currency: str = "INR"
    selected_places: list[str] = field(default_factory=list)
    origin: Optional[Coordinate] = None
    location_label: str = ""

    def to_payload(self) -> dict:
        """Request body for the AI planner; raises PlanningError when incomplete"""
        destination = self.destination.strip() or ("Selected Places" if self.selected_places else "")
        if not destination:
            raise PlanningError("Please enter a destination or add places to the cart.")
        if self.origin is None:
            raise PlanningError("Please allow location access to continue.")
        if self.days < 1:
            raise PlanningError("A trip needs at least one day.")
        return {
            "destination": destination,
            "days": self.days,
            "budget": self.budget,
            "travel_type": self.travel_type,
            "interests": [i.strip() for i in self.interests if i.strip()],
            "language": self.language,
            "currency": self.currency,
            "selected_places": self.selected_places,
            "lat": self.origin.lat,
            "lng": self.origin.lng,
            "location_label": self.location_label.strip() or "Current Location",
        }


class TripPlanner:
    """Planner form state driven by commands"""

    def __init__(self, client: PathEaseClient, store: ItineraryStore,
                 locate: Callable[[], Optional[Coordinate]] = lambda: None,
                 logger: Optional[Logger] = None):
        self.client = client
        self.store = store
        self.locate = locate
        self.logger = logger or Logger(echo=False)
        self.params = PlanningParameters()
        self.last_plan: Optional[dict] = None
        self.last_destination = ""
        self.error: Optional[str] = None

    def attach(self, bus: CommandBus):
        bus.subscribe(SetDestination, lambda c: setattr(self.params, "destination", c.value))
        bus.subscribe(SetDays, lambda c: setattr(self.params, "days", c.days))
        bus.subscribe(SetBudget, lambda c: setattr(self.params, "budget", c.value))
        bus.subscribe(SetTravelType, lambda c: setattr(self.params, "travel_type", c.value))
        bus.subscribe(SetInterests, lambda c: setattr(
            self.params, "interests", [v.strip() for v in c.value.split(",") if v.strip()]))
        bus.subscribe(SetCurrency, lambda c: setattr(self.params, "currency", c.value.upper()))
        bus.subscribe(UseCurrentLocation, lambda c: self.use_current_location())
        bus.subscribe(GenerateItinerary, lambda c: self._on_generate())
        bus.subscribe(SaveItinerary, lambda c: self.save())

    def use_current_location(self) -> Optional[Coordinate]:
        self.params.location_label = "Current Location"
        location = self.locate()
        if location:
            self.params.origin = location
        return location

    def generate(self) -> dict:
        """Ask the AI planner for a plan; keeps it as last_plan"""
        if self.params.origin is None:
            self.use_current_location()
        payload = self.params.to_payload()
        self.logger.log("Generating itinerary", {"destination": payload["destination"], "days": payload["days"]})
        self.last_plan = self.client.generate_itinerary(payload)
        self.last_destination = self.params.destination.strip()
        self.error = None
        return self.last_plan

    async def generate_async(self) -> Optional[dict]:
        try:
            if self.params.origin is None:
                self.use_current_location()
            payload = self.params.to_payload()
            self.logger.log("Generating itinerary", {"destination": payload["destination"], "days": payload["days"]})
            self.last_plan = await asyncio.to_thread(self.client.generate_itinerary, payload)
            self.last_destination = self.params.destination.strip()
            self.error = None
            return self.last_plan
        except Exception as e:
            self.error = str(e) or "Failed to generate itinerary"
            self.logger.error("Itinerary generation failed", e)
            return None

    def _on_generate(self):
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self.generate()
            return
        asyncio.ensure_future(self.generate_async())

    def save(self) -> Optional[Itinerary]:
        """Store the last generated plan at the top of the saved list"""
        if not self.last_plan or not self.last_plan.get("itinerary"):
            self.logger.log("Nothing to save")
            return None
        itinerary = plan_to_itinerary(
            self.last_plan,
            destination=self.last_destination,
            created_at=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            plan_id=None,
        )
        self.store.save(itinerary)
        self.logger.log("Itinerary saved", {"id": itinerary.id, "title": itinerary.title})
        return itinerary
