"""PathEase backend client."""

from typing import Optional

import requests

from .config import CONFIG
from .errors import ApiError, PartnerLocationUnavailable
from .geo import distance_meters
from .models import Coordinate, GuardianConnection, Itinerary, LiveLocationSample, Place


class PathEaseClient:
    """JSON-over-HTTP calls to the PathEase backend"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or CONFIG["api_url"]).rstrip("/")
        self.timeout = timeout or CONFIG["api_timeout"]
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, payload: Optional[dict] = None):
        response = self.session.request(
            method,
            self.base_url + path,
            json=payload,
            timeout=self.timeout,
        )
        try:
            body = response.json()
        except ValueError:
            body = None
        if not response.ok:
            message = body.get("error") if isinstance(body, dict) else None
            raise ApiError(message or f"Request failed ({response.status_code})",
                           status_code=response.status_code, path=path)
        return body

    def get(self, path: str):
        return self._request("GET", path)

    def post(self, path: str, payload: dict):
        return self._request("POST", path, payload)

    # --- places ---

    def get_approved_places(self) -> list[Place]:
        return [Place.from_dict(p) for p in self.get("/get-approved-places") or []]

    # --- live location ---

    def get_partner_location(self, requester: str, target: str) -> LiveLocationSample:
        body = self.post("/get-partner-location", {"requester": requester, "target": target})
        if not body or body.get("error"):
            message = body.get("error") if body else "no location"
            raise PartnerLocationUnavailable(f"{target}: {message}")
        try:
            return LiveLocationSample.from_dict(body)
        except ValueError as e:
            raise PartnerLocationUnavailable(f"{target}: {e}") from e

    def update_live_location(self, email: str, coordinate: Coordinate) -> dict:
        return self.post("/update-live-location", {
            "email": email,
            "lat": coordinate.lat,
            "lng": coordinate.lng,
        })

    # --- guardian connections ---

    def get_my_connections(self, email: str) -> list[GuardianConnection]:
        return [GuardianConnection.from_dict(c) for c in self.post("/get-my-connections", {"email": email}) or []]

    def get_incoming_requests(self, email: str) -> list[dict]:
        return self.post("/get-incoming-requests", {"email": email}) or []

    def send_tracking_request(self, requester: str, target: str) -> str:
        body = self.post("/send-tracking-request", {"requester": requester, "target": target})
        return body.get("message", "") if body else ""

    def respond_tracking_request(self, request_id: str, status: str) -> str:
        body = self.post("/respond-tracking-request", {"request_id": request_id, "status": status})
        return body.get("message", "") if body else ""

    def stop_tracking(self, requester: str, target: str) -> str:
        body = self.post("/stop-tracking", {"requester": requester, "target": target})
        return body.get("message", "") if body else ""

    # --- AI planner ---

    def generate_itinerary(self, params: dict) -> dict:
        """Raw planner response: itinerary days plus notes and cost metadata"""
        return self.post("/ai/trip-planner", params)


def plan_to_itinerary(plan: dict, destination: str, created_at: str, plan_id: int) -> Itinerary:
    """Wrap a planner response in the saved-itinerary shape"""
    return Itinerary.from_dict({
        "id": plan_id,
        "created_at": created_at,
        "title": f"Trip to {destination}" if destination else "Trip Itinerary",
        "destination": destination,
        "itinerary": plan.get("itinerary") or [],
        "notes": plan.get("notes") or "",
        "meta": {
            "source": plan.get("source"),
            "start_from": plan.get("start_from"),
            "total_distance_km": plan.get("total_distance_km"),
            "cost_breakdown": plan.get("cost_breakdown"),
        },
    })


def filter_places(places: list[Place], city: Optional[str] = None, query: Optional[str] = None,
                  origin: Optional[Coordinate] = None) -> list[tuple[Place, Optional[float]]]:
    """Places matching a city and name search, with km from origin when known.

    Sorted nearest first when an origin is given.
    """
    results = []
    for place in places:
        if city and place.city.lower() != city.lower():
            continue
        if query and query.lower() not in place.name.lower():
            continue
        km = None
        if origin and place.coordinate:
            km = round(distance_meters(origin, place.coordinate) / 1000, 2)
        results.append((place, km))
    if origin:
        results.sort(key=lambda r: (r[1] is None, r[1] or 0))
    return results
