import pytest

from pathease.api import PathEaseClient, filter_places, plan_to_itinerary
from pathease.errors import ApiError, PartnerLocationUnavailable
from pathease.models import Coordinate, Place

from conftest import MUMBAI


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self.body = body

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self.body is None:
            raise ValueError("no json")
        return self.body


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, json=None, timeout=None):
        self.calls.append((method, url, json))
        return self.responses.pop(0)


def client_with(*responses):
    return PathEaseClient("http://api.test/", timeout=1, session=FakeSession(*responses))


def test_partner_location():
    client = client_with(FakeResponse(200, {"lat": 19.07, "lng": 72.87, "age_seconds": 30}))
    sample = client.get_partner_location("me@example.com", "mom@example.com")
    assert sample.coordinate == Coordinate(19.07, 72.87)
    assert sample.age_text() == "Just now"
    method, url, payload = client.session.calls[0]
    assert (method, url) == ("POST", "http://api.test/get-partner-location")
    assert payload == {"requester": "me@example.com", "target": "mom@example.com"}


def test_partner_without_location_raises():
    client = client_with(FakeResponse(200, {"error": "Location not available"}))
    with pytest.raises(PartnerLocationUnavailable, match="Location not available"):
        client.get_partner_location("me@example.com", "mom@example.com")


def test_partner_location_without_coordinates_raises():
    client = client_with(FakeResponse(200, {"lat": None, "lng": None, "age_seconds": 5}))
    with pytest.raises(PartnerLocationUnavailable, match="no usable coordinates"):
        client.get_partner_location("me@example.com", "mom@example.com")


def test_error_status_raises_api_error():
    client = client_with(FakeResponse(403, {"error": "Not authorized"}), FakeResponse(500, None))
    with pytest.raises(ApiError) as excinfo:
        client.get_partner_location("me@example.com", "stranger@example.com")
    assert str(excinfo.value) == "Not authorized"
    assert excinfo.value.status_code == 403
    with pytest.raises(ApiError, match="500"):
        client.get_approved_places()


def test_live_location_push():
    client = client_with(FakeResponse(200, {"message": "Location updated"}))
    client.update_live_location("me@example.com", MUMBAI)
    assert client.session.calls[0][2] == {"email": "me@example.com", "lat": MUMBAI.lat, "lng": MUMBAI.lng}


def test_connections_and_requests():
    client = client_with(
        FakeResponse(200, [{"email": "mom@example.com", "id": "abc"}]),
        FakeResponse(200, {"message": "Request sent"}),
    )
    connections = client.get_my_connections("me@example.com")
    assert connections[0].partner_email == "mom@example.com"
    assert connections[0].id == "abc"
    assert client.send_tracking_request("me@example.com", "dad@example.com") == "Request sent"


def test_approved_places_and_filter():
    client = client_with(FakeResponse(200, [
        {"_id": {"$oid": "p1"}, "placeName": "Gateway of India", "city": "Mumbai",
         "location": {"lat": 18.9220, "lng": 72.8347}, "accessibility_level": "high"},
        {"_id": "p2", "placeName": "Shaniwar Wada", "city": "Pune",
         "location": {"lat": 18.5195, "lng": 73.8553}},
        {"_id": "p3", "placeName": "Marine Drive", "city": "mumbai",
         "location": {"lat": 18.9440, "lng": 72.8230}},
    ]))
    places = client.get_approved_places()
    assert places[0].id == "p1"
    assert places[0].name == "Gateway of India"

    results = filter_places(places, city="Mumbai", origin=MUMBAI)
    assert [p.name for p, km in results] == ["Marine Drive", "Gateway of India"]
    assert all(km > 0 for p, km in results)

    assert [p.name for p, km in filter_places(places, query="wada")] == ["Shaniwar Wada"]
    assert filter_places([Place(id="x", name="Nowhere")], origin=MUMBAI) == [(Place(id="x", name="Nowhere"), None)]


def test_plan_to_itinerary_drops_unnamed_stops():
    plan = {
        "itinerary": [
            {"title": "Day 1", "stops": [
                {"name": "Gateway of India", "lat": 18.922, "lng": 72.8347, "distance_km": 12.3},
                {"name": "", "lat": 0, "lng": 0},
                {"name": "Colaba Causeway"},
            ]},
        ],
        "notes": "Carry water",
        "total_distance_km": 14.0,
    }
    itinerary = plan_to_itinerary(plan, "Mumbai", "2024-01-01 10:00:00", 7)
    assert itinerary.title == "Trip to Mumbai"
    assert itinerary.id == 7
    assert [s.name for s in itinerary.days[0].stops] == ["Gateway of India", "Colaba Causeway"]
    assert itinerary.days[0].stops[1].coordinate is None
    assert itinerary.meta["total_distance_km"] == 14.0
    assert itinerary.notes == "Carry water"
