import pytest

from pathease.itinerary_map import VISITED_COLOR, create_map, day_color, map_center, save_map
from pathease.models import Day, Itinerary, Waypoint

from conftest import GATEWAY, MUMBAI


def test_center_prefers_current_location(two_day_itinerary):
    assert map_center(two_day_itinerary, MUMBAI) == [MUMBAI.lat, MUMBAI.lng]
    lat, lng = map_center(two_day_itinerary)
    assert 18.9 < lat < 19.0 and 72.8 < lng < 72.9


def test_map_marks_visited_stops(two_day_itinerary, tmp_path):
    path = tmp_path / "trip.html"
    save_map(two_day_itinerary, str(path), visited={(0, 0)}, current_location=GATEWAY)
    html = path.read_text()
    assert "Gateway of India" in html
    assert "Marine Drive" in html
    assert VISITED_COLOR in html
    assert day_color(1) in html
    assert "Visited: 1/3" in html


def test_map_needs_coordinates():
    with pytest.raises(ValueError):
        create_map(Itinerary(days=[Day(stops=[Waypoint("Somewhere")])]))


def test_day_colours_cycle():
    assert day_color(0) == day_color(7)
    assert day_color(0) != day_color(1)
