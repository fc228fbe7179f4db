import math

import pytest

from pathease.config import CONFIG
from pathease.geo import (
    EARTH_RADIUS, bearing_to_compass, direction_hint, directions_url,
    distance_meters, has_arrived, haversine_distance, retry_with_backoff,
)
from pathease.models import Coordinate

from conftest import MUMBAI, MUMBAI_NEARBY, PUNE


def test_identical_coordinates_are_zero_apart():
    assert distance_meters(MUMBAI, MUMBAI) == 0
    assert has_arrived(MUMBAI, MUMBAI)


def test_distance_is_symmetric():
    assert distance_meters(MUMBAI, PUNE) == pytest.approx(distance_meters(PUNE, MUMBAI))


def test_distance_grows_with_separation():
    near = Coordinate(19.0770, 72.8777)
    far = Coordinate(19.0860, 72.8777)
    assert distance_meters(MUMBAI, near) < distance_meters(MUMBAI, far)


def test_nearby_point_counts_as_arrived():
    assert distance_meters(MUMBAI, MUMBAI_NEARBY) < 15
    assert has_arrived(MUMBAI, MUMBAI_NEARBY, 120)


def test_mumbai_to_pune_is_not_arrived():
    # Haversine on a 6371 km sphere gives about 120.2 km for these points
    assert distance_meters(MUMBAI, PUNE) == pytest.approx(119_000, abs=1_500)
    assert not has_arrived(MUMBAI, PUNE, 120)


def test_antipodal_points_are_half_a_circumference_apart():
    d = haversine_distance(0, 0, 0, 180)
    assert d == pytest.approx(math.pi * EARTH_RADIUS, abs=1)
    d = haversine_distance(10, 20, -10, -160)
    assert d == pytest.approx(math.pi * EARTH_RADIUS, abs=1)


def test_threshold_is_inclusive_and_defaults_to_config():
    edge = Coordinate(19.0760 + 120 / 111_195, 72.8777)
    d = distance_meters(MUMBAI, edge)
    assert has_arrived(MUMBAI, edge, d)
    assert not has_arrived(MUMBAI, edge, d - 1)
    assert has_arrived(MUMBAI, MUMBAI_NEARBY) == (distance_meters(MUMBAI, MUMBAI_NEARBY) <= CONFIG["arrival_threshold"])


def test_coordinate_rejects_out_of_range_values():
    with pytest.raises(ValueError):
        Coordinate(91, 0)
    with pytest.raises(ValueError):
        Coordinate(0, -181)


def test_compass_and_direction_hint():
    assert bearing_to_compass(0) == "north"
    assert bearing_to_compass(90) == "east"
    hint = direction_hint(MUMBAI, PUNE)
    assert hint.startswith("south")
    assert hint.endswith("meters")


def test_directions_url_includes_both_ends():
    url = directions_url(MUMBAI, PUNE)
    assert "travelmode=walking" in url
    assert "18.5204" in url and "19.076" in url
    assert "origin" not in directions_url(None, PUNE)


def test_retry_with_backoff_returns_first_success():
    results = iter([None, None, "fix"])
    sleeps = []
    assert retry_with_backoff(lambda: next(results), sleep=sleeps.append) == "fix"
    assert sleeps == [1.0, 2.0]
