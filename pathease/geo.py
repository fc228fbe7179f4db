"""Geographic utility functions."""

import math
import time
from typing import Optional
from urllib.parse import urlencode

from .config import CONFIG
from .models import Coordinate

EARTH_RADIUS = 6371000  # meters


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points in meters using Haversine formula"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    # Rounding can push a a hair past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS * c


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates in meters"""
    return haversine_distance(a.lat, a.lng, b.lat, b.lng)


def has_arrived(current: Coordinate, target: Coordinate,
                threshold_meters: Optional[float] = None) -> bool:
    """True when current is within the arrival threshold of target.

    The threshold defaults to CONFIG["arrival_threshold"] (120m).
    """
    if threshold_meters is None:
        threshold_meters = CONFIG["arrival_threshold"]
    return distance_meters(current, target) <= threshold_meters


def bearing_between(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate bearing from point 1 to point 2 in degrees (0-360, 0=North)"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)

    x = math.sin(delta_lambda) * math.cos(phi2)
    y = (math.cos(phi1) * math.sin(phi2) -
         math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda))

    bearing = math.degrees(math.atan2(x, y))
    return (bearing + 360) % 360


def bearing_to_compass(bearing: float) -> str:
    """Convert bearing to compass direction"""
    directions = ["north", "northeast", "east", "southeast",
                  "south", "southwest", "west", "northwest"]
    index = round(bearing / 45) % 8
    return directions[index]


def direction_hint(current: Coordinate, target: Coordinate) -> str:
    """Spoken heading to a target, e.g. 'northeast, 850 meters'"""
    bearing = bearing_between(current.lat, current.lng, target.lat, target.lng)
    return f"{bearing_to_compass(bearing)}, {int(distance_meters(current, target))} meters"


def directions_url(origin: Optional[Coordinate], target: Coordinate) -> str:
    """Walking directions link for an external maps app"""
    params = {"api": "1"}
    if origin:
        params["origin"] = f"{origin.lat},{origin.lng}"
    params["destination"] = f"{target.lat},{target.lng}"
    params["travelmode"] = "walking"
    return "https://www.google.com/maps/dir/?" + urlencode(params)


def retry_with_backoff(func, max_time: float = 30.0, initial_delay: float = 1.0,
                       max_delay: float = 8.0, description: str = "operation",
                       sleep=time.sleep):
    """Retry a function with exponential backoff.

    Args:
        func: Function that returns a truthy value on success, falsy on failure
        max_time: Maximum total time to retry (seconds)
        initial_delay: Initial delay between retries (seconds)
        max_delay: Maximum delay between retries (seconds)
        description: Description for logging
        sleep: Sleep function, swappable in tests

    Returns:
        The result of func() on success, or None if all retries failed
    """
    start_time = time.time()
    delay = initial_delay
    attempt = 1

    while True:
        result = func()
        if result:
            return result

        elapsed = time.time() - start_time
        if elapsed >= max_time:
            print(f"Failed to complete {description} after {elapsed:.1f}s ({attempt} attempts)")
            return None

        remaining = max_time - elapsed
        sleep_time = min(delay, remaining, max_delay)
        if sleep_time > 0:
            print(f"Retrying {description} in {sleep_time:.1f}s (attempt {attempt})...")
            sleep(sleep_time)

        delay = min(delay * 2, max_delay)
        attempt += 1
