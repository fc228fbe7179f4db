import pytest

from pathease.gps import PositionSource
from pathease.logger import Logger
from pathease.models import Coordinate, Day, Itinerary, Waypoint
from pathease.speech import Announcer, SpeechOutput

MUMBAI = Coordinate(19.0760, 72.8777)
MUMBAI_NEARBY = Coordinate(19.0760, 72.8778)
PUNE = Coordinate(18.5204, 73.8567)
GATEWAY = Coordinate(18.9220, 72.8347)
MARINE_DRIVE = Coordinate(18.9440, 72.8230)


class FakePositionSource(PositionSource):
    """Position source driven by the test: push() delivers a sample, fail() breaks every watch"""

    def __init__(self):
        super().__init__()
        self.start_calls = 0
        self.stop_calls = 0
        self.handles = []

    def _open_stream(self):
        return None

    def start_watching(self, on_update, on_error):
        handle = super().start_watching(on_update, on_error)
        if handle not in self.handles:
            self.start_calls += 1
            self.handles.append(handle)
        return handle

    def stop_watching(self, handle):
        self.stop_calls += 1
        handle.release()

    def push(self, location: Coordinate):
        if self.watching:
            self._deliver(location)

    def fail(self, exc: Exception):
        self._fail_all(exc)


class FakeSpeechOutput(SpeechOutput):
    def __init__(self):
        self.spoken = []

    def speak(self, text):
        self.spoken.append(text)


@pytest.fixture
def source():
    return FakePositionSource()


@pytest.fixture
def speech():
    return FakeSpeechOutput()


@pytest.fixture
def logger():
    return Logger(echo=False)


@pytest.fixture
def announcer(speech, logger):
    return Announcer(speech, enabled=lambda: True, logger=logger)


@pytest.fixture
def two_stop_itinerary():
    return Itinerary(
        title="Mumbai to Pune",
        days=[Day(stops=[Waypoint("Mumbai", MUMBAI), Waypoint("Pune", PUNE)])],
    )


@pytest.fixture
def two_day_itinerary():
    return Itinerary(
        title="Mumbai weekend",
        days=[
            Day(stops=[Waypoint("Gateway of India", GATEWAY)]),
            Day(stops=[Waypoint("Marine Drive", MARINE_DRIVE), Waypoint("Mumbai", MUMBAI)]),
        ],
    )
