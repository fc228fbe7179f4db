import pytest

from pathease.commands import (
    CommandBus, Confirm, GenerateItinerary, Help, PauseNavigation, ResumeNavigation,
    SaveItinerary, SelectDay, SelectStop, SetBudget, SetCurrency, SetDays,
    SetDestination, SetInterests, SetSpeech, SetTravelType, StartNavigation,
    StopNavigation, UseCurrentLocation, parse_command,
)


@pytest.mark.parametrize("text, expected", [
    ("yes", Confirm(True)),
    ("Okay.", Confirm(True)),
    ("no thanks", Confirm(False)),
    ("start navigation", StartNavigation()),
    ("Pause", PauseNavigation()),
    ("resume", ResumeNavigation()),
    ("stop", StopNavigation()),
    ("stop 3", SelectStop(2)),
    ("go to day 2", SelectDay(1)),
    ("turn speech on please", SetSpeech(True)),
    ("speech off", SetSpeech(False)),
    ("set destination to Goa", SetDestination("Goa")),
    ("destination Jaipur", SetDestination("Jaipur")),
    ("3 days", SetDays(3)),
    ("set days to 5", SetDays(5)),
    ("budget 20000 rupees", SetBudget("20000 rupees")),
    ("travel type Family", SetTravelType("family")),
    ("interests beaches, forts", SetInterests("beaches, forts")),
    ("currency usd", SetCurrency("USD")),
    ("use my location", UseCurrentLocation()),
    ("generate itinerary", GenerateItinerary()),
    ("please save iternery", SaveItinerary()),
    ("help", Help()),
])
def test_parse_command(text, expected):
    assert parse_command(text) == expected


@pytest.mark.parametrize("text", ["", "   ", "what's the weather", "day", "stop everything"])
def test_unknown_phrases_are_not_commands(text):
    assert parse_command(text) is None


def test_bus_routes_by_type(logger):
    bus = CommandBus(logger)
    seen = []
    bus.subscribe(Confirm, lambda c: seen.append(("confirm", c.accepted)))
    bus.subscribe(SelectDay, lambda c: seen.append(("day", c.day_index)))

    assert bus.dispatch_text("yes") == Confirm(True)
    assert bus.dispatch_text("day 4") == SelectDay(3)
    assert seen == [("confirm", True), ("day", 3)]


def test_unhandled_command_reports_false(logger):
    bus = CommandBus(logger)
    assert bus.publish(Help()) is False


def test_unsubscribe(logger):
    bus = CommandBus(logger)
    seen = []
    unsubscribe = bus.subscribe(StopNavigation, seen.append)
    unsubscribe()
    unsubscribe()
    assert bus.publish(StopNavigation()) is False
    assert seen == []
