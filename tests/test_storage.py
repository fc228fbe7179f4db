import sqlite3

import pytest

from pathease.config import CONFIG
from pathease.models import Day, Itinerary, Waypoint
from pathease.storage import ItineraryStore, SettingsStore, normalize_color_blind_mode

from conftest import MUMBAI


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "pathease.db")


def test_settings_default_then_persist(db_path):
    store = SettingsStore(db_path)
    assert store.load("user@example.com") == CONFIG["default_settings"]

    store.update("User@Example.com", speechOn=True, voiceLang="hi-IN")
    store.close()

    reopened = SettingsStore(db_path)
    settings = reopened.load("user@example.com")
    assert settings["speechOn"] is True
    assert settings["voiceLang"] == "hi-IN"
    assert settings["voiceControlLang"] == "en-IN"
    assert reopened.load(None)["speechOn"] is False


def test_settings_are_per_user(db_path):
    store = SettingsStore(db_path)
    store.update("a@example.com", speechOn=True)
    assert store.load("b@example.com")["speechOn"] is False
    assert SettingsStore.user_key("  ") == "guest"


def test_color_blind_mode_normalised_and_cycled(db_path):
    assert normalize_color_blind_mode(True) == "high-contrast"
    assert normalize_color_blind_mode(False) == "off"
    assert normalize_color_blind_mode("sepia") == "off"

    store = SettingsStore(db_path)
    store.save("a@example.com", {"colorBlindMode": True})
    assert store.load("a@example.com")["colorBlindMode"] == "high-contrast"
    assert store.cycle_color_blind_mode("a@example.com") == "protanopia"
    store.update("a@example.com", colorBlindMode="tritanopia")
    assert store.cycle_color_blind_mode("a@example.com") == "off"


def plan(title):
    return Itinerary(title=title, destination="Mumbai",
                     days=[Day(stops=[Waypoint("Gateway", MUMBAI, 1.5)])])


def test_itineraries_newest_first(db_path):
    store = ItineraryStore(db_path)
    first_id = store.save(plan("First"))
    second_id = store.save(plan("Second"))
    assert first_id != second_id

    titles = [p.title for p in store.list()]
    assert titles == ["Second", "First"]
    loaded = store.get(1)
    assert loaded.id == first_id
    assert loaded.created_at
    assert loaded.days[0].stops[0].coordinate == MUMBAI
    assert loaded.days[0].stops[0].distance_km == 1.5
    assert store.get(5) is None


def test_itinerary_delete_and_clear(db_path):
    store = ItineraryStore(db_path)
    keep = store.save(plan("Keep"))
    drop = store.save(plan("Drop"))
    assert store.delete(drop)
    assert not store.delete(drop)
    assert [p.id for p in store.list()] == [keep]
    assert store.clear() == 1
    assert store.list() == []


def test_corrupt_rows_are_skipped(db_path):
    store = ItineraryStore(db_path)
    store.save(plan("Good"))
    store.conn.execute("INSERT INTO itineraries (id, data, saved_at) VALUES (1, '{not json', 0)")
    store.conn.commit()
    assert [p.title for p in store.list()] == ["Good"]


def test_stores_can_share_a_connection():
    conn = sqlite3.connect(":memory:")
    settings = SettingsStore(conn=conn)
    itineraries = ItineraryStore(conn=conn)
    itineraries.save(plan("Shared"))
    settings.update("a@example.com", speechOn=True)
    assert itineraries.list()[0].title == "Shared"
    assert settings.load("a@example.com")["speechOn"] is True
