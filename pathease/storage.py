"""SQLite storage for per-user settings and saved itineraries."""

import json
import sqlite3
import time
from datetime import datetime
from typing import Optional

from .config import CONFIG
from .models import Itinerary


def _connect(db_path: Optional[str]) -> sqlite3.Connection:
    return sqlite3.connect(db_path or CONFIG["db_path"], check_same_thread=False)


def normalize_color_blind_mode(value) -> str:
    """Map legacy boolean values and unknown names onto a known mode"""
    if value is True:
        return "high-contrast"
    if not value:
        return "off"
    return value if value in CONFIG["color_blind_modes"] else "off"


class SettingsStore:
    """Accessibility and speech settings keyed by user email"""

    def __init__(self, db_path: Optional[str] = None, conn: Optional[sqlite3.Connection] = None):
        self.conn = conn or _connect(db_path)
        self._init_schema()

    def _init_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                user_key TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self.conn.commit()

    @staticmethod
    def user_key(user: Optional[str]) -> str:
        return (user or "guest").strip().lower() or "guest"

    def load(self, user: Optional[str]) -> dict:
        """Stored settings merged over the defaults"""
        settings = dict(CONFIG["default_settings"])
        cursor = self.conn.execute(
            "SELECT data FROM settings WHERE user_key = ?", (self.user_key(user),)
        )
        row = cursor.fetchone()
        if row:
            try:
                stored = json.loads(row[0])
            except json.JSONDecodeError:
                stored = {}
            if isinstance(stored, dict):
                settings.update(stored)
        settings["colorBlindMode"] = normalize_color_blind_mode(settings.get("colorBlindMode"))
        return settings

    def save(self, user: Optional[str], settings: dict):
        now = datetime.now().isoformat()
        self.conn.execute("""
            INSERT INTO settings (user_key, data, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(user_key) DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
        """, (self.user_key(user), json.dumps(settings), now))
        self.conn.commit()

    def update(self, user: Optional[str], **patch) -> dict:
        settings = self.load(user)
        settings.update(patch)
        if "colorBlindMode" in patch:
            settings["colorBlindMode"] = normalize_color_blind_mode(patch["colorBlindMode"])
        self.save(user, settings)
        return settings

    def cycle_color_blind_mode(self, user: Optional[str]) -> str:
        modes = CONFIG["color_blind_modes"]
        current = self.load(user)["colorBlindMode"]
        next_mode = modes[(modes.index(current) + 1) % len(modes)]
        self.update(user, colorBlindMode=next_mode)
        return next_mode

    def close(self):
        self.conn.close()


class ItineraryStore:
    """Saved itineraries, newest first"""

    def __init__(self, db_path: Optional[str] = None, conn: Optional[sqlite3.Connection] = None):
        self.conn = conn or _connect(db_path)
        self._init_schema()

    def _init_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS itineraries (
                id INTEGER PRIMARY KEY,
                data TEXT NOT NULL,
                saved_at REAL NOT NULL
            )
        """)
        self.conn.commit()

    def list(self) -> list[Itinerary]:
        cursor = self.conn.execute(
            "SELECT data FROM itineraries ORDER BY saved_at DESC, id DESC"
        )
        plans = []
        for row in cursor.fetchall():
            try:
                plans.append(Itinerary.from_dict(json.loads(row[0])))
            except (json.JSONDecodeError, KeyError, ValueError):
                # A corrupt row should not hide the rest of the list
                continue
        return plans

    def get(self, index: int) -> Optional[Itinerary]:
        plans = self.list()
        if 0 <= index < len(plans):
            return plans[index]
        return None

    def save(self, itinerary: Itinerary) -> int:
        """Store a plan at the front of the list; returns its id"""
        if itinerary.id is None:
            row = self.conn.execute("SELECT MAX(id) FROM itineraries").fetchone()
            itinerary.id = max(int(time.time() * 1000), (row[0] or 0) + 1)
        if not itinerary.created_at:
            itinerary.created_at = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self.conn.execute("""
            INSERT INTO itineraries (id, data, saved_at) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET data = excluded.data
        """, (itinerary.id, json.dumps(itinerary.to_dict()), time.time()))
        self.conn.commit()
        return itinerary.id

    def delete(self, itinerary_id: int) -> bool:
        cursor = self.conn.execute("DELETE FROM itineraries WHERE id = ?", (itinerary_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    def clear(self) -> int:
        cursor = self.conn.execute("DELETE FROM itineraries")
        self.conn.commit()
        return cursor.rowcount

    def close(self):
        self.conn.close()
