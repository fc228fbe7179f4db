"""Configuration settings for PathEase."""

import os

CONFIG = {
    "arrival_threshold": 120,  # meters - a stop counts as reached within this radius
    "guardian_poll_interval": 5,  # seconds between partner location polls
    "gps_poll_interval": 3,  # seconds between termux-location reads
    "gps_timeout": 10,  # seconds per termux-location read
    "log_interval": 10,  # seconds between STATE log entries
    # Arrival prompts with no answer (headless runs)
    "confirmation_timeout": 60,  # seconds - None waits forever
    "confirmation_policy": "pause",  # "pause" or "continue" once the timeout passes
    # Speech
    "speech_rate": 150,  # espeak words per minute
    "speech_lang": "en-IN",
    # Backend
    "api_url": os.environ.get("PATHEASE_API_URL", "http://localhost:5000"),
    "api_timeout": 15,  # seconds
    "db_path": os.environ.get("PATHEASE_DB", "pathease.db"),
    # Per-user settings, merged over whatever the store holds
    "default_settings": {
        "colorBlindMode": "off",
        "speechOn": False,
        "voiceAutoSpeak": True,
        "voiceLang": "en-IN",
        "voiceControlOn": False,
        "voiceControlLang": "en-IN",
    },
    "color_blind_modes": ["off", "high-contrast", "protanopia", "deuteranopia", "tritanopia"],
    # Debug GUI
    "debug_http_port": 8080,
    "debug_ws_port": 8765,
}
