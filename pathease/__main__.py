#!/usr/bin/env python3
"""
PathEase - Accessible itinerary navigation and guardian tracking

Usage:
    python -m pathease [options]

Options:
    --list            List saved itineraries and exit
    --import FILE     Import itineraries from a JSON file and exit
    --delete ID       Delete a saved itinerary and exit
    --itinerary N     Navigate the Nth saved itinerary (default: 1, newest)
    --plan DEST       Generate and save an itinerary with the AI planner
    --days N          Trip length for --plan (default: 3)
    --places          List approved places and exit (filter with --city/--search)
    --record FILE     Record GPS trace to JSON file for debugging
    --playback FILE   Playback GPS trace from JSON file
    --speed FACTOR    Playback speed multiplier (default: 1.0)
    --lat LAT         Fixed latitude (for testing without GPS)
    --lng LNG         Fixed longitude (for testing without GPS)
    --html FILE       Save an HTML map of the itinerary when navigation ends
    --debug-gui       Run with web-based visual debugger (click map to move)
    --user EMAIL      Signed-in user; settings and tracking are per user
    --track EMAIL     Follow a partner's live location
    --share           Share your live location while tracking
"""

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

import requests

from .api import PathEaseClient, filter_places
from .app import NavigatorApp
from .config import CONFIG
from .errors import PathEaseError
from .gps import PlaybackPositionSource, RecordingPositionSource, StaticPositionSource, TermuxPositionSource
from .models import Coordinate, Itinerary
from .speech import ConsoleSpeechInput, NullSpeechInput
from .storage import ItineraryStore, SettingsStore


def _list_itineraries(store: ItineraryStore):
    plans = store.list()
    if not plans:
        print("No saved itineraries.")
        return
    for i, plan in enumerate(plans, 1):
        print(f"{i:3d}. {plan.title} - {len(plan.days)} days, {plan.stop_count()} stops "
              f"(id {plan.id}, saved {plan.created_at or 'unknown'})")


def _import_itineraries(store: ItineraryStore, path: str) -> int:
    """Accepts one saved itinerary, a list of them, or raw planner output"""
    with open(path) as f:
        data = json.load(f)
    entries = data if isinstance(data, list) else [data]
    count = 0
    for entry in entries:
        itinerary = Itinerary.from_dict(entry)
        if itinerary.is_empty():
            print(f"Skipping {itinerary.title}: no stops")
            continue
        store.save(itinerary)
        count += 1
    return count


def _list_places(args, origin):
    client = PathEaseClient()
    places = filter_places(client.get_approved_places(), city=args.city, query=args.search, origin=origin)
    if not places:
        print("No places found.")
        return
    for place, km in places:
        distance = f", {km:.1f} km" if km is not None else ""
        level = f" [{place.accessibility_level}]" if place.accessibility_level else ""
        print(f"  {place.name} ({place.city}{distance}){level}")


def main():
    parser = argparse.ArgumentParser(
        description="PathEase - Accessible itinerary navigation and guardian tracking"
    )
    parser.add_argument("--list", action="store_true",
                        help="List saved itineraries and exit")
    parser.add_argument("--import", dest="import_file", metavar="FILE",
                        help="Import itineraries from a JSON file and exit")
    parser.add_argument("--delete", type=int, metavar="ID",
                        help="Delete a saved itinerary by id and exit")
    parser.add_argument("--itinerary", type=int, default=1, metavar="N",
                        help="Navigate the Nth saved itinerary, newest first (default: 1)")
    parser.add_argument("--plan", metavar="DEST",
                        help="Generate and save an itinerary for a destination")
    parser.add_argument("--days", type=int, default=3,
                        help="Trip length in days for --plan (default: 3)")
    parser.add_argument("--budget", help="Budget for --plan")
    parser.add_argument("--travel-type", help="Travel type for --plan (e.g. leisure, family)")
    parser.add_argument("--interests", help="Comma separated interests for --plan")
    parser.add_argument("--currency", help="Currency code for --plan (default: INR)")
    parser.add_argument("--places", action="store_true",
                        help="List approved places and exit")
    parser.add_argument("--city", help="City filter for --places")
    parser.add_argument("--search", help="Name search for --places")
    parser.add_argument("--record", metavar="FILE",
                        help="Record GPS trace to JSON file")
    parser.add_argument("--playback", metavar="FILE",
                        help="Playback GPS trace from JSON file")
    parser.add_argument("--speed", type=float, default=1.0,
                        help="Playback speed multiplier (default: 1.0)")
    parser.add_argument("--lat", type=float, metavar="LAT",
                        help="Fixed latitude (for testing without GPS)")
    parser.add_argument("--lng", type=float, metavar="LNG",
                        help="Fixed longitude (for testing without GPS)")
    parser.add_argument("--html", metavar="FILE",
                        help="Save an HTML map of the itinerary when navigation ends")
    parser.add_argument("--debug-gui", action="store_true",
                        help="Run with web-based visual debugger")
    parser.add_argument("--speech", action="store_true", default=None,
                        help="Turn spoken announcements on (saved to settings)")
    parser.add_argument("--mute", action="store_false", dest="speech",
                        help="Turn spoken announcements off (saved to settings)")
    parser.add_argument("--color-blind", choices=CONFIG["color_blind_modes"],
                        help="Save a color-blind display mode and exit")
    parser.add_argument("--no-input", action="store_true",
                        help="Disable typed commands (headless runs)")
    parser.add_argument("--auto-continue", action="store_true",
                        help="Answer arrival prompts with yes immediately (headless runs)")
    parser.add_argument("--user", metavar="EMAIL",
                        help="Signed-in user email")
    parser.add_argument("--track", metavar="EMAIL",
                        help="Follow a partner's live location")
    parser.add_argument("--share", action="store_true",
                        help="Share your live location")
    parser.add_argument("--db", metavar="FILE",
                        help=f"Database path (default: {CONFIG['db_path']})")
    parser.add_argument("--log", metavar="FILE",
                        help="Log file path (default: pathease_TIMESTAMP.log)")

    args = parser.parse_args()

    # Validate lat/lng - must provide both or neither
    if (args.lat is None) != (args.lng is None):
        parser.error("--lat and --lng must be used together")

    if (args.track or args.share) and not args.user:
        parser.error("--track and --share require --user")

    if args.days < 1:
        parser.error("--days must be at least 1")

    origin = Coordinate(args.lat, args.lng) if args.lat is not None else None

    try:
        # Store management: early exits
        if args.list or args.import_file or args.delete is not None:
            store = ItineraryStore(args.db)
            if args.import_file:
                count = _import_itineraries(store, args.import_file)
                print(f"Imported {count} itineraries.")
            if args.delete is not None:
                print("Deleted." if store.delete(args.delete) else f"No itinerary with id {args.delete}.")
            if args.list:
                _list_itineraries(store)
            store.close()
            return

        if args.color_blind:
            settings = SettingsStore(args.db)
            settings.update(args.user, colorBlindMode=args.color_blind)
            print(f"Color-blind mode set to {args.color_blind} for {SettingsStore.user_key(args.user)}.")
            settings.close()
            return

        if args.places:
            _list_places(args, origin)
            return

        if args.auto_continue:
            CONFIG["confirmation_policy"] = "continue"
            CONFIG["confirmation_timeout"] = 0

        # Determine log path
        log_path = args.log
        if not log_path:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_path = f"pathease_{timestamp}.log"

        # Set up position source
        position_source = None
        if args.playback:
            if not Path(args.playback).exists():
                print(f"Playback file not found: {args.playback}")
                sys.exit(1)
            position_source = PlaybackPositionSource(args.playback, args.speed)
        elif origin:
            position_source = StaticPositionSource(origin)
        elif not args.debug_gui:
            position_source = TermuxPositionSource()
        if args.record and position_source is not None:
            position_source = RecordingPositionSource(position_source, args.record)

        app = NavigatorApp(
            user=args.user,
            log_path=log_path,
            db_path=args.db,
            position_source=position_source,
            debug_gui=args.debug_gui,
            speech=args.speech,
            speech_input=NullSpeechInput() if args.no_input else ConsoleSpeechInput(),
            html_output=args.html,
        )

        if args.plan:
            try:
                itinerary = app.plan(
                    args.plan, args.days,
                    budget=args.budget,
                    travel_type=args.travel_type,
                    interests=[i.strip() for i in args.interests.split(",")] if args.interests else None,
                    currency=args.currency.upper() if args.currency else None,
                )
                print(f"Saved: {itinerary.title} ({len(itinerary.days)} days, {itinerary.stop_count()} stops)")
            finally:
                app.close()
            return

        if args.track or args.share:
            app.track(args.track, share=args.share)
            return

        itinerary = app.itinerary_store.get(args.itinerary - 1)
        if itinerary is None:
            print("No saved itinerary at that position. Use --import or --plan first.")
            app.close()
            sys.exit(1)

        if not app.run(itinerary):
            sys.exit(1)

    except (PathEaseError, requests.RequestException, OSError, json.JSONDecodeError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
