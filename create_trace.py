#!/usr/bin/env python3
"""
Create a GPS playback trace that walks an itinerary's stops in order.

Usage:
    python create_trace.py [--itinerary N | --file PLAN.json] [-o trace.json]

The trace can be fed to `python -m pathease --playback trace.json` to test
arrival prompts and announcements without leaving the desk.
"""

import argparse
import json
from pathlib import Path

from pathease import CONFIG, Coordinate, Itinerary, ItineraryStore, synthesize_trace


def load_itinerary(args) -> Itinerary:
    if args.file:
        with open(args.file) as f:
            return Itinerary.from_dict(json.load(f))
    store = ItineraryStore(args.db)
    try:
        itinerary = store.get(args.itinerary - 1)
    finally:
        store.close()
    if itinerary is None:
        raise ValueError(f"No saved itinerary at position {args.itinerary}")
    return itinerary


def first_stop(itinerary: Itinerary) -> Coordinate:
    for day in itinerary.days:
        for stop in day.stops:
            if stop.coordinate:
                return stop.coordinate
    raise ValueError("Itinerary has no stops with coordinates")


def main():
    parser = argparse.ArgumentParser(description="Create a playback trace for an itinerary")
    parser.add_argument("--itinerary", type=int, default=1, metavar="N",
                        help="Nth saved itinerary, newest first (default: 1)")
    parser.add_argument("--file", metavar="FILE",
                        help="Read the itinerary from a JSON file instead of the database")
    parser.add_argument("--db", default=CONFIG["db_path"],
                        help=f"Database path (default: {CONFIG['db_path']})")
    parser.add_argument("--lat", type=float, help="Start latitude (default: first stop)")
    parser.add_argument("--lng", type=float, help="Start longitude (default: first stop)")
    parser.add_argument("--step", type=float, default=25.0,
                        help="Meters between samples (default: 25)")
    parser.add_argument("--dwell", type=int, default=2,
                        help="Samples spent at each stop (default: 2)")
    parser.add_argument("--interval", type=float, default=1.0,
                        help="Seconds between samples (default: 1.0)")
    parser.add_argument("-o", "--output", default="trace.json",
                        help="Output trace file (default: trace.json)")

    args = parser.parse_args()

    if (args.lat is None) != (args.lng is None):
        parser.error("--lat and --lng must be used together")

    try:
        itinerary = load_itinerary(args)
        start = Coordinate(args.lat, args.lng) if args.lat is not None else first_stop(itinerary)
        trace = synthesize_trace(itinerary, start, step_meters=args.step,
                                 dwell=args.dwell, interval=args.interval)
    except (OSError, ValueError, KeyError) as e:
        print(f"Error: {e}")
        return 1

    with open(args.output, "w") as f:
        json.dump(trace, f, indent=2)

    print(f"Trace saved to: {args.output} ({len(trace['trace'])} entries, "
          f"{itinerary.stop_count()} stops)")
    print(f"Play it with: python -m pathease --playback {Path(args.output)} --itinerary {args.itinerary}")
    return 0


if __name__ == "__main__":
    exit(main())
