#!/usr/bin/env python3
"""
Visualize a saved itinerary on an interactive map.

Usage:
    python visualize.py [N] [--db PATH] [--output PATH] [--trace FILE]

Examples:
    python visualize.py
    python visualize.py 2 --output goa_trip.html
    python visualize.py --trace trace.json
"""

import argparse
import json
from pathlib import Path

import folium

from pathease import CONFIG, Coordinate, ItineraryStore, create_map, has_arrived


def load_trace(path: str) -> list[Coordinate]:
    """Locations from a recorded or synthesised GPS trace"""
    with open(path) as f:
        data = json.load(f)
    return [Coordinate.from_dict(e["location"]) for e in data.get("trace", []) if e.get("location")]


def visited_from_trace(itinerary, points: list[Coordinate]) -> set:
    """Stops the trace came within the arrival threshold of"""
    visited = set()
    for d, day in enumerate(itinerary.days):
        for s, stop in enumerate(day.stops):
            if stop.coordinate and any(has_arrived(p, stop.coordinate) for p in points):
                visited.add((d, s))
    return visited


def main():
    parser = argparse.ArgumentParser(
        description="Visualize a saved itinerary on a map"
    )
    parser.add_argument("index", type=int, nargs="?", default=1,
                        help="Nth saved itinerary, newest first (default: 1)")
    parser.add_argument("--db", default=CONFIG["db_path"],
                        help=f"Database path (default: {CONFIG['db_path']})")
    parser.add_argument("--output", "-o", default="itinerary_map.html",
                        help="Output HTML file (default: itinerary_map.html)")
    parser.add_argument("--trace", metavar="FILE",
                        help="Overlay a GPS trace and mark the stops it reached")

    args = parser.parse_args()

    # Check if database exists
    if not Path(args.db).exists():
        print(f"Database not found: {args.db}")
        print("Run python -m pathease --import or --plan first to save an itinerary.")
        return 1

    store = ItineraryStore(args.db)
    itinerary = store.get(args.index - 1)
    store.close()
    if itinerary is None:
        print(f"No saved itinerary at position {args.index}")
        return 1

    try:
        points = load_trace(args.trace) if args.trace else []
        m = create_map(
            itinerary,
            visited=visited_from_trace(itinerary, points),
            current_location=points[-1] if points else None,
        )
        if len(points) > 1:
            folium.PolyLine(
                [[p.lat, p.lng] for p in points],
                weight=4,
                color="#94a3b8",
                opacity=0.8,
                tooltip="GPS trace"
            ).add_to(m)

        m.save(args.output)
        print(f"\nMap saved to: {args.output}")
        print(f"Open in browser: file://{Path(args.output).absolute()}")

    except (OSError, ValueError, KeyError) as e:
        print(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    exit(main())
