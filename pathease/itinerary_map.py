"""Render an itinerary and navigation progress as an interactive folium map."""

from typing import Optional

import folium
from folium import plugins

from .models import Coordinate, Itinerary, LiveLocationSample

# One colour per day, reused when a trip runs longer
DAY_COLORS = ["#3b82f6", "#f97316", "#a855f7", "#14b8a6", "#ef4444", "#eab308", "#64748b"]
VISITED_COLOR = "#22c55e"


def day_color(day_index: int) -> str:
    return DAY_COLORS[day_index % len(DAY_COLORS)]


def map_center(itinerary: Itinerary, current_location: Optional[Coordinate] = None) -> Optional[list[float]]:
    """Current location if known, else the mean of all stop coordinates"""
    if current_location:
        return [current_location.lat, current_location.lng]
    points = [s.coordinate for d in itinerary.days for s in d.stops if s.coordinate]
    if not points:
        return None
    return [sum(p.lat for p in points) / len(points), sum(p.lng for p in points) / len(points)]


def create_map(
    itinerary: Itinerary,
    visited: Optional[set] = None,
    current_location: Optional[Coordinate] = None,
    partner: Optional[LiveLocationSample] = None,
    partner_name: str = "Partner",
) -> folium.Map:
    """Create an interactive map of the itinerary's stops, one layer per day."""
    visited = visited or set()
    center = map_center(itinerary, current_location)
    if center is None:
        raise ValueError("Itinerary has no stops with coordinates")

    m = folium.Map(
        location=center,
        zoom_start=13,
        tiles="CartoDB positron"
    )
    folium.TileLayer("OpenStreetMap", name="OpenStreetMap").add_to(m)

    total = 0
    done = 0
    bounds = []
    for d, day in enumerate(itinerary.days):
        layer = folium.FeatureGroup(name=day.title or f"Day {d + 1}", show=True)
        coords = []
        for s, stop in enumerate(day.stops):
            total += 1
            is_visited = (d, s) in visited
            done += is_visited
            if not stop.coordinate:
                continue
            point = [stop.coordinate.lat, stop.coordinate.lng]
            coords.append(point)
            bounds.append(point)

            popup_text = f"""
                <b>{stop.name}</b><br>
                Day {d + 1}, stop {s + 1}<br>
                {f'{stop.distance_km:.1f} km from start<br>' if stop.distance_km is not None else ''}
                {'<i>Visited</i>' if is_visited else ''}
            """
            folium.CircleMarker(
                point,
                radius=8,
                color="#ffffff",
                weight=2,
                fill=True,
                fill_color=VISITED_COLOR if is_visited else day_color(d),
                fill_opacity=1.0,
                popup=folium.Popup(popup_text, max_width=200)
            ).add_to(layer)

        if len(coords) > 1:
            folium.PolyLine(
                coords,
                weight=3,
                color=day_color(d),
                opacity=0.7,
                dash_array="6 6"
            ).add_to(layer)
        layer.add_to(m)

    if current_location:
        folium.Marker(
            [current_location.lat, current_location.lng],
            popup="You are here",
            icon=folium.Icon(color="red", icon="user")
        ).add_to(m)

    if partner:
        folium.Marker(
            [partner.coordinate.lat, partner.coordinate.lng],
            popup=f"{partner_name} ({partner.age_text()})",
            icon=folium.Icon(color="purple", icon="heart")
        ).add_to(m)

    if len(bounds) > 1:
        m.fit_bounds(bounds, padding=(30, 30))

    folium.LayerControl().add_to(m)

    legend_html = f"""
    <div style="
        position: fixed;
        bottom: 50px;
        left: 50px;
        z-index: 1000;
        background-color: white;
        padding: 10px;
        border-radius: 5px;
        border: 2px solid grey;
        font-family: Arial;
        font-size: 12px;
    ">
        <b>{itinerary.title}</b><br>
        {itinerary.destination or ''}
        <hr style="margin: 5px 0">
        Days: {len(itinerary.days)}<br>
        Visited: {done}/{total}
    </div>
    """
    m.get_root().html.add_child(folium.Element(legend_html))

    plugins.Fullscreen().add_to(m)
    plugins.LocateControl().add_to(m)

    return m


def save_map(itinerary: Itinerary, output_path: str, **kwargs) -> str:
    m = create_map(itinerary, **kwargs)
    m.save(output_path)
    return output_path
