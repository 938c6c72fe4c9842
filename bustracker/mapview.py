"""
Interactive map of active buses using Folium
"""

import html
from typing import List

import folium

from .models import BusLocations

DEFAULT_CENTER = (0.0, 0.0)


def create_map(bus_locations: List[BusLocations], zoom_start: int = 12) -> folium.Map:
    """Build a map with a CircleMarker per GPS point and a track line per bus."""
    points = [
        (loc.latitude, loc.longitude)
        for entry in bus_locations
        for loc in entry.locations
    ]
    if not points:
        return folium.Map(location=DEFAULT_CENTER, zoom_start=2)

    # Center map at average coordinates
    avg_lat = sum(lat for lat, _ in points) / len(points)
    avg_lon = sum(lon for _, lon in points) / len(points)
    m = folium.Map(location=(avg_lat, avg_lon), zoom_start=zoom_start)

    for entry in bus_locations:
        track = [(loc.latitude, loc.longitude) for loc in entry.locations]
        if len(track) > 1:
            folium.PolyLine(track, weight=2, opacity=0.6, tooltip=html.escape(entry.bus.name)).add_to(m)

        for loc in entry.locations:
            # caller-supplied text; folium inserts popups as raw HTML
            popup = html.escape(f"{entry.bus.bus_id} ({entry.bus.name}) @ {loc.recorded_at}")
            folium.CircleMarker(
                location=(loc.latitude, loc.longitude),
                radius=5,
                popup=popup,
                weight=1,
                color="blue",
                fill=True,
                fill_opacity=0.7
            ).add_to(m)

    return m


def render_map(bus_locations: List[BusLocations], zoom_start: int = 12) -> str:
    """Standalone HTML document for the map"""
    return create_map(bus_locations, zoom_start=zoom_start).get_root().render()
