"""
GPS device simulator for the Bus Tracker service
Moves a bus along a route and posts its position to /locations
"""

import math
import random
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import requests


def haversine(start, end):
    """Calculate distance between two lat/lon points using Haversine formula"""
    R = 6371000  # Earth radius in meters
    φ1, λ1 = map(math.radians, start)
    φ2, λ2 = map(math.radians, end)
    dφ = φ2 - φ1
    dλ = λ2 - λ1
    a = math.sin(dφ/2)**2 + math.cos(φ1)*math.cos(φ2)*math.sin(dλ/2)**2
    return 2*R*math.atan2(math.sqrt(a), math.sqrt(1-a))


class GPSDeviceSimulator:
    """Simulates a GPS device on a bus route"""

    def __init__(self, bus_id: str, route_points: List[Tuple[float, float]],
                 speed_kmh: float = 30.0):
        self.bus_id = bus_id
        self.route_points = route_points
        self.speed_kmh = speed_kmh
        self.current_position_index = 0
        self.current_position = route_points[0]

    def calculate_next_position(self, time_delta_seconds: float) -> Tuple[float, float]:
        """Calculate next position based on speed and time, updating self.current_position."""
        speed_ms = (self.speed_kmh * 1000) / 3600  # km/h → m/s
        remaining_time = time_delta_seconds

        while remaining_time > 0:
            # Next waypoint index (wrap around)
            next_idx = (self.current_position_index + 1) % len(self.route_points)
            start = self.current_position
            end = self.route_points[next_idx]

            segment_dist = haversine(start, end)
            travel_dist = speed_ms * remaining_time

            if travel_dist >= segment_dist:
                # Reach the waypoint and keep going with the leftover time
                self.current_position = end
                self.current_position_index = next_idx
                remaining_time -= segment_dist / speed_ms
                if segment_dist == 0 and len(set(self.route_points)) == 1:
                    break
            else:
                # Stop somewhere between start and end
                frac = travel_dist / segment_dist
                self.current_position = (
                    start[0] + (end[0] - start[0]) * frac,
                    start[1] + (end[1] - start[1]) * frac,
                )
                remaining_time = 0

        return self.current_position

    def get_report(self) -> Dict:
        """Build a position report for POST /locations"""
        # Add some randomness to simulate real GPS
        lat_noise = random.uniform(-0.00001, 0.00001)
        lon_noise = random.uniform(-0.00001, 0.00001)

        return {
            "bus_id": self.bus_id,
            "latitude": round(self.current_position[0] + lat_noise, 6),
            "longitude": round(self.current_position[1] + lon_noise, 6),
            "recorded_at": datetime.now(timezone.utc).isoformat(),
        }


class TrackerClient:
    """Posts reports to a running Bus Tracker service"""

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        self.timeout = timeout
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def register_bus(self, bus_id: str, name: str) -> requests.Response:
        return self.session.post(
            f"{self.base_url}/buses",
            json={"bus_id": bus_id, "name": name},
            timeout=self.timeout,
        )

    def post_location(self, report: Dict) -> requests.Response:
        return self.session.post(f"{self.base_url}/locations", json=report, timeout=self.timeout)


def create_sample_route() -> List[Tuple[float, float]]:
    """Create a sample bus route around University of Waterloo campus"""
    return [
        (43.472215, -80.544134),
        (43.470803, -80.544892),
        (43.469955, -80.543523),
        (43.468640, -80.542987),
        (43.468870, -80.540970),
        (43.469952, -80.539623),
        (43.471008, -80.539823),
        (43.472198, -80.540678),
        (43.472430, -80.542765),
        (43.472215, -80.544134),
    ]
