"""
Location queries for dashboards and devices
"""

import logging
from typing import List, Optional

from .errors import InvalidBus
from .models import BusLocations, LocationRecord

logger = logging.getLogger(__name__)


class LocationQueryService:
    """Reads positions back, optionally joined with bus metadata"""

    def __init__(self, store):
        self.store = store

    async def latest(self, bus_id: str) -> Optional[LocationRecord]:
        """Most recent record by recorded_at, or None if the bus never reported"""
        bus = await self.store.get_bus(bus_id)
        if bus is None or not bus.active:
            raise InvalidBus(f"Invalid or inactive bus: {bus_id}")
        return await self.store.get_latest_location(bus_id)

    async def list(self, bus_id: Optional[str] = None) -> List[LocationRecord]:
        """All records, or one bus's records in insertion order"""
        return await self.store.list_locations(bus_id)

    async def list_with_buses(self) -> List[BusLocations]:
        buses = await self.store.list_buses()
        result = []
        for bus in sorted(buses, key=lambda b: b.bus_id):
            if not bus.active:
                continue
            locations = await self.store.list_locations(bus.bus_id)
            result.append(BusLocations(bus=bus, locations=locations))
        return result
