"""
Bus registry: owns bus identity and active state
"""

import logging
from typing import List

from .errors import InvalidArgument, NotFound
from .models import Bus
from .timeutils import server_now

logger = logging.getLogger(__name__)


class BusRegistry:
    """Register, deactivate and look up buses"""

    def __init__(self, store, timezone: str = "UTC"):
        self.store = store
        self.timezone = timezone

    async def register(self, bus_id: str, name: str) -> Bus:
        """
        Register a new, active bus.

        Raises InvalidArgument for a blank id or name and Conflict when the id
        is taken. The duplicate check is the store's conditional create, so
        two concurrent registrations of the same id cannot both succeed.
        """
        bus_id = (bus_id or "").strip()
        name = (name or "").strip()
        if not bus_id:
            raise InvalidArgument("bus_id must not be empty")
        if not name:
            raise InvalidArgument("name must not be empty")

        now = server_now(self.timezone)
        bus = Bus(bus_id=bus_id, name=name, active=True, created_at=now, updated_at=now)
        await self.store.create_bus(bus)

        logger.info(f"Registered bus {bus_id} ({name})")
        return bus

    async def deactivate(self, bus_id: str) -> Bus:
        """Mark a bus inactive. There is no way back to active."""
        bus = await self.store.deactivate_bus(bus_id, server_now(self.timezone))
        logger.info(f"Deactivated bus {bus_id}")
        return bus

    async def get(self, bus_id: str) -> Bus:
        bus = await self.store.get_bus(bus_id)
        if bus is None:
            raise NotFound(f"Bus {bus_id} not found")
        return bus

    async def list(self, active_only: bool = False) -> List[Bus]:
        buses = await self.store.list_buses()
        if active_only:
            buses = [bus for bus in buses if bus.active]
        return sorted(buses, key=lambda bus: bus.bus_id)
