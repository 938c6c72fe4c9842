"""
In-memory store with the same interface as DynamoStore

Used by the test suite and for running the service without AWS
(STORE_BACKEND=memory). Data lives only as long as the process.
"""

import logging
import threading
from typing import Dict, List, Optional

from .errors import Conflict, NotFound
from .models import Bus, LocationRecord
from .push_ids import generate_push_id

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Dict-backed store; a single lock makes create/update atomic"""

    def __init__(self):
        self._lock = threading.Lock()
        self._buses: Dict[str, Bus] = {}
        # bus_id -> records in insertion order
        self._locations: Dict[str, List[LocationRecord]] = {}

    async def health_check(self) -> bool:
        return True

    async def create_bus(self, bus: Bus) -> Bus:
        with self._lock:
            if bus.bus_id in self._buses:
                raise Conflict(f"Bus {bus.bus_id} already exists")
            self._buses[bus.bus_id] = bus.model_copy()
        return bus

    async def get_bus(self, bus_id: str) -> Optional[Bus]:
        with self._lock:
            bus = self._buses.get(bus_id)
            return bus.model_copy() if bus else None

    async def list_buses(self) -> List[Bus]:
        with self._lock:
            return [bus.model_copy() for bus in self._buses.values()]

    async def deactivate_bus(self, bus_id: str, updated_at: str) -> Bus:
        with self._lock:
            bus = self._buses.get(bus_id)
            if bus is None:
                raise NotFound(f"Bus {bus_id} not found")
            updated = bus.model_copy(update={'active': False, 'updated_at': updated_at})
            self._buses[bus_id] = updated
            return updated.model_copy()

    async def append_location(
        self,
        bus_id: str,
        latitude: float,
        longitude: float,
        recorded_at: str
    ) -> LocationRecord:
        record = LocationRecord(
            id=generate_push_id(),
            bus_id=bus_id,
            latitude=latitude,
            longitude=longitude,
            recorded_at=recorded_at
        )
        with self._lock:
            self._locations.setdefault(bus_id, []).append(record)
        return record

    async def get_latest_location(self, bus_id: str) -> Optional[LocationRecord]:
        with self._lock:
            records = self._locations.get(bus_id, [])
            if not records:
                return None
            # ties on recorded_at go to the later insert
            return max(records, key=lambda r: (r.recorded_at, r.id))

    async def list_locations(self, bus_id: Optional[str] = None) -> List[LocationRecord]:
        with self._lock:
            if bus_id is not None:
                return list(self._locations.get(bus_id, []))
            return [
                record
                for key in sorted(self._locations)
                for record in self._locations[key]
            ]

    async def ensure_tables(self) -> List[str]:
        return []
