"""
Location ingestion: validate a position report and append it to the bus history
"""

import logging
from typing import Any, Optional

from .errors import InvalidArgument, InvalidBus, OutOfRange
from .models import LocationRecord
from .timeutils import is_iso8601, server_now

logger = logging.getLogger(__name__)

MAX_LAT = 90.0
MIN_LAT = -90.0
MAX_LON = 180.0
MIN_LON = -180.0


def coerce_coordinate(value: Any, field: str) -> float:
    """Convert a latitude/longitude value to float"""
    if isinstance(value, bool) or value is None:
        raise InvalidArgument(f"{field} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"{field} must be a number, got {value!r}")


def validate_gps_coordinates(lat: float, lon: float) -> None:
    """Validate GPS coordinates are within valid ranges"""
    # NaN compares false against both bounds and is rejected here
    if not MIN_LAT <= lat <= MAX_LAT:
        raise OutOfRange(f"Invalid latitude: {lat}. Must be between {MIN_LAT} and {MAX_LAT}")

    if not MIN_LON <= lon <= MAX_LON:
        raise OutOfRange(f"Invalid longitude: {lon}. Must be between {MIN_LON} and {MAX_LON}")


class LocationIngestionService:
    """Validates and persists incoming position reports"""

    def __init__(self, store, timezone: str = "UTC", strict_timestamps: bool = False):
        self.store = store
        self.timezone = timezone
        self.strict_timestamps = strict_timestamps

    async def ingest(
        self,
        bus_id: str,
        latitude: Any,
        longitude: Any,
        recorded_at: Optional[str] = None
    ) -> LocationRecord:
        """
        Validate a report and append it as a new LocationRecord.

        Order of checks:
        1. the bus must exist and be active (InvalidBus otherwise)
        2. coordinates must be numeric (InvalidArgument)
        3. coordinates must be in range (OutOfRange)

        A blank or missing recorded_at is replaced by the server time in the
        configured timezone; any other value is stored verbatim unless strict
        timestamps are enabled.
        """
        bus = await self.store.get_bus(bus_id) if bus_id else None
        if bus is None or not bus.active:
            logger.warning(f"Rejected location for unknown or inactive bus {bus_id!r}")
            raise InvalidBus(f"Invalid or inactive bus: {bus_id}")

        lat = coerce_coordinate(latitude, "latitude")
        lon = coerce_coordinate(longitude, "longitude")
        try:
            validate_gps_coordinates(lat, lon)
        except OutOfRange as e:
            logger.warning(f"Rejected location for bus {bus_id}: {e.message}")
            raise

        recorded_at = self._resolve_recorded_at(recorded_at)

        record = await self.store.append_location(bus_id, lat, lon, recorded_at)
        logger.info(f"Stored location {record.id} for bus {bus_id}")
        return record

    def _resolve_recorded_at(self, recorded_at: Optional[str]) -> str:
        if recorded_at is None or not str(recorded_at).strip():
            return server_now(self.timezone)

        if self.strict_timestamps and not is_iso8601(recorded_at):
            raise InvalidArgument(f"recorded_at must be an ISO-8601 timestamp, got {recorded_at!r}")

        return recorded_at
