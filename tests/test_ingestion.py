from datetime import datetime

import pytest

from bustracker.errors import InvalidArgument, InvalidBus, OutOfRange, StoreError
from bustracker.ingestion import LocationIngestionService


@pytest.mark.asyncio
@pytest.mark.parametrize("lat,lon", [
    (90, 180),
    (-90, -180),
    (0, 0),
    (43.472215, -80.544134),
])
async def test_ingest_accepts_coordinates_in_range(registry, ingestion, lat, lon):
    await registry.register("B1", "Downtown Express")

    record = await ingestion.ingest("B1", lat, lon)

    assert record.latitude == lat
    assert record.longitude == lon
    assert record.bus_id == "B1"
    assert len(record.id) == 20


@pytest.mark.asyncio
@pytest.mark.parametrize("lat,lon", [
    (90.1, 0),
    (-90.0001, 0),
    (0, 180.5),
    (0, -181),
    (float("nan"), 0),
    (0, float("inf")),
])
async def test_ingest_rejects_coordinates_out_of_range(registry, ingestion, store, lat, lon):
    await registry.register("B1", "Downtown Express")

    with pytest.raises(OutOfRange):
        await ingestion.ingest("B1", lat, lon)

    assert await store.list_locations("B1") == []


@pytest.mark.asyncio
@pytest.mark.parametrize("lat,lon", [("abc", 0), (0, None), (True, 0), ([1], 2)])
async def test_ingest_rejects_non_numeric(registry, ingestion, lat, lon):
    await registry.register("B1", "Downtown Express")

    with pytest.raises(InvalidArgument):
        await ingestion.ingest("B1", lat, lon)


@pytest.mark.asyncio
async def test_ingest_coerces_numeric_strings(registry, ingestion):
    await registry.register("B1", "Downtown Express")

    record = await ingestion.ingest("B1", "12.5", "-45.25")

    assert record.latitude == 12.5
    assert record.longitude == -45.25


@pytest.mark.asyncio
async def test_ingest_unknown_bus(ingestion):
    with pytest.raises(InvalidBus):
        await ingestion.ingest("ghost", 10, 10)


@pytest.mark.asyncio
async def test_ingest_inactive_bus(registry, ingestion):
    await registry.register("B1", "Downtown Express")
    await registry.deactivate("B1")

    with pytest.raises(InvalidBus):
        await ingestion.ingest("B1", 10, 10)

    # the bus record still exists
    assert (await registry.get("B1")).active is False


@pytest.mark.asyncio
async def test_bus_is_checked_before_coordinates(ingestion):
    with pytest.raises(InvalidBus):
        await ingestion.ingest("ghost", 500, 500)


@pytest.mark.asyncio
async def test_recorded_at_kept_verbatim(registry, ingestion):
    await registry.register("B1", "Downtown Express")

    record = await ingestion.ingest("B1", 1, 2, "yesterday at noon")

    assert record.recorded_at == "yesterday at noon"


@pytest.mark.asyncio
@pytest.mark.parametrize("recorded_at", [None, "", "   "])
async def test_recorded_at_defaults_to_server_time(registry, ingestion, recorded_at):
    await registry.register("B1", "Downtown Express")

    record = await ingestion.ingest("B1", 1, 2, recorded_at)

    parsed = datetime.fromisoformat(record.recorded_at)
    assert parsed.utcoffset().total_seconds() == 0


@pytest.mark.asyncio
async def test_recorded_at_uses_configured_timezone(store, registry):
    await registry.register("B1", "Downtown Express")
    service = LocationIngestionService(store, timezone="Asia/Dhaka")

    record = await service.ingest("B1", 1, 2)

    parsed = datetime.fromisoformat(record.recorded_at)
    assert parsed.utcoffset().total_seconds() == 6 * 3600


@pytest.mark.asyncio
async def test_strict_timestamps(store, registry):
    await registry.register("B1", "Downtown Express")
    service = LocationIngestionService(store, strict_timestamps=True)

    with pytest.raises(InvalidArgument):
        await service.ingest("B1", 1, 2, "yesterday at noon")

    record = await service.ingest("B1", 1, 2, "2024-05-01T10:00:00+00:00")
    assert record.recorded_at == "2024-05-01T10:00:00+00:00"

    record = await service.ingest("B1", 1, 2, "2024-05-01T10:00:00Z")
    assert record.recorded_at == "2024-05-01T10:00:00Z"


@pytest.mark.asyncio
async def test_append_is_only_side_effect(registry, ingestion, store):
    bus = await registry.register("B1", "Downtown Express")

    await ingestion.ingest("B1", 1, 2)
    await ingestion.ingest("B1", 3, 4)

    assert await registry.get("B1") == bus
    assert [(r.latitude, r.longitude) for r in await store.list_locations("B1")] == [(1, 2), (3, 4)]


class FailingStore:
    def __init__(self, bus):
        self.bus = bus

    async def get_bus(self, bus_id):
        return self.bus

    async def append_location(self, *args):
        raise StoreError("Failed to add location")


@pytest.mark.asyncio
async def test_store_failure_surfaces_as_internal(registry):
    bus = await registry.register("B1", "Downtown Express")
    service = LocationIngestionService(FailingStore(bus))

    with pytest.raises(StoreError):
        await service.ingest("B1", 1, 2)
