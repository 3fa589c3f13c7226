"""Tests for the connection manager."""

from __future__ import annotations

import asyncio

import pytest
from conftest import (
    BATTERY_LEVEL,
    CUSTOM_SERVICE,
    SENSOR_ADDRESS,
    FakeAdapter,
    FakeClock,
    beacon_node,
    sensor_catalog,
    sensor_node,
)

from blegateway.connections import ConnectionManager, find_characteristic
from blegateway.errors import (
    AdapterError,
    ConnectFailureError,
    DiscoveryFailureError,
    NodeNotFoundError,
)
from blegateway.models import ConnectionEntry, RadioState
from blegateway.registry import DeviceRegistry
from blegateway.utils.address import normalize

KEY = normalize(SENSOR_ADDRESS)


def _manager(adapter: FakeAdapter, clock: FakeClock, **kwargs) -> ConnectionManager:
    registry = DeviceRegistry()
    registry.upsert(sensor_node())
    registry.upsert(beacon_node())
    return ConnectionManager(registry, adapter, clock=clock, **kwargs)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def manager(fake_adapter: FakeAdapter, clock: FakeClock) -> ConnectionManager:
    return _manager(fake_adapter, clock)


@pytest.mark.asyncio
async def test_unknown_address_is_rejected_without_radio_traffic(manager, fake_adapter):
    with pytest.raises(NodeNotFoundError) as excinfo:
        await manager.resolve("00:11:22:33:44:55")
    assert "00:11:22:33:44:55" in str(excinfo.value)
    assert sum(fake_adapter.connect_calls.values()) == 0
    assert manager.entries() == []


@pytest.mark.asyncio
async def test_first_access_connects_and_discovers(manager, fake_adapter, clock):
    entry = await manager.resolve("c0ab2a6a1a89")

    assert fake_adapter.connect_calls[KEY] == 1
    assert fake_adapter.discover_calls[KEY] == 1
    assert entry.timestamp == clock.now
    assert [s.uuid for s in entry.services] == ["180f", CUSTOM_SERVICE]
    assert len(entry.characteristics) == 4
    assert manager.get(SENSOR_ADDRESS) is entry


@pytest.mark.asyncio
async def test_connected_access_only_refreshes_timestamp(manager, fake_adapter, clock):
    entry = await manager.resolve(SENSOR_ADDRESS)
    clock.advance(30)

    again = await manager.resolve(SENSOR_ADDRESS)

    assert again is entry
    assert entry.timestamp == clock.now
    assert fake_adapter.connect_calls[KEY] == 1
    assert fake_adapter.discover_calls[KEY] == 1


@pytest.mark.asyncio
async def test_catalog_survives_reconnect(manager, fake_adapter):
    entry = await manager.resolve(SENSOR_ADDRESS)

    fake_adapter.drop(SENSOR_ADDRESS)
    assert entry.timestamp == 0
    assert entry.has_catalog

    await manager.resolve(SENSOR_ADDRESS)

    assert fake_adapter.connect_calls[KEY] == 2
    assert fake_adapter.discover_calls[KEY] == 1
    assert entry.timestamp != 0


@pytest.mark.asyncio
async def test_connect_failure_leaves_entry_disconnected(manager, fake_adapter, radio_failure):
    fake_adapter.connect_error = radio_failure

    with pytest.raises(ConnectFailureError) as excinfo:
        await manager.resolve(SENSOR_ADDRESS)

    assert excinfo.value.message == str(radio_failure)
    entry = manager.get(SENSOR_ADDRESS)
    assert entry is not None
    assert entry.timestamp == 0
    assert entry.services is None
    assert fake_adapter.discover_calls[KEY] == 0


@pytest.mark.asyncio
async def test_discovery_failure_is_retried_on_next_access(manager, fake_adapter):
    fake_adapter.discover_error = AdapterError("GATT discovery failed")

    with pytest.raises(DiscoveryFailureError):
        await manager.resolve(SENSOR_ADDRESS)

    entry = manager.get(SENSOR_ADDRESS)
    assert entry.timestamp != 0
    assert not entry.has_catalog
    assert fake_adapter.radio_state(SENSOR_ADDRESS) is RadioState.CONNECTED

    fake_adapter.discover_error = None
    await manager.resolve(SENSOR_ADDRESS)

    assert entry.has_catalog
    assert fake_adapter.connect_calls[KEY] == 1
    assert fake_adapter.discover_calls[KEY] == 2


@pytest.mark.asyncio
async def test_concurrent_access_shares_one_connect(manager, fake_adapter):
    fake_adapter.connect_delay = 0.01

    entries = await asyncio.gather(*(manager.resolve(SENSOR_ADDRESS) for _ in range(3)))

    assert entries[0] is entries[1] is entries[2]
    assert fake_adapter.connect_calls[KEY] == 1
    assert fake_adapter.discover_calls[KEY] == 1


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_abort_shared_connect(manager, fake_adapter):
    fake_adapter.connect_delay = 0.05

    first = asyncio.create_task(manager.resolve(SENSOR_ADDRESS))
    await asyncio.sleep(0)
    first.cancel()
    with pytest.raises(asyncio.CancelledError):
        await first

    entry = await manager.resolve(SENSOR_ADDRESS)

    assert entry.has_catalog
    assert fake_adapter.connect_calls[KEY] == 1


@pytest.mark.asyncio
async def test_connect_timeout(fake_adapter, clock):
    manager = _manager(fake_adapter, clock, connect_timeout=0.01)
    fake_adapter.connect_delay = 1.0

    with pytest.raises(ConnectFailureError) as excinfo:
        await manager.resolve(SENSOR_ADDRESS)

    assert "timed out" in excinfo.value.message
    assert manager.get(SENSOR_ADDRESS).timestamp == 0


@pytest.mark.asyncio
async def test_discovery_timeout(fake_adapter, clock):
    manager = _manager(fake_adapter, clock, discovery_timeout=0.01)
    fake_adapter.discover_delay = 1.0

    with pytest.raises(DiscoveryFailureError) as excinfo:
        await manager.resolve(SENSOR_ADDRESS)

    assert "timed out" in excinfo.value.message
    assert not manager.get(SENSOR_ADDRESS).has_catalog


@pytest.mark.asyncio
async def test_touch_ignores_disconnected_entry(manager, fake_adapter, clock):
    entry = await manager.resolve(SENSOR_ADDRESS)
    clock.advance(10)
    manager.touch(entry)
    assert entry.timestamp == clock.now

    fake_adapter.drop(SENSOR_ADDRESS)
    manager.touch(entry)
    assert entry.timestamp == 0


def _catalog_entry() -> ConnectionEntry:
    services, characteristics = sensor_catalog()
    return ConnectionEntry(SENSOR_ADDRESS, services, characteristics, 1.0)


def test_find_characteristic_first_match_without_service():
    found = find_characteristic(_catalog_entry(), "2A19")
    assert found is not None
    assert found.handle == 2


def test_find_characteristic_filters_by_service():
    found = find_characteristic(_catalog_entry(), BATTERY_LEVEL, CUSTOM_SERVICE.upper())
    assert found is not None
    assert found.handle == 16


def test_find_characteristic_misses():
    entry = _catalog_entry()
    assert find_characteristic(entry, "2a1a") is None
    assert find_characteristic(entry, BATTERY_LEVEL, "1800") is None
    assert find_characteristic(ConnectionEntry(SENSOR_ADDRESS), BATTERY_LEVEL) is None
