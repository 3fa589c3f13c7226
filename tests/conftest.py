"""Test configuration ensuring the src package is importable."""

from __future__ import annotations

import asyncio
import sys
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pytest

SRC_PATH = Path(__file__).resolve().parents[1] / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from blegateway.adapters.base import BleAdapter, DisconnectObserver  # noqa: E402
from blegateway.errors import AdapterError  # noqa: E402
from blegateway.models import (  # noqa: E402
    CharacteristicInfo,
    Node,
    RadioState,
    ServiceInfo,
)
from blegateway.utils.address import normalize  # noqa: E402

SENSOR_ADDRESS = "C0:AB:2A:6A:1A:89"
BEACON_ADDRESS = "D4:11:22:33:44:55"

BATTERY_SERVICE = "180f"
BATTERY_LEVEL = "2a19"
CUSTOM_SERVICE = "6e400001b5a3f393e0a9e50e24dcca9e"
CUSTOM_RX = "6e400002b5a3f393e0a9e50e24dcca9e"
CUSTOM_TX = "6e400003b5a3f393e0a9e50e24dcca9e"

Notification = Union[bytes, Exception]


def sensor_catalog() -> Tuple[List[ServiceInfo], List[CharacteristicInfo]]:
    """Catalog of the test sensor: battery service plus a UART-like service.

    The battery level UUID appears under both services so lookups with and
    without a service filter can be told apart.
    """
    services = [ServiceInfo(BATTERY_SERVICE, 1), ServiceInfo(CUSTOM_SERVICE, 10)]
    characteristics = [
        CharacteristicInfo(BATTERY_LEVEL, BATTERY_SERVICE, ("read", "notify"), 2),
        CharacteristicInfo(CUSTOM_RX, CUSTOM_SERVICE, ("write", "write-without-response"), 11),
        CharacteristicInfo(CUSTOM_TX, CUSTOM_SERVICE, ("notify",), 13),
        CharacteristicInfo(BATTERY_LEVEL, CUSTOM_SERVICE, ("read",), 16),
    ]
    return services, characteristics


def sensor_node(**overrides) -> Node:
    values = dict(
        address=SENSOR_ADDRESS,
        address_type="public",
        connectable=True,
        local_name="Sensor",
        service_uuids=[BATTERY_SERVICE],
        rssi=-60,
        manufacturer_data="4c000215",
    )
    values.update(overrides)
    return Node(**values)


def beacon_node(**overrides) -> Node:
    values = dict(
        address=BEACON_ADDRESS,
        address_type="random",
        connectable=False,
        local_name=None,
        rssi=-80,
    )
    values.update(overrides)
    return Node(**values)


class FakeAdapter(BleAdapter):
    """In-memory adapter recording every radio call.

    Nodes passed in ``nearby`` are reported when a scan starts. Failures and
    delays are configured by setting the public attributes.
    """

    name = "fake"

    def __init__(self, nearby: Iterable[Node] = ()) -> None:
        super().__init__()
        self.nearby = list(nearby)
        self._scanning = False
        self.scan_calls: List[Tuple[Tuple[str, ...], bool]] = []
        self.states: Dict[str, RadioState] = {}
        self.catalogs: Dict[str, Tuple[List[ServiceInfo], List[CharacteristicInfo]]] = {}
        self.values: Dict[Tuple[str, Optional[int]], bytes] = {}
        self.notifications: Dict[Tuple[str, Optional[int]], List[Notification]] = {}
        self.writes: List[Tuple[str, str, Optional[int], bytes, bool]] = []
        self.connect_calls: Counter = Counter()
        self.discover_calls: Counter = Counter()
        self.disconnect_calls: Counter = Counter()
        self.unsubscribed: List[Tuple[str, Optional[int]]] = []
        self.observers: Dict[str, List[DisconnectObserver]] = {}
        self.connect_error: Optional[Exception] = None
        self.discover_error: Optional[Exception] = None
        self.read_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.disconnect_error: Optional[Exception] = None
        self.connect_delay = 0.0
        self.discover_delay = 0.0
        self.closed = False

    # Test helpers

    def advertise(self, node: Node) -> None:
        self._emit_discovery(node)

    def drop(self, address: str) -> None:
        """Simulate the peripheral going away."""
        key = normalize(address)
        self.states[key] = RadioState.DISCONNECTED
        for observer in self.observers.pop(key, []):
            observer(address)

    # BleAdapter

    @property
    def scanning(self) -> bool:
        return self._scanning

    async def start_scan(self, service_uuids: Sequence[str], allow_duplicates: bool) -> None:
        self.scan_calls.append((tuple(service_uuids), allow_duplicates))
        self._scanning = True
        for node in self.nearby:
            self._emit_discovery(node)

    async def stop_scan(self) -> None:
        self._scanning = False

    def radio_state(self, address: str) -> RadioState:
        return self.states.get(normalize(address), RadioState.DISCONNECTED)

    async def connect(self, address: str) -> None:
        key = normalize(address)
        self.connect_calls[key] += 1
        self.states[key] = RadioState.CONNECTING
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            self.states[key] = RadioState.DISCONNECTED
            raise self.connect_error
        self.states[key] = RadioState.CONNECTED

    def add_disconnect_observer(self, address: str, observer: DisconnectObserver) -> None:
        self.observers.setdefault(normalize(address), []).append(observer)

    async def discover(
        self, address: str
    ) -> Tuple[List[ServiceInfo], List[CharacteristicInfo]]:
        key = normalize(address)
        self.discover_calls[key] += 1
        if self.discover_delay:
            await asyncio.sleep(self.discover_delay)
        if self.discover_error is not None:
            raise self.discover_error
        return self.catalogs.get(key, ([], []))

    async def read(self, address: str, characteristic: CharacteristicInfo) -> bytes:
        if self.read_error is not None:
            raise self.read_error
        return self.values.get((normalize(address), characteristic.handle), b"")

    async def write(
        self,
        address: str,
        characteristic: CharacteristicInfo,
        data: bytes,
        no_ack: bool,
    ) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.writes.append((normalize(address), characteristic.uuid, characteristic.handle, data, no_ack))

    async def subscribe(self, address: str, characteristic: CharacteristicInfo):
        key = (normalize(address), characteristic.handle)
        try:
            for item in self.notifications.get(key, []):
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            self.unsubscribed.append(key)

    async def disconnect(self, address: str) -> None:
        key = normalize(address)
        self.disconnect_calls[key] += 1
        if self.disconnect_error is not None:
            raise self.disconnect_error
        self.drop(address)

    async def close(self) -> None:
        self.closed = True
        await self.stop_scan()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def fake_adapter() -> FakeAdapter:
    """Adapter that sees a connectable sensor and a non-connectable beacon."""
    adapter = FakeAdapter(nearby=[sensor_node(), beacon_node()])
    adapter.catalogs[normalize(SENSOR_ADDRESS)] = sensor_catalog()
    return adapter


@pytest.fixture()
def radio_failure() -> AdapterError:
    return AdapterError("Device with address C0:AB:2A:6A:1A:89 was not found")


@pytest.fixture()
def settings():
    from blegateway.config import GatewaySettings

    return GatewaySettings(keep_interval=180, check_interval=60)


@pytest.fixture()
def gateway(settings, fake_adapter):
    from blegateway.gateway import GatewayService

    return GatewayService(settings, adapter=fake_adapter)


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """Reset sse-starlette's exit event so each TestClient loop gets its own."""
    from sse_starlette.sse import AppStatus

    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield
    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
