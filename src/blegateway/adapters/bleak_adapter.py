"""BLE adapter backed by bleak and bleak-retry-connector."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Set, Tuple

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError
from bleak_retry_connector import (
    BLEAK_RETRY_EXCEPTIONS,
    BleakClientWithServiceCache,
    establish_connection,
)

from ..errors import AdapterError
from ..models import CharacteristicInfo, Node, RadioState, ServiceInfo
from ..utils.address import normalize
from .base import BleAdapter, DisconnectObserver

logger = logging.getLogger(__name__)

_RADIO_EXCEPTIONS = (BleakError, *BLEAK_RETRY_EXCEPTIONS)

# Queued into open subscriptions when the link drops.
_LINK_LOST = object()


def _address_type(device: BLEDevice) -> str:
    """Return ``public``/``random`` where the backend reports it (BlueZ)."""
    details = device.details if isinstance(device.details, dict) else {}
    props = details.get("props") or {}
    return str(props.get("AddressType", "unknown"))


def _manufacturer_hex(advertisement: AdvertisementData) -> Optional[str]:
    """Render manufacturer data as it appears on air: company id (LE) + payload."""
    if not advertisement.manufacturer_data:
        return None
    company_id, payload = next(iter(advertisement.manufacturer_data.items()))
    return (company_id.to_bytes(2, "little") + bytes(payload)).hex()


def node_from_advertisement(device: BLEDevice, advertisement: AdvertisementData) -> Node:
    """Build a registry record from a scanner detection."""
    return Node(
        address=device.address,
        address_type=_address_type(device),
        # not every backend reports connectability; assume connectable
        connectable=bool(getattr(advertisement, "connectable", True)),
        local_name=advertisement.local_name or device.name,
        service_uuids=list(advertisement.service_uuids),
        rssi=advertisement.rssi,
        manufacturer_data=_manufacturer_hex(advertisement),
    )


def _advertisement_signature(advertisement: AdvertisementData) -> Tuple[Any, ...]:
    """Identity of an advertisement's payload, ignoring signal strength."""
    return (
        advertisement.local_name,
        tuple(sorted(advertisement.service_uuids)),
        tuple(sorted((k, bytes(v)) for k, v in advertisement.manufacturer_data.items())),
        tuple(sorted((k, bytes(v)) for k, v in advertisement.service_data.items())),
        advertisement.tx_power,
    )


class BleakAdapter(BleAdapter):
    """Scan, connect and exchange GATT data through bleak."""

    name = "bleak"

    def __init__(self) -> None:
        super().__init__()
        self._scanner: Optional[BleakScanner] = None
        self._allow_duplicates = False
        self._devices: Dict[str, BLEDevice] = {}
        self._last_adverts: Dict[str, Tuple[Any, ...]] = {}
        self._clients: Dict[str, BleakClient] = {}
        self._connecting: Set[str] = set()
        self._observers: Dict[str, List[DisconnectObserver]] = {}
        self._subscriptions: Dict[str, Set[asyncio.Queue]] = {}

    # Scanning

    @property
    def scanning(self) -> bool:
        return self._scanner is not None

    async def start_scan(self, service_uuids: Sequence[str], allow_duplicates: bool) -> None:
        if self._scanner is not None:
            logger.debug("Scan already running")
            return
        self._allow_duplicates = allow_duplicates
        scanner = BleakScanner(
            detection_callback=self._on_detection,
            service_uuids=list(service_uuids) or None,
        )
        try:
            await scanner.start()
        except _RADIO_EXCEPTIONS as exc:
            raise AdapterError(f"startScanning failed: {exc}", cause=exc) from exc
        except (FileNotFoundError, PermissionError) as exc:
            # no D-Bus socket or no permission to use it
            raise AdapterError(f"Bluetooth not available: {exc}", cause=exc) from exc
        self._scanner = scanner
        logger.info("starting scan ... (allow duplicates: %s)", allow_duplicates)

    async def stop_scan(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except _RADIO_EXCEPTIONS as exc:
            raise AdapterError(f"stopScanning failed: {exc}", cause=exc) from exc
        logger.info("scan stopped")

    def _on_detection(self, device: BLEDevice, advertisement: AdvertisementData) -> None:
        key = normalize(device.address)
        self._devices[key] = device
        if not self._allow_duplicates:
            signature = _advertisement_signature(advertisement)
            if self._last_adverts.get(key) == signature:
                return
            self._last_adverts[key] = signature
        self._emit_discovery(node_from_advertisement(device, advertisement))

    # Connection

    def radio_state(self, address: str) -> RadioState:
        key = normalize(address)
        if key in self._connecting:
            return RadioState.CONNECTING
        client = self._clients.get(key)
        if client is not None and client.is_connected:
            return RadioState.CONNECTED
        return RadioState.DISCONNECTED

    async def _ble_device(self, address: str) -> BLEDevice:
        device = self._devices.get(normalize(address))
        if device is not None:
            return device
        device = await BleakScanner.find_device_by_address(address)
        if device is None:
            raise AdapterError(f"device {address} not advertising")
        self._devices[normalize(address)] = device
        return device

    async def connect(self, address: str) -> None:
        key = normalize(address)
        self._connecting.add(key)
        try:
            device = await self._ble_device(address)
            client = await establish_connection(
                BleakClientWithServiceCache,
                device,
                device.name or address,
                disconnected_callback=self._on_disconnected,
            )
        except _RADIO_EXCEPTIONS as exc:
            raise AdapterError(str(exc) or exc.__class__.__name__, cause=exc) from exc
        finally:
            self._connecting.discard(key)
        self._clients[key] = client
        logger.info("connected: %s", address)

    def add_disconnect_observer(self, address: str, observer: DisconnectObserver) -> None:
        self._observers.setdefault(normalize(address), []).append(observer)

    def _on_disconnected(self, client: BleakClient) -> None:
        key = normalize(client.address)
        if self._clients.get(key) is client:
            del self._clients[key]
        logger.info("disconnected-callback: %s", client.address)
        for observer in self._observers.pop(key, []):
            try:
                observer(client.address)
            except Exception:  # pragma: no cover - observer bugs must not break bleak
                logger.exception("Disconnect observer failed for %s", client.address)
        for queue in self._subscriptions.get(key, ()):
            queue.put_nowait(_LINK_LOST)

    def _client(self, address: str) -> BleakClient:
        client = self._clients.get(normalize(address))
        if client is None or not client.is_connected:
            raise AdapterError(f"{address} is not connected")
        return client

    async def disconnect(self, address: str) -> None:
        client = self._client(address)
        try:
            await client.disconnect()
        except _RADIO_EXCEPTIONS as exc:
            raise AdapterError(str(exc) or exc.__class__.__name__, cause=exc) from exc

    # GATT

    async def discover(
        self, address: str
    ) -> Tuple[List[ServiceInfo], List[CharacteristicInfo]]:
        client = self._client(address)
        services: List[ServiceInfo] = []
        characteristics: List[CharacteristicInfo] = []
        try:
            # establish_connection resolves the whole catalog during connect
            for service in client.services:
                services.append(ServiceInfo(uuid=service.uuid, handle=service.handle))
                for char in service.characteristics:
                    characteristics.append(
                        CharacteristicInfo(
                            uuid=char.uuid,
                            service_uuid=service.uuid,
                            properties=tuple(char.properties),
                            handle=char.handle,
                        )
                    )
        except _RADIO_EXCEPTIONS as exc:
            raise AdapterError(str(exc) or exc.__class__.__name__, cause=exc) from exc
        return services, characteristics

    async def read(self, address: str, characteristic: CharacteristicInfo) -> bytes:
        client = self._client(address)
        try:
            data = await client.read_gatt_char(characteristic.handle or characteristic.uuid)
        except _RADIO_EXCEPTIONS as exc:
            raise AdapterError(str(exc) or exc.__class__.__name__, cause=exc) from exc
        return bytes(data)

    async def write(
        self,
        address: str,
        characteristic: CharacteristicInfo,
        data: bytes,
        no_ack: bool,
    ) -> None:
        client = self._client(address)
        try:
            await client.write_gatt_char(
                characteristic.handle or characteristic.uuid, data, response=not no_ack
            )
        except _RADIO_EXCEPTIONS as exc:
            raise AdapterError(str(exc) or exc.__class__.__name__, cause=exc) from exc

    async def subscribe(
        self, address: str, characteristic: CharacteristicInfo
    ) -> AsyncIterator[bytes]:
        client = self._client(address)
        key = normalize(address)
        specifier = characteristic.handle or characteristic.uuid
        queue: asyncio.Queue = asyncio.Queue()

        def _on_data(_sender: Any, data: bytearray) -> None:
            queue.put_nowait(bytes(data))

        try:
            await client.start_notify(specifier, _on_data)
        except _RADIO_EXCEPTIONS as exc:
            raise AdapterError(str(exc) or exc.__class__.__name__, cause=exc) from exc

        self._subscriptions.setdefault(key, set()).add(queue)
        try:
            while True:
                item = await queue.get()
                if item is _LINK_LOST:
                    raise AdapterError(f"{address} disconnected")
                yield item
        finally:
            subscribers = self._subscriptions.get(key)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    del self._subscriptions[key]
            if client.is_connected:
                try:
                    await client.stop_notify(specifier)
                except _RADIO_EXCEPTIONS as exc:
                    logger.warning("stop_notify failed for %s: %s", address, exc)

    async def close(self) -> None:
        await self.stop_scan()
        for key, client in list(self._clients.items()):
            if client.is_connected:
                try:
                    await client.disconnect()
                except _RADIO_EXCEPTIONS as exc:
                    logger.warning("disconnect on close failed for %s: %s", key, exc)
        self._clients.clear()
