"""Gateway service orchestrating the registry, connections and adapter.

``GatewayService`` is the single object the HTTP layer talks to. It is built
once at startup; the registry, the connection cache and the idle sweep it
owns are shared by every request.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Tuple

from . import codec
from .adapters import BleAdapter, create_adapter
from .config import GatewaySettings
from .connections import ConnectionManager, find_characteristic
from .disconnector import IdleDisconnector
from .errors import (
    AdapterError,
    CharacteristicNotFoundError,
    GatewayError,
    InvalidValueFormatError,
    NodeNotFoundError,
    ReadFailureError,
    SubscribeFailureError,
    WriteFailureError,
)
from .models import CharacteristicInfo, ConnectionEntry, Node, RadioState
from .registry import DeviceRegistry
from .utils import characteristic_to_dict, equal, node_to_dict, normalize, service_to_dict

logger = logging.getLogger(__name__)


class GatewayService:
    """Manages discovery, on-demand connections and characteristic access."""

    def __init__(
        self,
        settings: Optional[GatewaySettings] = None,
        adapter: Optional[BleAdapter] = None,
    ) -> None:
        """Initialize the service and its owned state.

        Args:
            settings: Runtime configuration; read from the environment if omitted
            adapter: Radio backend; created from ``settings.adapter`` if omitted
        """
        self.settings = settings or GatewaySettings.from_env()
        self.adapter = adapter or create_adapter(self.settings.adapter)
        self.registry = DeviceRegistry()
        self.connections = ConnectionManager(
            self.registry,
            self.adapter,
            connect_timeout=self.settings.connect_timeout,
            discovery_timeout=self.settings.discovery_timeout,
        )
        self.disconnector = IdleDisconnector(
            self.connections,
            self.registry,
            self.adapter,
            keep_alive=self.settings.keep_interval,
            check_interval=self.settings.check_interval,
        )
        self._preconnect: Set[str] = {normalize(a) for a in self.settings.preconnect}
        self._background: Set[asyncio.Task] = set()

    # Lifecycle

    async def start(self) -> None:
        """Start scanning and the idle sweep."""
        self.adapter.set_discovery_handler(self._on_discovered)
        try:
            await self.wakeup()
        except AdapterError as exc:
            # the service stays up; /wakeup can retry once the radio is back
            logger.warning("Scan could not be started: %s", exc)
        self.disconnector.start()
        logger.info(
            "Service start: adapter=%s, keep_interval=%.0fs, check_interval=%.0fs, "
            "allow_duplicates=%s, preconnect=%d",
            self.adapter.name,
            self.settings.keep_interval,
            self.settings.check_interval,
            self.settings.allow_duplicates,
            len(self._preconnect),
        )

    async def stop(self) -> None:
        """Stop background work and release the radio."""
        await self.disconnector.stop()
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self.adapter.set_discovery_handler(None)
        try:
            await self.adapter.close()
        except AdapterError as exc:
            logger.warning("Adapter close failed: %s", exc)

    def _on_discovered(self, node: Node) -> None:
        added = self.registry.upsert(node)
        if added and node.connectable and normalize(node.address) in self._preconnect:
            logger.info("preload: connecting to %s", node.address)
            task = asyncio.create_task(self._preload(node.address))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    async def _preload(self, address: str) -> None:
        try:
            await self.connections.resolve(address)
        except GatewayError as exc:
            logger.warning("preload: %s: %s", address, exc)

    # Queries

    def get_nodes(self, connectable_only: bool = False) -> List[Dict[str, Any]]:
        """Return every discovered node, or only the connectable ones."""
        return [
            node_to_dict(node, self.adapter.radio_state(node.address))
            for node in self.registry.list(connectable_only)
        ]

    def get_node(self, address: str) -> Dict[str, Any]:
        """Return a single node by address."""
        node = self.registry.find(address)
        if node is None:
            raise NodeNotFoundError(address)
        return node_to_dict(node, self.adapter.radio_state(node.address))

    async def get_services(self, address: str) -> List[Dict[str, Any]]:
        """Connect if needed and return the node's services."""
        entry = await self.connections.resolve(address)
        return [service_to_dict(s) for s in entry.services or ()]

    async def get_items(self, address: str, service_uuid: str) -> List[Dict[str, Any]]:
        """Connect if needed and return the characteristics of one service."""
        entry = await self.connections.resolve(address)
        return [
            characteristic_to_dict(c)
            for c in entry.characteristics or ()
            if equal(c.service_uuid, service_uuid)
        ]

    async def _characteristic(
        self, address: str, service_uuid: Optional[str], char_uuid: str
    ) -> Tuple[ConnectionEntry, CharacteristicInfo]:
        entry = await self.connections.resolve(address)
        characteristic = find_characteristic(entry, char_uuid, service_uuid)
        if characteristic is None:
            raise CharacteristicNotFoundError(service_uuid, char_uuid)
        return entry, characteristic

    # Data

    async def read_value(
        self, address: str, service_uuid: Optional[str], char_uuid: str
    ) -> Dict[str, Any]:
        """Read a characteristic and return the decoded value object."""
        _, characteristic = await self._characteristic(address, service_uuid, char_uuid)
        try:
            data = await self.adapter.read(address, characteristic)
        except AdapterError as exc:
            raise ReadFailureError(address, cause=exc) from exc
        return codec.decode(data)

    async def write_value(
        self,
        address: str,
        service_uuid: Optional[str],
        char_uuid: str,
        value: Optional[str],
        no_ack: bool = False,
    ) -> str:
        """Encode ``value`` and write it to a characteristic.

        The value is validated before any radio traffic. ``no_ack`` selects
        write-without-response.

        Returns:
            ``"OK"`` once the adapter accepted the write.
        """
        data = codec.encode(value)
        if data is None:
            raise InvalidValueFormatError(value)
        _, characteristic = await self._characteristic(address, service_uuid, char_uuid)
        logger.debug("write %s.%s <= %s (no_ack=%s)", address, char_uuid, data.hex(), no_ack)
        try:
            await self.adapter.write(address, characteristic, data, no_ack)
        except AdapterError as exc:
            raise WriteFailureError(address, cause=exc) from exc
        return "OK"

    async def subscribe(
        self, address: str, service_uuid: Optional[str], char_uuid: str
    ) -> AsyncIterator[Dict[str, Any]]:
        """Resolve the characteristic and return its decoded value stream.

        Lookup errors are raised here, before the stream starts. Adapter
        errors end the stream with ``SubscribeFailureError``.
        """
        entry, characteristic = await self._characteristic(address, service_uuid, char_uuid)
        return self._value_stream(address, entry, characteristic)

    async def _value_stream(
        self, address: str, entry: ConnectionEntry, characteristic: CharacteristicInfo
    ) -> AsyncIterator[Dict[str, Any]]:
        stream = self.adapter.subscribe(address, characteristic)
        try:
            async for data in stream:
                # an active subscription counts as use of the link
                self.connections.touch(entry)
                logger.debug("onData: %s '%s'", characteristic.uuid, data.hex())
                yield codec.decode(data)
        except AdapterError as exc:
            raise SubscribeFailureError(address, cause=exc) from exc
        finally:
            await stream.aclose()

    # Control

    async def wakeup(self) -> None:
        """Start scanning for advertisements."""
        await self.adapter.start_scan([], self.settings.allow_duplicates)

    async def sleep(self) -> None:
        """Stop scanning; known nodes and connections are kept."""
        await self.adapter.stop_scan()

    async def open(self, address: str) -> Dict[str, Any]:
        """Connect to a node (and discover its catalog) ahead of use."""
        entry = await self.connections.resolve(address)
        return entry.to_dict()

    async def close(self, address: str) -> None:
        """Disconnect a node now instead of waiting for the idle sweep."""
        node = self.registry.find(address)
        if node is None:
            raise NodeNotFoundError(address)
        if self.adapter.radio_state(node.address) is RadioState.CONNECTED:
            await self.adapter.disconnect(node.address)

    def health(self) -> Dict[str, Any]:
        """Summarize runtime state for monitoring."""
        entries = self.connections.entries()
        return {
            "adapter": self.adapter.name,
            "scanning": self.adapter.scanning,
            "nodes": len(self.registry),
            "connections": {
                "cached": len(entries),
                "active": sum(1 for e in entries if e.timestamp),
            },
            "disconnector": self.disconnector.running,
        }
