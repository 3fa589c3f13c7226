"""Connection lifecycle management.

Every characteristic access goes through ``ConnectionManager.resolve()``,
which guarantees a live link and a populated service/characteristic
catalog before returning the peripheral's cache entry:

- the cache entry is created on first access and never removed
- a link is made only when the adapter reports the peripheral disconnected
- the catalog is discovered once, in a single round trip, and kept across
  reconnects
- the entry's timestamp is refreshed on every access; the adapter's
  disconnect notification resets it to 0

Connect and discovery for one address run in a single shared task, so
concurrent requests for a peripheral that is not yet connected wait for the
same attempt instead of racing to connect twice.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from .adapters.base import BleAdapter
from .errors import (
    AdapterError,
    ConnectFailureError,
    DiscoveryFailureError,
    NodeNotFoundError,
)
from .models import CharacteristicInfo, ConnectionEntry, Node, RadioState
from .registry import DeviceRegistry
from .utils.address import equal, normalize

logger = logging.getLogger(__name__)


def find_characteristic(
    entry: ConnectionEntry,
    char_uuid: str,
    service_uuid: Optional[str] = None,
) -> Optional[CharacteristicInfo]:
    """Return the first catalog characteristic matching ``char_uuid``.

    When ``service_uuid`` is given, only a characteristic owned by that
    service qualifies. Without it the first match in catalog order wins,
    even if the same UUID appears under several services.
    """
    for char in entry.characteristics or ():
        if not equal(char.uuid, char_uuid):
            continue
        if service_uuid and not equal(char.service_uuid, service_uuid):
            continue
        return char
    logger.debug("find_characteristic: %s.%s not found", service_uuid, char_uuid)
    return None


class ConnectionManager:
    """Owns the connection cache and the path to a ready connection."""

    def __init__(
        self,
        registry: DeviceRegistry,
        adapter: BleAdapter,
        *,
        connect_timeout: Optional[float] = None,
        discovery_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the manager.

        Args:
            registry: Registry used to validate addresses
            adapter: Radio backend
            connect_timeout: Upper bound for a connect attempt; None waits forever
            discovery_timeout: Upper bound for catalog discovery; None waits forever
            clock: Monotonic time source for access timestamps
        """
        self._registry = registry
        self._adapter = adapter
        self._connect_timeout = connect_timeout
        self._discovery_timeout = discovery_timeout
        self._clock = clock
        self._entries: Dict[str, ConnectionEntry] = {}
        self._inflight: Dict[str, asyncio.Task] = {}

    def get(self, address: str) -> Optional[ConnectionEntry]:
        """Return the cache entry for ``address`` if one was ever created."""
        return self._entries.get(normalize(address))

    def entries(self) -> List[ConnectionEntry]:
        """Return a snapshot of all cache entries."""
        return list(self._entries.values())

    def touch(self, entry: ConnectionEntry) -> None:
        """Refresh the access time of a connected entry."""
        if entry.timestamp:
            entry.timestamp = self._clock()

    def _entry_for(self, node: Node) -> ConnectionEntry:
        key = normalize(node.address)
        entry = self._entries.get(key)
        if entry is None:
            entry = ConnectionEntry(address=node.address)
            self._entries[key] = entry
        return entry

    async def resolve(self, address: str) -> ConnectionEntry:
        """Return a connected, catalog-populated entry for ``address``.

        Raises:
            NodeNotFoundError: The address was never discovered
            ConnectFailureError: The link could not be established
            DiscoveryFailureError: The catalog could not be discovered; the
                link stays up and discovery is retried on the next call
        """
        node = self._registry.find(address)
        if node is None:
            raise NodeNotFoundError(address)

        entry = self._entry_for(node)
        key = normalize(node.address)

        task = self._inflight.get(key)
        if task is None:
            state = self._adapter.radio_state(node.address)
            logger.debug("resolve: %s (%s on entry)", node.address, state.value)
            if state is RadioState.CONNECTED and entry.has_catalog:
                entry.timestamp = self._clock()
                return entry
            task = asyncio.create_task(self._establish(node, entry))
            self._inflight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        else:
            logger.debug("resolve: %s joins in-flight connect", node.address)

        # a cancelled caller must not cancel the attempt other callers share
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # mark retrieved when every waiter went away
            task.exception()

    async def _establish(self, node: Node, entry: ConnectionEntry) -> ConnectionEntry:
        address = node.address
        if self._adapter.radio_state(address) is not RadioState.CONNECTED:
            await self._connect(address, entry)
        entry.timestamp = self._clock()

        if entry.has_catalog:
            return entry
        await self._populate_catalog(address, entry)
        return entry

    async def _connect(self, address: str, entry: ConnectionEntry) -> None:
        try:
            await asyncio.wait_for(self._adapter.connect(address), self._connect_timeout)
        except AdapterError as exc:
            logger.warning("resolve: connect %s failed: %s", address, exc)
            raise ConnectFailureError(address, cause=exc) from exc
        except asyncio.TimeoutError as exc:
            logger.warning("resolve: connect %s timed out", address)
            raise ConnectFailureError(
                address,
                cause=exc,
                message=f"connect to {address} timed out after {self._connect_timeout}s",
            ) from exc

        def _on_disconnect(_address: str) -> None:
            logger.info("disconnected: %s", entry.address)
            entry.timestamp = 0

        self._adapter.add_disconnect_observer(address, _on_disconnect)

    async def _populate_catalog(self, address: str, entry: ConnectionEntry) -> None:
        try:
            services, characteristics = await asyncio.wait_for(
                self._adapter.discover(address), self._discovery_timeout
            )
        except AdapterError as exc:
            logger.warning("resolve: discovery on %s failed: %s", address, exc)
            raise DiscoveryFailureError(address, cause=exc) from exc
        except asyncio.TimeoutError as exc:
            logger.warning("resolve: discovery on %s timed out", address)
            raise DiscoveryFailureError(
                address,
                cause=exc,
                message=f"discovery on {address} timed out after {self._discovery_timeout}s",
            ) from exc

        entry.services = list(services)
        entry.characteristics = list(characteristics)
        logger.info(
            "found %d services, %d characteristics on %s",
            len(entry.services),
            len(entry.characteristics),
            address,
        )
