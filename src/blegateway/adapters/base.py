"""BLE adapter abstraction.

The gateway reaches the radio only through this interface, so the backend
(a local BlueZ/CoreBluetooth stack through bleak, or no radio at all) can be
swapped without touching the connection manager.

Every call that fails at the radio level raises ``AdapterError`` carrying
the stack's message.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable, List, Optional, Sequence, Tuple

from ..models import CharacteristicInfo, Node, RadioState, ServiceInfo

logger = logging.getLogger(__name__)

DiscoveryHandler = Callable[[Node], None]
DisconnectObserver = Callable[[str], None]


class BleAdapter(ABC):
    """Capability set the gateway consumes from a BLE stack."""

    name: str = "abstract"

    def __init__(self) -> None:
        self._discovery_handler: Optional[DiscoveryHandler] = None

    def set_discovery_handler(self, handler: Optional[DiscoveryHandler]) -> None:
        """Install the callback that receives every discovered node."""
        self._discovery_handler = handler

    def _emit_discovery(self, node: Node) -> None:
        if self._discovery_handler is None:
            return
        try:
            self._discovery_handler(node)
        except Exception:  # pragma: no cover - handler bugs must not stop the scanner
            logger.exception("Discovery handler failed for %s", node.address)

    @property
    @abstractmethod
    def scanning(self) -> bool:
        """True while a scan is running."""

    @abstractmethod
    async def start_scan(self, service_uuids: Sequence[str], allow_duplicates: bool) -> None:
        """Start scanning.

        Args:
            service_uuids: Service UUID filter; empty reports every device
            allow_duplicates: Report repeated identical advertisements
        """

    @abstractmethod
    async def stop_scan(self) -> None:
        """Stop scanning if running."""

    @abstractmethod
    def radio_state(self, address: str) -> RadioState:
        """Return the current link state for ``address``."""

    @abstractmethod
    async def connect(self, address: str) -> None:
        """Connect to a previously discovered peripheral."""

    @abstractmethod
    def add_disconnect_observer(self, address: str, observer: DisconnectObserver) -> None:
        """Call ``observer(address)`` once, on the next disconnection."""

    @abstractmethod
    async def discover(
        self, address: str
    ) -> Tuple[List[ServiceInfo], List[CharacteristicInfo]]:
        """Discover all services and characteristics in one round trip."""

    @abstractmethod
    async def read(self, address: str, characteristic: CharacteristicInfo) -> bytes:
        """Read a characteristic value."""

    @abstractmethod
    async def write(
        self,
        address: str,
        characteristic: CharacteristicInfo,
        data: bytes,
        no_ack: bool,
    ) -> None:
        """Write a value; ``no_ack`` selects write-without-response."""

    @abstractmethod
    def subscribe(self, address: str, characteristic: CharacteristicInfo) -> AsyncIterator[bytes]:
        """Yield every notification or indication for ``characteristic``.

        The adapter picks notification or indication, whichever the
        characteristic supports. Closing the iterator unsubscribes. A
        disconnection ends the iterator with ``AdapterError``.
        """

    @abstractmethod
    async def disconnect(self, address: str) -> None:
        """Disconnect a connected peripheral."""

    async def close(self) -> None:
        """Release backend resources."""
        await self.stop_scan()
