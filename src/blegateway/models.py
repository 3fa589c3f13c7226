"""Records shared by the registry, the connection manager and the adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple


class RadioState(str, Enum):
    """Link state of a peripheral as reported by the adapter."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(slots=True)
class Node:
    """A peripheral observed through the scanner's discovery stream."""

    address: str
    address_type: str = "unknown"
    connectable: bool = True
    local_name: Optional[str] = None
    service_uuids: List[str] = field(default_factory=list)
    rssi: Optional[int] = None
    manufacturer_data: Optional[str] = None  # hex, company id first


@dataclass(frozen=True, slots=True)
class ServiceInfo:
    """A primary GATT service found during discovery."""

    uuid: str
    handle: Optional[int] = None


@dataclass(frozen=True, slots=True)
class CharacteristicInfo:
    """A GATT characteristic tagged with its owning service.

    ``handle`` is the adapter's reference for read/write/subscribe calls, so
    two characteristics sharing a UUID in different services stay distinct.
    """

    uuid: str
    service_uuid: str
    properties: Tuple[str, ...] = ()
    handle: Optional[int] = None

    def supports(self, operation: str) -> bool:
        return operation in self.properties


@dataclass(slots=True)
class ConnectionEntry:
    """Per-peripheral session state kept by the connection manager.

    ``timestamp`` is 0 while disconnected, otherwise the monotonic time of
    the last access made while connected. ``services`` and
    ``characteristics`` stay ``None`` until the first successful discovery
    and are then kept for the life of the process.
    """

    address: str
    services: Optional[List[ServiceInfo]] = None
    characteristics: Optional[List[CharacteristicInfo]] = None
    timestamp: float = 0.0

    @property
    def has_catalog(self) -> bool:
        return self.services is not None and self.characteristics is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "timestamp": self.timestamp,
            "services": None if self.services is None else len(self.services),
            "characteristics": (
                None if self.characteristics is None else len(self.characteristics)
            ),
        }
