"""Disabled BLE adapter - no radio.

Useful for exercising the HTTP surface on hosts without Bluetooth hardware:
no node is ever discovered and every radio operation fails.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, List, Sequence, Tuple

from ..errors import AdapterDisabledError
from ..models import CharacteristicInfo, RadioState, ServiceInfo
from .base import BleAdapter, DisconnectObserver

logger = logging.getLogger(__name__)


class DisabledAdapter(BleAdapter):
    """Adapter stub - scanning is a no-op, radio calls raise."""

    name = "disabled"

    @property
    def scanning(self) -> bool:
        return False

    async def start_scan(self, service_uuids: Sequence[str], allow_duplicates: bool) -> None:
        logger.info("BLE disabled - scan skipped")

    async def stop_scan(self) -> None:
        logger.debug("BLE disabled - stop scan skipped")

    def radio_state(self, address: str) -> RadioState:
        return RadioState.DISCONNECTED

    async def connect(self, address: str) -> None:
        raise AdapterDisabledError("connect")

    def add_disconnect_observer(self, address: str, observer: DisconnectObserver) -> None:
        return None

    async def discover(self, address: str) -> Tuple[List[ServiceInfo], List[CharacteristicInfo]]:
        raise AdapterDisabledError("discover")

    async def read(self, address: str, characteristic: CharacteristicInfo) -> bytes:
        raise AdapterDisabledError("read")

    async def write(
        self,
        address: str,
        characteristic: CharacteristicInfo,
        data: bytes,
        no_ack: bool,
    ) -> None:
        raise AdapterDisabledError("write")

    async def subscribe(
        self, address: str, characteristic: CharacteristicInfo
    ) -> AsyncIterator[bytes]:
        raise AdapterDisabledError("subscribe")
        yield b""  # pragma: no cover

    async def disconnect(self, address: str) -> None:
        raise AdapterDisabledError("disconnect")
