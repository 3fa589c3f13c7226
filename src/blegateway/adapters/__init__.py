"""BLE adapter backends.

Backends are selected by name (``BLE_GW_ADAPTER``):

- ``bleak``: local Bluetooth stack through bleak
- ``disabled``: no radio (for running without Bluetooth hardware)
"""

from __future__ import annotations

import logging

from .base import BleAdapter, DisconnectObserver, DiscoveryHandler

logger = logging.getLogger(__name__)

ADAPTER_NAMES = ("bleak", "disabled")


def create_adapter(name: str) -> BleAdapter:
    """Create the adapter backend registered under ``name``.

    Raises:
        ValueError: If no backend has that name
    """
    normalized = name.strip().lower()
    if normalized == "bleak":
        from .bleak_adapter import BleakAdapter

        adapter: BleAdapter = BleakAdapter()
    elif normalized == "disabled":
        from .disabled import DisabledAdapter

        adapter = DisabledAdapter()
    else:
        raise ValueError(f"Unknown BLE adapter '{name}'; expected one of {ADAPTER_NAMES}")
    logger.info("Created %s BLE adapter", adapter.name)
    return adapter


__all__ = [
    "ADAPTER_NAMES",
    "BleAdapter",
    "DisconnectObserver",
    "DiscoveryHandler",
    "create_adapter",
]
