"""Periodic eviction of idle connections.

Each sweep disconnects every peripheral whose connection has gone unused
for longer than the keep-alive threshold. The adapter's disconnect
notification, not the sweep, resets the entry's timestamp. Failed
disconnects are logged and left for the next sweep.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional

from .adapters.base import BleAdapter
from .connections import ConnectionManager
from .errors import AdapterError
from .models import ConnectionEntry, RadioState
from .registry import DeviceRegistry

logger = logging.getLogger(__name__)


def is_stale(entry: ConnectionEntry, now: float, keep_alive: float) -> bool:
    """True if ``entry`` is connected and unused for more than ``keep_alive``."""
    return entry.timestamp != 0 and now - entry.timestamp > keep_alive


class IdleDisconnector:
    """Background task sweeping the connection cache on a fixed interval."""

    def __init__(
        self,
        connections: ConnectionManager,
        registry: DeviceRegistry,
        adapter: BleAdapter,
        *,
        keep_alive: float,
        check_interval: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._connections = connections
        self._registry = registry
        self._adapter = adapter
        self._keep_alive = keep_alive
        self._check_interval = check_interval
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep(self, now: Optional[float] = None) -> List[str]:
        """Disconnect stale peripherals.

        Returns:
            Addresses a disconnect was requested for (successful or not).
        """
        if now is None:
            now = self._clock()
        requested: List[str] = []
        for entry in self._connections.entries():
            if not is_stale(entry, now, self._keep_alive):
                continue
            node = self._registry.find(entry.address)
            if node is None:
                logger.warning("disconnector: no peripheral found for %s", entry.address)
                continue
            state = self._adapter.radio_state(node.address)
            logger.info("disconnector: stale %s (%s)", node.address, state.value)
            if state is not RadioState.CONNECTED:
                continue
            requested.append(node.address)
            try:
                await self._adapter.disconnect(node.address)
            except AdapterError as exc:
                logger.warning("disconnector: %s: %s", node.address, exc)
            except Exception as exc:
                logger.warning("disconnector: %s failed unexpectedly: %s", node.address, exc)
            else:
                logger.info("disconnector: %s done", node.address)
        return requested

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._check_interval)
                logger.debug("disconnector: called")
                try:
                    await self.sweep()
                except Exception:  # pragma: no cover - runtime diagnostics
                    logger.exception("disconnector: sweep failed, retrying next interval")
        except asyncio.CancelledError:
            logger.info("Idle disconnector cancelled")
            raise
        except Exception:  # pragma: no cover - runtime diagnostics
            logger.exception("Idle disconnector failed unexpectedly")

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(
            "Idle disconnector scheduled: keep_alive=%.0fs, interval=%.0fs",
            self._keep_alive,
            self._check_interval,
        )

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("Idle disconnector task cancelled during stop()")
