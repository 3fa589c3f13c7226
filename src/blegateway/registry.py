"""Registry of peripherals reported by the scanner.

Entries are keyed by normalized address. A record is overwritten every time
its address is advertised again, including identical re-advertisements, and
is never removed for the life of the process.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .models import Node
from .utils.address import normalize

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """Append-or-update store of discovered nodes."""

    def __init__(self) -> None:
        # dicts keep insertion order, so listings follow first discovery
        self._nodes: Dict[str, Node] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def upsert(self, node: Node) -> bool:
        """Insert or overwrite the record for ``node.address``.

        Returns:
            True if the address was not known before.
        """
        key = normalize(node.address)
        added = key not in self._nodes
        self._nodes[key] = node
        if added:
            logger.info("discover: add %s (%s)", node.address, node.local_name or "-")
        else:
            logger.debug("discover: update %s", node.address)
        return added

    def list(self, connectable_only: bool = False) -> List[Node]:
        """Return all nodes, or only those advertising as connectable."""
        nodes = list(self._nodes.values())
        if connectable_only:
            return [node for node in nodes if node.connectable]
        return nodes

    def find(self, address: str) -> Optional[Node]:
        """Return the node for ``address`` in any case/separator spelling."""
        return self._nodes.get(normalize(address))
