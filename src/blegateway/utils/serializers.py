"""Serialization helpers for API responses.

These convert internal dataclasses into JSON-safe primitives.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..models import CharacteristicInfo, Node, RadioState, ServiceInfo


def node_to_dict(node: Node, state: Optional[RadioState] = None) -> Dict[str, Any]:
    """Convert a discovered node into its API representation.

    ``manufacturerData`` is present only when the node advertised it.
    """
    data: Dict[str, Any] = {
        "address": node.address,
        "addressType": node.address_type,
        "connectable": node.connectable,
        "localName": node.local_name,
        "serviceUuids": list(node.service_uuids),
        "rssi": node.rssi,
    }
    if state is not None:
        data["state"] = state.value
    if node.manufacturer_data:
        data["manufacturerData"] = node.manufacturer_data
    return data


def service_to_dict(service: ServiceInfo) -> Dict[str, Any]:
    """Convert a service into its API representation."""
    return {"uuid": service.uuid}


def characteristic_to_dict(characteristic: CharacteristicInfo) -> Dict[str, Any]:
    """Convert a characteristic ("item") into its API representation."""
    return {
        "uuid": characteristic.uuid,
        "properties": list(characteristic.properties),
    }
