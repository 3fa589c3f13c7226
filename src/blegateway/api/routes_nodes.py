"""Node, service and item routes.

Paths are relative to the configured prefix (``/altapi`` by default):

    GET /nodes[?connectable=1]
    GET /nodes/{node}
    GET /nodes/{node}/services
    GET /nodes/{node}/services/{service}/items
    GET /nodes/{node}/services/{service}/items/{item}/value
    GET /nodes/{node}/services/{service}/items/{item}/report      (SSE)
    PUT /nodes/{node}/services/{service}/items/{item}/value/{value}[?noresponse=1]
    PUT /wakeup
    PUT /sleep
    PUT /node/{node}/open
    PUT /node/{node}/close

Notification versus indication is chosen by the gateway, and the client
characteristic configuration descriptor is handled for the caller.
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse

from ..errors import GatewayError
from ..gateway import GatewayService
from .exceptions import handle_gateway_errors, invalid_query_value

logger = logging.getLogger(__name__)

router = APIRouter(tags=["nodes"])


def _service(request: Request) -> GatewayService:
    return request.app.state.service


def _flag(name: str, value: Optional[str]) -> bool:
    """Parse ``?name=1`` style flags; absent means False."""
    if value is None or value in ("", "0"):
        return False
    if value == "1":
        return True
    raise invalid_query_value(name, value)


def _compact(value: Dict[str, Any]) -> str:
    return json.dumps(value, separators=(",", ":"))


# Query


@router.get("/nodes")
@handle_gateway_errors
async def get_nodes(request: Request, connectable: Optional[str] = None) -> List[Dict[str, Any]]:
    """List discovered nodes, all or only connectable ones."""
    only_connectable = _flag("connectable", connectable)
    logger.info("getNodes: connectable = %s", only_connectable)
    return _service(request).get_nodes(only_connectable)


@router.get("/nodes/{node}")
@handle_gateway_errors
async def get_node(request: Request, node: str) -> Dict[str, Any]:
    """Return advertised information about one node."""
    logger.info("getNode: node = %s", node)
    return _service(request).get_node(node)


@router.get("/nodes/{node}/services")
@handle_gateway_errors
async def get_services(request: Request, node: str) -> List[Dict[str, Any]]:
    """List the primary services of a node (connects if needed)."""
    logger.info("getServices: node = %s", node)
    return await _service(request).get_services(node)


@router.get("/nodes/{node}/services/{service}/items")
@handle_gateway_errors
async def get_items(request: Request, node: str, service: str) -> List[Dict[str, Any]]:
    """List the characteristics (items) of a service."""
    logger.info("getItems: %s.%s", node, service)
    return await _service(request).get_items(node, service)


# Data


@router.get("/nodes/{node}/services/{service}/items/{item}/value")
@handle_gateway_errors
async def get_item_value(request: Request, node: str, service: str, item: str) -> Dict[str, Any]:
    """Read an item and return ``{len, hex[, num][, str]}``."""
    logger.info("getItemValue: %s.%s.%s", node, service, item)
    value = await _service(request).read_value(node, service, item)
    logger.info("RES: %s", _compact(value))
    return value


@router.put("/nodes/{node}/services/{service}/items/{item}/value/{value:path}")
@handle_gateway_errors
async def put_item_value(
    request: Request,
    node: str,
    service: str,
    item: str,
    value: str,
    noresponse: Optional[str] = None,
) -> str:
    """Write a hex, ``~string`` or ``.len.int`` value to an item."""
    no_ack = _flag("noresponse", noresponse)
    logger.info("putItemValue: %s.%s.%s <= %s, noAck = %s", node, service, item, value, no_ack)
    return await _service(request).write_value(node, service, item, value, no_ack)


@router.get("/nodes/{node}/services/{service}/items/{item}/report")
@handle_gateway_errors
async def get_item_report(
    request: Request, node: str, service: str, item: str
) -> EventSourceResponse:
    """Stream value changes of an item as Server-Sent Events.

    Each notification becomes one ``data: <value json>`` event. The stream
    ends when the client goes away or the adapter reports an error.
    """
    logger.info("setupEventStream: %s.%s.%s", node, service, item)
    values = await _service(request).subscribe(node, service, item)

    async def event_generator() -> AsyncIterator[Dict[str, str]]:
        try:
            async for value in values:
                yield {"data": _compact(value)}
        except GatewayError as exc:
            logger.info("report: %s.%s.%s ended: %s", node, service, item, exc)
        finally:
            await values.aclose()

    return EventSourceResponse(
        event_generator(),
        headers={"Cache-Control": "no-cache"},
        sep="\n",
    )


# Setup


@router.put("/wakeup")
@handle_gateway_errors
async def wakeup(request: Request) -> str:
    """Start scanning."""
    logger.info("wakeup")
    await _service(request).wakeup()
    return "OK"


@router.put("/sleep")
@handle_gateway_errors
async def sleep(request: Request) -> str:
    """Stop scanning."""
    logger.info("sleep")
    await _service(request).sleep()
    return "OK"


@router.put("/node/{node}/open")
@handle_gateway_errors
async def open_node(request: Request, node: str) -> str:
    """Connect to a node ahead of use."""
    logger.info("open: %s", node)
    await _service(request).open(node)
    return "OK"


@router.put("/node/{node}/close")
@handle_gateway_errors
async def close_node(request: Request, node: str) -> str:
    """Disconnect a node now."""
    logger.info("close: %s", node)
    await _service(request).close(node)
    return "OK"
