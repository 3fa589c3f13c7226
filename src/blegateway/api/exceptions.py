"""Exception handling utilities for API routes.

Maps gateway errors to HTTP responses. Adapter messages are passed through
verbatim in ``detail``.
"""

import functools
import logging
from typing import Any, Callable, TypeVar, cast

from fastapi import HTTPException

from ..errors import AdapterDisabledError, ErrorCode, GatewayError

logger = logging.getLogger(__name__)

# TypeVar for wrapping async functions
F = TypeVar("F", bound=Callable[..., Any])

_STATUS_BY_CODE = {
    ErrorCode.NODE_NOT_FOUND: 404,
    ErrorCode.CHARACTERISTIC_NOT_FOUND: 404,
    ErrorCode.INVALID_VALUE_FORMAT: 422,
    ErrorCode.CONNECT_FAILURE: 502,
    ErrorCode.DISCOVERY_FAILURE: 502,
    ErrorCode.READ_FAILURE: 502,
    ErrorCode.WRITE_FAILURE: 502,
    ErrorCode.SUBSCRIBE_FAILURE: 502,
    ErrorCode.ADAPTER_ERROR: 502,
    ErrorCode.ADAPTER_DISABLED: 503,
}


def status_for(exc: GatewayError) -> int:
    """Return the HTTP status code for a gateway error."""
    if isinstance(exc, AdapterDisabledError) or isinstance(exc.cause, AdapterDisabledError):
        return 503
    return _STATUS_BY_CODE.get(exc.code, 500)


def gateway_http_error(exc: GatewayError) -> HTTPException:
    """Create an HTTPException carrying the gateway error message.

    Args:
        exc: Error raised by the gateway service

    Returns:
        HTTPException with the mapped status and the message as detail
    """
    return HTTPException(status_code=status_for(exc), detail=exc.message)


def invalid_query_value(name: str, value: str) -> HTTPException:
    """Create a standardized 422 error for a malformed query parameter.

    Args:
        name: Query parameter name
        value: Rejected value

    Returns:
        HTTPException with 422 status
    """
    return HTTPException(status_code=422, detail=f"Invalid {name}: {value!r}")


def handle_gateway_errors(func: F) -> F:
    """Decorator for consistent error handling across API endpoints.

    - HTTPException: Pass through (already formatted for response)
    - GatewayError: Mapped through ``gateway_http_error``

    Usage:
        @router.get("/nodes/{node}")
        @handle_gateway_errors
        async def get_node(request: Request, node: str):
            ...
    """

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except HTTPException:
            raise
        except GatewayError as e:
            logger.info(f"{func.__name__}: {e.code.value}: {e.message}")
            raise gateway_http_error(e) from e

    return cast(F, wrapper)
