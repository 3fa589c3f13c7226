"""Error types and constants for consistent error handling across the gateway."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for consistent error handling."""

    # Lookup errors
    NODE_NOT_FOUND = "node_not_found"
    CHARACTERISTIC_NOT_FOUND = "characteristic_not_found"

    # Radio errors
    CONNECT_FAILURE = "connect_failure"
    DISCOVERY_FAILURE = "discovery_failure"
    READ_FAILURE = "read_failure"
    WRITE_FAILURE = "write_failure"
    SUBSCRIBE_FAILURE = "subscribe_failure"

    # Validation errors
    INVALID_VALUE_FORMAT = "invalid_value_format"

    # Adapter errors
    ADAPTER_ERROR = "adapter_error"
    ADAPTER_DISABLED = "adapter_disabled"


class GatewayError(Exception):
    """Base exception class for gateway errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        """Initialize the gateway error.

        Args:
            code: Error code identifier
            message: Human-readable error message
            details: Additional error context and data
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class AdapterError(GatewayError):
    """Raised by a BLE adapter when the radio stack reports a failure.

    The message carries the underlying stack error text verbatim.
    """

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        code: ErrorCode = ErrorCode.ADAPTER_ERROR,
    ):
        super().__init__(code, message, cause=cause)


class AdapterDisabledError(AdapterError):
    """Raised when the gateway runs without a radio."""

    def __init__(self, operation: str):
        super().__init__(
            f"BLE adapter disabled: {operation} not available",
            code=ErrorCode.ADAPTER_DISABLED,
        )


class NodeNotFoundError(GatewayError):
    """Raised when an address was never observed by the scanner."""

    def __init__(self, address: str, details: Optional[Dict[str, Any]] = None):
        """Initialize node not found error.

        Args:
            address: Node address that was not found
            details: Additional error context
        """
        super().__init__(
            ErrorCode.NODE_NOT_FOUND,
            f"no such peripheral: {address}",
            details={"address": address, **(details or {})},
        )


class CharacteristicNotFoundError(GatewayError):
    """Raised when the catalog holds no matching characteristic."""

    def __init__(self, service_uuid: Optional[str], char_uuid: str):
        """Initialize characteristic not found error.

        Args:
            service_uuid: Owning service filter, if one was given
            char_uuid: Characteristic UUID that was looked up
        """
        super().__init__(
            ErrorCode.CHARACTERISTIC_NOT_FOUND,
            f"{service_uuid}.{char_uuid}: not found",
            details={"service": service_uuid, "item": char_uuid},
        )


class _RadioError(GatewayError):
    """Common shape for failures surfaced from the adapter."""

    code: ErrorCode

    def __init__(
        self,
        address: str,
        cause: Optional[Exception] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            message = str(cause) if cause is not None else ""
        if not message:
            message = f"{self.code.value}: {address}"
        super().__init__(
            self.code,
            message,
            details={"address": address},
            cause=cause,
        )


class ConnectFailureError(_RadioError):
    """Raised when a connection to a node cannot be established."""

    code = ErrorCode.CONNECT_FAILURE


class DiscoveryFailureError(_RadioError):
    """Raised when service/characteristic discovery fails."""

    code = ErrorCode.DISCOVERY_FAILURE


class ReadFailureError(_RadioError):
    """Raised when a characteristic read fails."""

    code = ErrorCode.READ_FAILURE


class WriteFailureError(_RadioError):
    """Raised when a characteristic write fails."""

    code = ErrorCode.WRITE_FAILURE


class SubscribeFailureError(_RadioError):
    """Raised when a subscription cannot be set up or is interrupted."""

    code = ErrorCode.SUBSCRIBE_FAILURE


class InvalidValueFormatError(GatewayError):
    """Raised when a request value matches none of the textual encodings."""

    def __init__(self, value: Optional[str]):
        """Initialize invalid value format error.

        Args:
            value: The rejected request value
        """
        super().__init__(
            ErrorCode.INVALID_VALUE_FORMAT,
            f"invalid value: {value!r}",
            details={"value": value},
        )
