"""Application constants and configuration defaults.

Centralized so the settings loader, the service entry point and the tests
agree on the same values.
"""

from __future__ import annotations

# ============================================================================
# Web
# ============================================================================

DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PREFIX = "/altapi"

# ============================================================================
# BLE
# ============================================================================

DEFAULT_ADAPTER = "bleak"

# Connections are kept this long without activity (seconds)
DEFAULT_KEEP_INTERVAL = 3 * 60.0
# Idle disconnector check interval (seconds)
DEFAULT_CHECK_INTERVAL = 60.0
# Report repeated identical advertisements from the same device
DEFAULT_ALLOW_DUPLICATES = False

# Upper bounds for a single connect / discovery attempt (seconds)
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_DISCOVERY_TIMEOUT = 30.0

# ============================================================================
# Environment variable names
# ============================================================================

PORT_ENV = "BLE_GW_PORT"
HOST_ENV = "BLE_GW_HOST"
PREFIX_ENV = "BLE_GW_PREFIX"
ADAPTER_ENV = "BLE_GW_ADAPTER"
KEEP_INTERVAL_ENV = "BLE_GW_KEEP_INTERVAL"
CHECK_INTERVAL_ENV = "BLE_GW_CHECK_INTERVAL"
ALLOW_DUPLICATES_ENV = "BLE_GW_ALLOW_DUPLICATES"
CONNECT_TIMEOUT_ENV = "BLE_GW_CONNECT_TIMEOUT"
DISCOVERY_TIMEOUT_ENV = "BLE_GW_DISCOVERY_TIMEOUT"
PRECONNECT_ENV = "BLE_GW_PRECONNECT"
LOG_LEVEL_ENV = "BLE_GW_LOG_LEVEL"
VERBOSE_LOGGING_ENV = "BLE_GW_VERBOSE_LOGGING"
