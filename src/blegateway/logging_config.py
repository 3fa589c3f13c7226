"""Unified logging configuration for the gateway.

All log entries, from the gateway and from uvicorn, share one timestamped
format.

Usage:
    At application startup:
    >>> from blegateway.logging_config import configure_logging
    >>> configure_logging()

    When starting uvicorn:
    >>> from blegateway.logging_config import get_uvicorn_log_config
    >>> uvicorn.run(app, log_config=get_uvicorn_log_config())

Configuration:
    - Log level: BLE_GW_LOG_LEVEL (default: INFO)
    - Access logs: shown only when BLE_GW_VERBOSE_LOGGING is set
    - Format: "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"
    - Date format: "%Y-%m-%d %H:%M:%S"
"""

import logging
import logging.config
import os
from typing import Any, Dict

from .constants import LOG_LEVEL_ENV, VERBOSE_LOGGING_ENV

LOG_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_log_level() -> str:
    """Get the log level from environment variable with fallback."""
    return (os.getenv(LOG_LEVEL_ENV, "INFO") or "INFO").upper()


def get_logging_config() -> Dict[str, Any]:
    """Generate a unified logging configuration dictionary.

    Request/response lines of the gateway itself are logged by the
    ``blegateway`` logger; uvicorn's access log only appears in verbose mode.
    """
    log_level = get_log_level()

    verbose_logging = os.getenv(VERBOSE_LOGGING_ENV, "false").lower() in ("true", "1", "yes")
    access_log_level = log_level if verbose_logging else "WARNING"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": LOG_FORMAT,
                "datefmt": DATE_FORMAT,
            },
            "access": {
                "format": LOG_FORMAT,
                "datefmt": DATE_FORMAT,
            },
        },
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
            },
            "access": {
                "formatter": "access",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "uvicorn": {
                "handlers": ["default"],
                "level": log_level,
                "propagate": False,
            },
            "uvicorn.error": {
                "handlers": ["default"],
                "level": log_level,
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["access"],
                "level": access_log_level,
                "propagate": False,
            },
            "blegateway": {
                "handlers": ["default"],
                "level": log_level,
                "propagate": False,
            },
            # bleak is chatty at DEBUG; follow the gateway level but never below INFO
            "bleak": {
                "handlers": ["default"],
                "level": "INFO" if log_level == "DEBUG" else log_level,
                "propagate": False,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["default"],
        },
    }


def configure_logging() -> None:
    """Configure logging for the entire application.

    This should be called once at application startup, before any other
    logging configuration or logger creation.
    """
    logging.config.dictConfig(get_logging_config())


def get_uvicorn_log_config() -> Dict[str, Any]:
    """Get uvicorn-specific log configuration."""
    return get_logging_config()
