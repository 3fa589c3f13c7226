"""Gateway settings read from the environment."""

from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import constants as c
from .adapters import ADAPTER_NAMES
from .utils.env import get_env_bool, get_env_float, get_env_int, get_env_list, get_env_str

logger = logging.getLogger(__name__)


class GatewaySettings(BaseModel):
    """Runtime configuration of the gateway."""

    model_config = ConfigDict(validate_assignment=True)

    port: int = Field(c.DEFAULT_PORT, ge=1, le=65535)
    host: str = c.DEFAULT_HOST
    prefix: str = c.DEFAULT_PREFIX
    adapter: str = c.DEFAULT_ADAPTER
    keep_interval: float = Field(c.DEFAULT_KEEP_INTERVAL, ge=0)
    check_interval: float = Field(c.DEFAULT_CHECK_INTERVAL, gt=0)
    allow_duplicates: bool = c.DEFAULT_ALLOW_DUPLICATES
    connect_timeout: Optional[float] = c.DEFAULT_CONNECT_TIMEOUT
    discovery_timeout: Optional[float] = c.DEFAULT_DISCOVERY_TIMEOUT
    preconnect: List[str] = Field(default_factory=list)

    @field_validator("prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        """One leading slash, no trailing slash; '' mounts at the root."""
        stripped = value.strip().strip("/")
        return f"/{stripped}" if stripped else ""

    @field_validator("adapter")
    @classmethod
    def _known_adapter(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in ADAPTER_NAMES:
            raise ValueError(f"unknown adapter '{value}', expected one of {ADAPTER_NAMES}")
        return normalized

    @field_validator("connect_timeout", "discovery_timeout")
    @classmethod
    def _non_positive_disables(cls, value: Optional[float]) -> Optional[float]:
        return value if value is not None and value > 0 else None

    @classmethod
    def from_env(cls) -> "GatewaySettings":
        """Build settings from ``BLE_GW_*`` variables, falling back to defaults."""
        check_interval = get_env_float(c.CHECK_INTERVAL_ENV, c.DEFAULT_CHECK_INTERVAL)
        if check_interval <= 0:
            logger.warning(
                "Invalid check interval %s; using default %s",
                check_interval,
                c.DEFAULT_CHECK_INTERVAL,
            )
            check_interval = c.DEFAULT_CHECK_INTERVAL
        return cls(
            port=get_env_int(c.PORT_ENV, c.DEFAULT_PORT),
            host=get_env_str(c.HOST_ENV, c.DEFAULT_HOST),
            prefix=get_env_str(c.PREFIX_ENV, c.DEFAULT_PREFIX),
            adapter=get_env_str(c.ADAPTER_ENV, c.DEFAULT_ADAPTER),
            keep_interval=get_env_float(c.KEEP_INTERVAL_ENV, c.DEFAULT_KEEP_INTERVAL),
            check_interval=check_interval,
            allow_duplicates=get_env_bool(c.ALLOW_DUPLICATES_ENV, c.DEFAULT_ALLOW_DUPLICATES),
            connect_timeout=get_env_float(c.CONNECT_TIMEOUT_ENV, c.DEFAULT_CONNECT_TIMEOUT),
            discovery_timeout=get_env_float(
                c.DISCOVERY_TIMEOUT_ENV, c.DEFAULT_DISCOVERY_TIMEOUT
            ),
            preconnect=get_env_list(c.PRECONNECT_ENV),
        )
