"""
Exporter configuration, as read from YAML.

Models are frozen: a reload builds a new Config and swaps it in whole.
"""

from __future__ import annotations

import ipaddress
import logging
import re
from datetime import timedelta
from typing import Any

import pydantic

from tcexporter.units import parse_duration, parse_size

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/uos-exporter/tc-exporter.yaml"

LOG_LEVELS = ("debug", "info", "warn", "error")
_INVALID_PATH_CHARS = set('<>:"|?*')

_DOMAIN_LABEL = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?$")
_INTERFACE_PATTERNS = [
    re.compile(p)
    for p in (r"^lo$", r"^eth\d+$", r"^wlan\d+$", r"^ens\d+$", r"^enp\d+s\d+$",
              r"^docker\d+$", r"^br\d+$", r"^veth[a-f0-9]+$")
]


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def _is_domain(value: str) -> bool:
    if len(value) > 253 or "." not in value:
        return False
    return all(_DOMAIN_LABEL.match(label) for label in value.split("."))


def _is_interface_name(value: str) -> bool:
    return any(p.match(value) for p in _INTERFACE_PATTERNS)


class LogConfig(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(frozen=True)

    level: str = "debug"
    log_path: str = "/var/log/tc-exporter.log"
    max_size: str = "10MB"
    max_age: timedelta = timedelta(days=7)

    @pydantic.field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        if value and value.lower() not in LOG_LEVELS:
            raise ValueError(f"invalid log level {value!r}, expected one of {', '.join(LOG_LEVELS)}")
        return value.lower()

    @pydantic.field_validator("log_path")
    @classmethod
    def _check_log_path(cls, value: str) -> str:
        if _INVALID_PATH_CHARS & set(value):
            raise ValueError(f"log path {value!r} contains invalid characters")
        return value

    @pydantic.field_validator("max_size")
    @classmethod
    def _check_max_size(cls, value: str) -> str:
        if len(value) > 20:
            raise ValueError("max_size is too long")
        if value:
            parse_size(value)
        return value

    @pydantic.field_validator("max_age", mode="before")
    @classmethod
    def _parse_max_age(cls, value: Any) -> Any:
        if isinstance(value, (str, int, float)):
            return parse_duration(value)
        return value

    @property
    def max_bytes(self) -> int:
        return parse_size(self.max_size) if self.max_size else 0


class Config(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(frozen=True, populate_by_name=True)

    log: LogConfig = pydantic.Field(default_factory=LogConfig)
    address: str = "127.0.0.1"
    port: int = 9062
    metrics_path: str = pydantic.Field(default="/metrics", alias="metricsPath")

    @pydantic.field_validator("address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        if not value:
            raise ValueError("address cannot be empty")
        if value == "localhost" or _is_ip(value) or _is_domain(value) or _is_interface_name(value):
            return value
        raise ValueError(f"invalid address {value!r}: not an IP, domain or interface name")

    @pydantic.field_validator("port")
    @classmethod
    def _check_port(cls, value: int) -> int:
        if not 1 <= value <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {value}")
        if value < 1024:
            logger.warning("Port %d is privileged and needs root to bind", value)
        return value

    @pydantic.field_validator("metrics_path")
    @classmethod
    def _check_metrics_path(cls, value: str) -> str:
        if not value:
            raise ValueError("metrics path cannot be empty")
        if not value.startswith("/"):
            raise ValueError(f"metrics path must start with '/', got {value!r}")
        if _INVALID_PATH_CHARS & set(value):
            raise ValueError(f"metrics path {value!r} contains invalid characters")
        return value

    def bind_address(self) -> str:
        return f"{self.address}:{self.port}"

    def is_localhost(self) -> bool:
        return self.address in ("localhost", "127.0.0.1", "::1")
