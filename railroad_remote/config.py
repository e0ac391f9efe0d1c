"""Controller configuration loading.

Configuration is a small YAML mapping, either at the top level of the file
or nested under a ``controller:`` key::

    controller:
      host: 192.168.0.27
      port: 15471
      reconnect_delay: 5
      request_timeout: 10
      update_policy: optimistic
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from .framing import DEFAULT_MAX_BUFFER_SIZE
from .models import UpdatePolicy
from .protocol import DEFAULT_PORT
from .transport.tcp_client import DEFAULT_READ_SIZE


class ConfigError(ValueError):
    """Configuration file is missing or invalid."""


@dataclass(frozen=True)
class ControllerConfig:
    """Connection and behavior settings for one controller.

    Attributes:
        host: Controller hostname or IP.
        port: Controller TCP port.
        connect_timeout: Connection attempt timeout in seconds.
        reconnect_delay: Fixed delay between reconnect attempts in seconds.
        request_timeout: Reply wait in seconds, None waits forever.
        max_buffer_size: Cap on unterminated reply text, None disables.
        read_size: Maximum bytes per socket read.
        update_policy: Whether control state is applied before confirmation.
        reset_functions_on_stop: Clear function flags locally on killswitch stop.
    """

    host: str
    port: int = DEFAULT_PORT
    connect_timeout: float = 5.0
    reconnect_delay: float = 5.0
    request_timeout: float | None = 10.0
    max_buffer_size: int | None = DEFAULT_MAX_BUFFER_SIZE
    read_size: int = DEFAULT_READ_SIZE
    update_policy: UpdatePolicy = UpdatePolicy.OPTIMISTIC
    reset_functions_on_stop: bool = True

    def __post_init__(self) -> None:
        if not self.host:
            raise ConfigError("host is required")
        if not 0 < self.port < 65536:
            raise ConfigError(f"port must be 1-65535, got {self.port}")
        if self.connect_timeout <= 0:
            raise ConfigError("connect_timeout must be positive")
        if self.reconnect_delay < 0:
            raise ConfigError("reconnect_delay must not be negative")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive or null")
        if self.max_buffer_size is not None and self.max_buffer_size <= 0:
            raise ConfigError("max_buffer_size must be positive or null")
        if self.read_size <= 0:
            raise ConfigError("read_size must be positive")

    def session_options(self) -> dict[str, Any]:
        """Keyword arguments for RailroadSession."""
        return {
            "connect_timeout": self.connect_timeout,
            "reconnect_delay": self.reconnect_delay,
            "request_timeout": self.request_timeout,
            "max_buffer_size": self.max_buffer_size,
            "read_size": self.read_size,
        }


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file with error handling."""
    if not path.exists():
        raise ConfigError(f"File not found: {path}")
    with path.open() as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping in {path}")
    return data


_INT_KEYS = frozenset({"port", "max_buffer_size", "read_size"})
_NUMBER_KEYS = frozenset({"connect_timeout", "reconnect_delay", "request_timeout"})
_NULLABLE_KEYS = frozenset({"request_timeout", "max_buffer_size"})


def _check_type(key: str, value: Any) -> None:
    """Reject values YAML parsed into the wrong type for ``key``."""
    if value is None and key in _NULLABLE_KEYS:
        return
    if key in _INT_KEYS:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{key} must be an integer, got {value!r}")
    elif key in _NUMBER_KEYS:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{key} must be a number, got {value!r}")
    elif key == "reset_functions_on_stop" and not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false, got {value!r}")


def config_from_dict(data: dict[str, Any]) -> ControllerConfig:
    """Build a ControllerConfig from a plain mapping."""
    section = data.get("controller", data)
    if not isinstance(section, dict):
        raise ConfigError("controller section must be a mapping")

    known = {f.name for f in fields(ControllerConfig)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

    values = dict(section)
    host = values.get("host")
    if host is None or host == "":
        raise ConfigError("host is required")
    if not isinstance(host, str) or not host.strip():
        raise ConfigError(f"host must be a hostname or IP string, got {host!r}")
    values["host"] = host.strip()

    for key, value in values.items():
        _check_type(key, value)

    if "update_policy" in values:
        try:
            values["update_policy"] = UpdatePolicy(values["update_policy"])
        except ValueError as err:
            raise ConfigError(
                f"update_policy must be one of "
                f"{[policy.value for policy in UpdatePolicy]}"
            ) from err

    return ControllerConfig(**values)


def load_config(path: str | Path) -> ControllerConfig:
    """Load controller configuration from a YAML file.

    Raises:
        ConfigError: If the file is missing or holds invalid settings.
    """
    return config_from_dict(_load_yaml(Path(path)))
