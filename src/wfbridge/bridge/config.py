from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

ENV_PREFIX = "WFBRIDGE_"


@dataclass
class BridgeConfig:
    """Settings for one bridge instance."""

    host: str = "127.0.0.1"
    port: int = 0
    mcp_path: str = "/mcp"
    ws_path: str = "/ws"
    request_timeout: float = 10.0
    review_timeout: float = 120.0
    review_before_apply: bool = True
    shutdown_timeout: float = 3.0

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port must be between 0 and 65535, got {self.port}")
        for name in ("mcp_path", "ws_path"):
            if not getattr(self, name).startswith("/"):
                raise ValueError(f"{name} must start with '/'")
        if self.mcp_path == self.ws_path:
            raise ValueError("mcp_path and ws_path must differ")
        for name in ("request_timeout", "review_timeout", "shutdown_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


def parse_bridge_config(config: Mapping[str, Any]) -> BridgeConfig:
    """Build a BridgeConfig from a mapping, accepting snake_case or camelCase keys.

    Example:
    {
        "port": 3100,
        "requestTimeout": 5,
        "reviewBeforeApply": false
    }
    """
    known = {f.name: f for f in fields(BridgeConfig)}
    values: dict[str, Any] = {}
    for key, value in config.items():
        name = setting_name(key)
        if name not in known:
            raise ValueError(f"unknown bridge setting: {key}")
        values[name] = _coerce(known[name].type, value, key)
    return BridgeConfig(**values)


def config_from_env(environ: Mapping[str, str] | None = None) -> BridgeConfig:
    """Read ``WFBRIDGE_<SETTING>`` variables, e.g. ``WFBRIDGE_PORT=3100``."""
    environ = os.environ if environ is None else environ
    raw = {
        key.removeprefix(ENV_PREFIX).lower(): value
        for key, value in environ.items()
        if key.startswith(ENV_PREFIX) and key.removeprefix(ENV_PREFIX).lower() in _field_names()
    }
    return parse_bridge_config(raw)


def _field_names() -> set[str]:
    return {f.name for f in fields(BridgeConfig)}


def setting_name(key: str) -> str:
    """Map a camelCase setting key to its field name."""
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in key)


def _coerce(type_name: Any, value: Any, key: str) -> Any:
    # Field types are strings under ``from __future__ import annotations``.
    try:
        if type_name == "bool":
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered not in {"1", "0", "true", "false", "yes", "no", "on", "off"}:
                    raise ValueError(value)
                return lowered in {"1", "true", "yes", "on"}
            return bool(value)
        if type_name == "int":
            return int(value)
        if type_name == "float":
            return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid value for {key}: {value!r}") from exc
    return str(value)
