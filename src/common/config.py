"""Configuration loading: YAML file with environment expansion plus env overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import AnyHttpUrl, BaseModel, Field, TypeAdapter, ValidationError, field_validator

DEFAULT_WS_URL = "wss://api.hyperliquid.xyz/ws"
DEFAULT_INFO_URL = "https://api.hyperliquid.xyz/info"

_HTTP_URL = TypeAdapter(AnyHttpUrl)

# Relay setting -> environment variable names, first one set wins.
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "addresses": ("ADDRESSES",),
    "webhook_url": ("N8N_WEBHOOK", "WEBHOOK_URL"),
    "ws_url": ("HYPERLIQUID_WS_URL",),
    "info_url": ("HYPERLIQUID_INFO_URL",),
    "heartbeat_ms": ("HEARTBEAT_MS",),
    "reconnect_ms": ("RECONNECT_MS",),
    "keepalive_ms": ("APP_PING_MS",),
    "poll_ms": ("POLL_MS",),
    "lookback_ms": ("POLL_LOOKBACK_MS",),
    "sweep_ms": ("SWEEP_MS",),
    "http_timeout_ms": ("HTTP_TIMEOUT_MS",),
    "status_host": ("STATUS_HOST",),
    "status_port": ("PORT", "STATUS_PORT"),
}


class ConfigError(ValueError):
    """Raised when the relay cannot start with the supplied settings."""


def load_config(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Load a YAML configuration file and expand environment variables.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Parsed configuration dictionary. Returns an empty dict if the file is
        empty.
    """

    config_path = Path(path)
    raw_text = config_path.read_text()
    expanded = os.path.expandvars(raw_text)
    data = yaml.safe_load(expanded) or {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config root must be a mapping, got {type(data)!r}")
    return dict(data)


class RelayConfig(BaseModel):
    """Validated settings for one relay process."""

    addresses: list[str] = Field(..., description="Tracked account addresses")
    webhook_url: str = Field(..., description="Downstream delivery URL")
    ws_url: str = DEFAULT_WS_URL
    info_url: str = DEFAULT_INFO_URL
    heartbeat_ms: int = Field(20_000, gt=0)
    reconnect_ms: int = Field(5_000, gt=0)
    keepalive_ms: int = Field(50_000, gt=0)
    poll_ms: int = Field(30_000, gt=0)
    lookback_ms: int = Field(15 * 60 * 1000, gt=0)
    sweep_ms: int = Field(5 * 60 * 1000, gt=0)
    http_timeout_ms: int = Field(10_000, gt=0)
    status_host: str = "0.0.0.0"
    status_port: int = Field(8080, ge=0, le=65535)

    @field_validator("addresses", mode="before")
    @classmethod
    def _split_addresses(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple)):
            return [str(item).strip() for item in value if str(item).strip()]
        return value

    @field_validator("addresses")
    @classmethod
    def _require_addresses(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one account address is required (ADDRESSES)")
        return value

    @field_validator("webhook_url")
    @classmethod
    def _require_webhook(cls, value: str) -> str:
        value = value.strip()
        if not value or "${" in value:
            raise ValueError("delivery URL is required (N8N_WEBHOOK)")
        try:
            _HTTP_URL.validate_python(value)
        except ValidationError as exc:
            raise ValueError(f"delivery URL is not an http(s) URL: {value!r}") from exc
        return value

    @property
    def heartbeat_interval(self) -> float:
        return self.heartbeat_ms / 1000.0

    @property
    def reconnect_delay(self) -> float:
        return self.reconnect_ms / 1000.0

    @property
    def keepalive_interval(self) -> float:
        return self.keepalive_ms / 1000.0

    @property
    def poll_interval(self) -> float:
        return self.poll_ms / 1000.0

    @property
    def sweep_interval(self) -> float:
        return self.sweep_ms / 1000.0

    @property
    def http_timeout(self) -> float:
        return self.http_timeout_ms / 1000.0


def _env_value(environ: Mapping[str, str], names: tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = environ.get(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def build_relay_config(
    raw: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> RelayConfig:
    """Merge the ``relay`` section of ``raw`` with environment overrides.

    Raises:
        ConfigError: when required settings are missing or invalid.
    """

    environ = os.environ if environ is None else environ
    section = (raw or {}).get("relay") or {}
    if not isinstance(section, Mapping):
        raise ConfigError("'relay' config section must be a mapping")

    values: dict[str, Any] = dict(section)
    for key, names in ENV_OVERRIDES.items():
        override = _env_value(environ, names)
        if override is not None:
            values[key] = override
    values.setdefault("addresses", [])
    values.setdefault("webhook_url", "")

    try:
        return RelayConfig.model_validate(values)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'config'}: {error['msg']}"
            for error in exc.errors()
        )
        raise ConfigError(f"Invalid relay configuration: {problems}") from exc


__all__ = [
    "ConfigError",
    "DEFAULT_INFO_URL",
    "DEFAULT_WS_URL",
    "ENV_OVERRIDES",
    "RelayConfig",
    "build_relay_config",
    "load_config",
]
