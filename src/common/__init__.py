"""Common utilities shared across the account relay."""

from .channel import DeliveryChannel  # noqa: F401
from .config import ConfigError, RelayConfig, build_relay_config, load_config  # noqa: F401
from .logging import setup_logging  # noqa: F401
from .models import Envelope, EventKind, NormalizedEvent  # noqa: F401

__all__ = [
    "ConfigError",
    "DeliveryChannel",
    "Envelope",
    "EventKind",
    "NormalizedEvent",
    "RelayConfig",
    "build_relay_config",
    "load_config",
    "setup_logging",
]
