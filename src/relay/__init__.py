"""Core relay state: event normalisation, dedup, and the shared relay context."""

from .context import ConnectionState, RelayContext, RelayStats, WatermarkTable  # noqa: F401
from .dedup import CacheSweeper, DedupCache, fingerprint  # noqa: F401
from .normalize import is_pong, is_subscription_ack, normalize_message  # noqa: F401

__all__ = [
    "CacheSweeper",
    "ConnectionState",
    "DedupCache",
    "RelayContext",
    "RelayStats",
    "WatermarkTable",
    "fingerprint",
    "is_pong",
    "is_subscription_ack",
    "normalize_message",
]
