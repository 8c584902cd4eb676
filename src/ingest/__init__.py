"""Inbound paths: the Hyperliquid user stream and the REST fill poller.

Both push envelopes through the shared relay context, whose dedup cache
decides what reaches the delivery channel.
"""

from .base import BackoffConfig, IngestClient  # noqa: F401
from .hyperliquid import HyperliquidAccountStream, build_subscriptions  # noqa: F401
from .poller import HyperliquidFillPoller, PollError  # noqa: F401

__all__ = [
    "BackoffConfig",
    "HyperliquidAccountStream",
    "HyperliquidFillPoller",
    "IngestClient",
    "PollError",
    "build_subscriptions",
]
