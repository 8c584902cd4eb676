"""Outbound delivery of relayed envelopes to the downstream consumer."""

from .dispatcher import DeliveryDispatcher  # noqa: F401
from .webhook import WebhookSink  # noqa: F401

__all__ = ["DeliveryDispatcher", "WebhookSink"]
