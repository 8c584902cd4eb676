"""Process-wide relay state passed explicitly to every component."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from common.channel import DeliveryChannel
from common.config import RelayConfig
from common.models import Envelope

from .dedup import DedupCache

logger = logging.getLogger(__name__)

Number = Union[int, float]


class ConnectionState(str, Enum):
    """Lifecycle states of the streaming connection."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class WatermarkTable:
    """Last observed fill time per account. Values only ever move forward."""

    def __init__(self) -> None:
        self._marks: dict[str, Number] = {}

    def __len__(self) -> int:
        return len(self._marks)

    def __contains__(self, address: object) -> bool:
        return address in self._marks

    def get(self, address: str) -> Optional[Number]:
        return self._marks.get(address)

    def advance(self, address: str, observed: Number) -> Number:
        """Move the watermark to ``max(current, observed)`` and return it."""

        current = self._marks.get(address)
        if current is None or observed > current:
            self._marks[address] = observed
            return observed
        return current

    def seed(self, address: str, since: Number) -> bool:
        """Set an initial watermark; returns ``False`` if one already exists."""

        if address in self._marks:
            return False
        self._marks[address] = since
        return True

    def snapshot(self) -> dict[str, Number]:
        return dict(self._marks)


@dataclass
class RelayStats:
    """Operational counters surfaced by the status endpoint."""

    stream_messages: int = 0
    parse_errors: int = 0
    acks: int = 0
    stream_events: int = 0
    poll_cycles: int = 0
    poll_errors: int = 0
    poll_events: int = 0
    suppressed: int = 0
    delivered: int = 0
    delivery_failures: int = 0
    reconnects: int = 0

    def as_dict(self) -> dict[str, int]:
        return dict(self.__dict__)


@dataclass
class RelayContext:
    """Shared cache, watermark table, delivery channel and connection handle.

    Stream handler and poller receive the same instance, which makes the dedup
    cache the single synchronisation point between the two paths.
    """

    config: RelayConfig
    cache: DedupCache = field(default_factory=DedupCache)
    watermarks: WatermarkTable = field(default_factory=WatermarkTable)
    channel: DeliveryChannel[Envelope] = field(default_factory=DeliveryChannel)
    stats: RelayStats = field(default_factory=RelayStats)
    connection: Optional[Any] = None
    connection_state: ConnectionState = ConnectionState.CLOSED

    @property
    def connected(self) -> bool:
        return self.connection is not None and self.connection_state is ConnectionState.OPEN

    def set_connection_state(self, state: ConnectionState) -> None:
        if state is not self.connection_state:
            logger.debug("Stream connection %s -> %s", self.connection_state.value, state.value)
        self.connection_state = state

    async def forward(self, envelope: Envelope) -> bool:
        """Publish ``envelope`` for delivery unless its event is a duplicate."""

        if not self.cache.should_emit(envelope.event):
            self.stats.suppressed += 1
            return False
        await self.channel.publish(envelope)
        return True


__all__ = [
    "ConnectionState",
    "RelayContext",
    "RelayStats",
    "WatermarkTable",
]
