"""Delivery task draining the relay channel into the webhook sink."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from common.channel import DeliveryChannel
from common.models import Envelope
from relay.context import RelayStats

logger = logging.getLogger(__name__)


class Sink(Protocol):
    async def deliver(self, envelope: Envelope) -> bool: ...


class DeliveryDispatcher:
    """Consume envelopes in publish order and hand them to ``sink`` one at a time."""

    def __init__(self, channel: DeliveryChannel[Envelope], sink: Sink, stats: RelayStats) -> None:
        self._channel = channel
        self._sink = sink
        self._stats = stats
        self._task: asyncio.Task[None] | None = None

    def start(self) -> asyncio.Task[None]:
        if self._task is not None:
            raise RuntimeError("DeliveryDispatcher already running")
        self._task = asyncio.create_task(self._run(), name="delivery-dispatcher")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            envelope = await self._channel.get()
            try:
                await self._dispatch(envelope)
            except Exception:
                # Keep draining when the sink raises.
                self._stats.delivery_failures += 1
                logger.exception("Sink raised while delivering %s event", envelope.event.kind.value)
            finally:
                self._channel.task_done()

    async def _dispatch(self, envelope: Envelope) -> None:
        if await self._sink.deliver(envelope):
            self._stats.delivered += 1
            logger.debug(
                "Delivered %s %s event for %s",
                envelope.source,
                envelope.event.kind.value,
                envelope.event.address,
            )
        else:
            self._stats.delivery_failures += 1


__all__ = ["DeliveryDispatcher", "Sink"]
