"""Single-consumer channel carrying envelopes from the ingest paths to delivery."""

from __future__ import annotations

import asyncio
import logging
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class DeliveryChannel(Generic[T]):
    """FIFO hand-off between the publishers and the one delivery task.

    The stream handler and the poller both publish here. Items queued before
    the consumer starts are kept, so nothing is lost during startup.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=maxsize)
        self.published = 0
        self.closed = False

    async def publish(self, item: T) -> None:
        if self.closed:
            logger.debug("Channel closed; dropping %r", item)
            return
        await self._queue.put(item)
        self.published += 1

    async def get(self) -> T:
        return await self._queue.get()

    def get_nowait(self) -> T:
        return self._queue.get_nowait()

    def task_done(self) -> None:
        self._queue.task_done()

    def empty(self) -> bool:
        return self._queue.empty()

    @property
    def backlog(self) -> int:
        """Items published but not yet taken by the consumer."""

        return self._queue.qsize()

    async def close(self) -> int:
        """Refuse further items and discard whatever is still queued."""

        self.closed = True
        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            dropped += 1
        if dropped:
            logger.warning("Discarded %d undelivered envelopes on shutdown", dropped)
        return dropped


__all__ = ["DeliveryChannel"]
