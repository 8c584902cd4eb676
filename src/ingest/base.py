"""Base classes and helpers shared by ingest clients."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Optional

import aiohttp

logger = logging.getLogger(__name__)


@dataclass
class BackoffConfig:
    """Delay schedule between reconnect attempts.

    A ``multiplier`` of ``1.0`` gives a fixed cadence, which is what the relay
    uses: repeated failures retry at the same interval indefinitely.
    """

    initial: float = 5.0
    maximum: float = 5.0
    multiplier: float = 1.0

    @classmethod
    def fixed(cls, delay: float) -> "BackoffConfig":
        return cls(initial=delay, maximum=delay, multiplier=1.0)

    def __iter__(self) -> Iterator[float]:
        delay = self.initial
        while True:
            yield delay
            delay = min(delay * self.multiplier, self.maximum)


class IngestClient(ABC):
    """Interface shared by ingest clients."""

    def __init__(self, name: str, backoff: Optional[BackoffConfig] = None) -> None:
        self.name = name
        self._backoff = backoff or BackoffConfig()
        self._stopped = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None
        self.attempts = 0

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    async def start(self) -> None:
        """Start the ingest client loop."""

        if self._task and not self._task.done():
            logger.debug("%s already running", self.name)
            return

        self._stopped.clear()
        self._task = asyncio.create_task(self._run_with_retries(), name=f"{self.name}-loop")

    async def stop(self) -> None:
        """Signal the client to stop and cancel the background task."""

        self._stopped.set()
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    async def _run_with_retries(self) -> None:
        delays = iter(self._backoff)
        while not self._stopped.is_set():
            self.attempts += 1
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
                logger.warning("%s connection failed: %r", self.name, exc)
            except Exception as exc:  # noqa: BLE001 - logged for operators, loop survives
                logger.exception("%s errored: %s", self.name, exc)
            if self._stopped.is_set():
                break
            delay = next(delays)
            logger.info("%s retrying in %.1fs", self.name, delay)
            await asyncio.sleep(delay)
        logger.info("%s stopped", self.name)

    @abstractmethod
    async def run_once(self) -> None:
        """Implement one full connect/run/disconnect cycle."""


__all__ = ["BackoffConfig", "IngestClient"]
