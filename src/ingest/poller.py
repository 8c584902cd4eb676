"""Watermark-tracked REST polling that backfills fills the stream may have missed."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional

import aiohttp

from common.models import Envelope, EventKind, FillEvent
from relay.context import RelayContext
from relay.normalize import preserve_source_kind

from .base import BackoffConfig, IngestClient

logger = logging.getLogger(__name__)

FILLS_REQUEST_TYPE = "userFills"


class PollError(RuntimeError):
    """Raised when one account's fill query cannot be used."""


class HyperliquidFillPoller(IngestClient):
    """Query recent fills per account on a fixed cadence, whatever the stream is doing."""

    def __init__(
        self,
        context: RelayContext,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        config = context.config
        super().__init__(
            name="hyperliquid-poller",
            backoff=BackoffConfig.fixed(config.poll_interval),
        )
        self.context = context
        self.info_url = config.info_url
        self.addresses = list(config.addresses)
        self.poll_interval = config.poll_interval
        self.lookback_ms = config.lookback_ms
        self._timeout = aiohttp.ClientTimeout(total=config.http_timeout)
        self._session = session
        self._clock = clock

    async def run_once(self) -> None:
        session = self._session or aiohttp.ClientSession(timeout=self._timeout)
        try:
            while not self.stopped:
                await self.poll_cycle(session)
                await asyncio.sleep(self.poll_interval)
        finally:
            if self._session is None:
                await session.close()

    async def poll_cycle(self, session: aiohttp.ClientSession) -> int:
        """Poll every account once and return the number of events forwarded."""

        forwarded = 0
        for address in self.addresses:
            try:
                forwarded += await self.poll_account(session, address)
            except asyncio.CancelledError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError, PollError, ValueError) as exc:
                self.context.stats.poll_errors += 1
                logger.warning("Fill poll failed for %s: %s", address, exc)
        self.context.stats.poll_cycles += 1
        self.context.cache.sweep()
        return forwarded

    async def poll_account(self, session: aiohttp.ClientSession, address: str) -> int:
        watermarks = self.context.watermarks
        since = watermarks.get(address)
        if since is None:
            since = int(self._clock() * 1000) - self.lookback_ms

        fills = await self._fetch_fills(session, address, since)
        if not fills and address not in watermarks:
            watermarks.seed(address, since)
            return 0

        received_at = int(self._clock() * 1000)
        forwarded = 0
        for fill in fills:
            record = dict(fill)
            preserve_source_kind(record, EventKind.FILL)
            record["address"] = address
            event = FillEvent.model_validate(record)
            envelope = Envelope(source="poll", received_at=received_at, event=event)
            if await self.context.forward(envelope):
                forwarded += 1
            fill_time = _as_time(event.time)
            if fill_time is not None:
                watermarks.advance(address, fill_time)

        self.context.stats.poll_events += forwarded
        if forwarded:
            logger.info("Poll recovered %d fills for %s", forwarded, address)
        return forwarded

    async def _fetch_fills(
        self, session: aiohttp.ClientSession, address: str, since: int | float
    ) -> list[dict[str, Any]]:
        body = {"type": FILLS_REQUEST_TYPE, "user": address, "startTime": int(since)}
        async with session.post(self.info_url, json=body, timeout=self._timeout) as resp:
            if resp.status >= 400:
                text = await resp.text(errors="replace")
                raise PollError(f"HTTP {resp.status}: {text[:200]}")
            data = await resp.json(content_type=None)

        if isinstance(data, dict):
            data = data.get("fills")
        if not isinstance(data, list):
            raise PollError(f"unexpected fills response shape: {type(data).__name__}")
        return [fill for fill in data if isinstance(fill, dict)]


def _as_time(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


__all__ = ["FILLS_REQUEST_TYPE", "HyperliquidFillPoller", "PollError"]
