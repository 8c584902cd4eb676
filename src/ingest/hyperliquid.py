"""Hyperliquid user-stream websocket client with heartbeat supervision."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Iterable

import aiohttp

from common.models import Envelope
from relay.context import ConnectionState, RelayContext
from relay.normalize import is_subscription_ack, normalize_message

from .base import BackoffConfig, IngestClient

logger = logging.getLogger(__name__)

SUBSCRIPTION_TYPES = ("userFills", "userEvents", "userNonFundingLedgerUpdates")
KEEPALIVE_MESSAGE = {"method": "ping"}


def build_subscriptions(addresses: Iterable[str]) -> list[dict[str, Any]]:
    """Return the subscribe requests for every (account, subscription type)."""

    return [
        {"method": "subscribe", "subscription": {"type": sub_type, "user": address}}
        for address in addresses
        for sub_type in SUBSCRIPTION_TYPES
    ]


class HyperliquidAccountStream(IngestClient):
    """Keep one websocket open, relay account events, and reconnect forever.

    Each connection gets its own heartbeat and keepalive timers. Both are
    cancelled before :meth:`run_once` returns, so a reconnect never inherits
    timers from the previous socket.
    """

    def __init__(
        self,
        context: RelayContext,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        config = context.config
        super().__init__(
            name="hyperliquid-stream",
            backoff=BackoffConfig.fixed(config.reconnect_delay),
        )
        self.context = context
        self.url = config.ws_url
        self.addresses = list(config.addresses)
        self.heartbeat_interval = config.heartbeat_interval
        self.keepalive_interval = config.keepalive_interval
        self._session = session
        self._alive = False
        self._timers: list[asyncio.Task[None]] = []

    @property
    def state(self) -> ConnectionState:
        return self.context.connection_state

    async def run_once(self) -> None:
        if self.attempts > 1:
            self.context.stats.reconnects += 1
        self.context.set_connection_state(ConnectionState.CONNECTING)
        session = self._session or aiohttp.ClientSession()
        try:
            async with session.ws_connect(self.url, autoping=False) as ws:
                try:
                    await self._on_open(ws)
                    await self._read_loop(ws)
                finally:
                    self.context.set_connection_state(ConnectionState.CLOSING)
                    await self._cancel_timers()
                    self.context.connection = None
                    if not ws.closed:
                        await ws.close()
        finally:
            self.context.set_connection_state(ConnectionState.CLOSED)
            if self._session is None:
                await session.close()

    async def _on_open(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        logger.info("Hyperliquid websocket open: %s", self.url)
        self.context.connection = ws
        self.context.set_connection_state(ConnectionState.OPEN)
        self._alive = True
        subscriptions = build_subscriptions(self.addresses)
        for sub in subscriptions:
            await ws.send_json(sub)
        logger.info(
            "Subscribed %d accounts (%d subscriptions)", len(self.addresses), len(subscriptions)
        )
        self._timers = [
            asyncio.create_task(self._heartbeat(ws), name=f"{self.name}-heartbeat"),
            asyncio.create_task(self._keepalive(ws), name=f"{self.name}-keepalive"),
        ]

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                await self._handle_message(msg.data)
            elif msg.type == aiohttp.WSMsgType.BINARY:
                await self._handle_message(msg.data.decode("utf-8", errors="replace"))
            elif msg.type == aiohttp.WSMsgType.PING:
                await ws.pong(msg.data)
            elif msg.type == aiohttp.WSMsgType.PONG:
                self._alive = True
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.warning("Hyperliquid websocket error: %s", ws.exception())
                break
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED):
                break
        logger.warning(
            "Hyperliquid websocket closed (code=%s); reconnecting in %.1fs",
            ws.close_code,
            self._backoff.initial,
        )

    async def _cancel_timers(self) -> None:
        timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()
        # gather re-raises a cancellation aimed at this task; the timers' own
        # CancelledError comes back as a result.
        results = await asyncio.gather(*timers, return_exceptions=True)
        for timer, result in zip(timers, results):
            if isinstance(result, Exception):
                logger.warning("Timer %s failed: %r", timer.get_name(), result)

    async def _heartbeat(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            if not await self._check_liveness(ws):
                return

    async def _check_liveness(self, ws: aiohttp.ClientWebSocketResponse) -> bool:
        """Run one heartbeat tick; close ``ws`` if no pong arrived since the last one."""

        if not self._alive:
            logger.warning("Heartbeat failed; tearing down Hyperliquid websocket")
            await ws.close()
            return False
        self._alive = False
        try:
            await ws.ping()
        except (ConnectionError, RuntimeError) as exc:
            logger.debug("Transport ping failed: %s", exc)
        return True

    async def _keepalive(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        while True:
            await asyncio.sleep(self.keepalive_interval)
            try:
                await ws.send_json(KEEPALIVE_MESSAGE)
            except (ConnectionError, RuntimeError) as exc:
                logger.debug("Keepalive send failed: %s", exc)
                return

    async def _handle_message(self, raw: str) -> None:
        received_at = int(time.time() * 1000)
        self.context.stats.stream_messages += 1
        if raw == "pong":
            return

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            self.context.stats.parse_errors += 1
            logger.error("Dropping unparseable message (%s): %s", exc, raw[:200])
            return

        if is_subscription_ack(payload):
            self.context.stats.acks += 1
            logger.info("Subscription ack: %s", payload.get("data") or payload.get("subscription"))
            return

        for event in normalize_message(payload):
            envelope = Envelope(source="stream", received_at=received_at, event=event)
            if await self.context.forward(envelope):
                self.context.stats.stream_events += 1

        self.context.cache.sweep()


__all__ = [
    "HyperliquidAccountStream",
    "KEEPALIVE_MESSAGE",
    "SUBSCRIPTION_TYPES",
    "build_subscriptions",
]
