"""Best-effort JSON webhook delivery for relayed envelopes."""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from common.models import Envelope

logger = logging.getLogger(__name__)

RESPONSE_LOG_LIMIT = 400


class WebhookSink:
    """POST each envelope to the downstream automation endpoint.

    :meth:`deliver` never raises for HTTP or network problems: a failed
    delivery is logged and reported as ``False``. There is no retry; the
    redundant stream and poll paths are the safety net.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def deliver(self, envelope: Envelope) -> bool:
        session = self._ensure_session()
        try:
            async with session.post(
                self.url, json=envelope.to_payload(), timeout=self._timeout
            ) as resp:
                if 200 <= resp.status < 300:
                    return True
                text = await resp.text(errors="replace")
                logger.error(
                    "Webhook returned HTTP %s: %s", resp.status, text[:RESPONSE_LOG_LIMIT]
                )
                return False
        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as exc:
            logger.error("Webhook delivery failed: %s", exc or type(exc).__name__)
            return False

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None


__all__ = ["RESPONSE_LOG_LIMIT", "WebhookSink"]
