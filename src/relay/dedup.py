"""Fingerprinting and time-bounded dedup shared by the stream and poll paths."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from enum import Enum
from typing import Any, Callable

from common.models import NormalizedEvent

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60

# Each fingerprint component and the source field names that may supply it.
FINGERPRINT_FIELDS: tuple[tuple[str, ...], ...] = (
    ("address",),
    ("txHash", "hash"),
    ("orderId", "oid", "cloid"),
    ("time", "timestamp", "ts"),
    ("kind",),
    ("coin", "symbol", "asset"),
    ("px", "price"),
    ("sz", "size"),
)
_KIND_POSITION = 4


def _component(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Enum):
        value = value.value
    return str(value)


def fingerprint(event: NormalizedEvent) -> str:
    """Return a stable identity for ``event`` or ``""`` when it has none.

    Components are JSON encoded before hashing, so a separator character inside
    a field value cannot make two different events collide.
    """

    parts = [_component(event.lookup(*names)) for names in FINGERPRINT_FIELDS]
    parts[0] = parts[0].lower()
    identifying = parts[:_KIND_POSITION] + parts[_KIND_POSITION + 1 :]
    if not any(identifying):
        return ""
    encoded = json.dumps(parts, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class DedupCache:
    """Remember recently forwarded fingerprints for a fixed TTL.

    The first sighting of a fingerprint governs its window; duplicate hits do
    not extend it. Expired entries are only removed by :meth:`sweep`, but are
    never reported as duplicates once the TTL has elapsed.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._seen: dict[str, float] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._seen)

    def should_emit(self, event: NormalizedEvent) -> bool:
        """Return ``False`` when ``event`` was already forwarded within the TTL."""

        key = fingerprint(event)
        if not key:
            return True

        now = self._clock()
        first_seen = self._seen.get(key)
        if first_seen is not None and now - first_seen < self.ttl:
            self.hits += 1
            return False

        self._seen[key] = now
        self.misses += 1
        return True

    def sweep(self) -> int:
        """Drop expired entries and return how many were removed."""

        now = self._clock()
        expired = [key for key, seen_at in self._seen.items() if now - seen_at >= self.ttl]
        for key in expired:
            del self._seen[key]
        if expired:
            logger.debug("Swept %d expired dedup entries", len(expired))
        return len(expired)


class CacheSweeper:
    """Low-frequency sweep task so the cache stays bounded while both paths idle."""

    def __init__(self, cache: DedupCache, interval: float) -> None:
        self._cache = cache
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    def start(self) -> asyncio.Task[None]:
        if self._task is not None:
            raise RuntimeError("CacheSweeper already running")
        self._task = asyncio.create_task(self._run(), name="dedup-sweeper")
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

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._cache.sweep()


__all__ = [
    "CacheSweeper",
    "DEFAULT_TTL_SECONDS",
    "DedupCache",
    "FINGERPRINT_FIELDS",
    "fingerprint",
]
