import asyncio
import contextlib
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import orjson
from loguru import logger

from nanobanana.models import ClassifiedResult, ImageSize, Message


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: ClassifiedResult
    created_at: float


def make_cache_key(
    messages: Sequence[Message], model: str, size: ImageSize | None = None
) -> str:
    """Serialize the request verbatim; no canonicalization is applied."""
    payload: dict = {
        "messages": [msg.model_dump(mode="json") for msg in messages],
        "model": model,
    }
    if size is not None:
        payload["size"] = size.model_dump()
    return orjson.dumps(payload).decode("utf-8")


class ResultCache:
    """
    In-memory store of classified backend results with a fixed TTL.

    Entries are evicted in insertion order once ``max_entries`` is exceeded, which is
    not LRU: reading an entry does not refresh it. Access is unsynchronized and is
    only safe from a single event loop.
    """

    def __init__(
        self,
        ttl: float = 600,
        max_entries: int = 100,
        sweep_interval: float = 60,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.max_entries = max_entries
        self.sweep_interval = sweep_interval
        self.enabled = enabled
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._sweep_task: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at >= self.ttl

    def get(self, key: str) -> ClassifiedResult | None:
        if not self.enabled:
            return None
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry, self._clock()):
            del self._entries[key]
            return None
        return entry.value

    def put(self, key: str, value: ClassifiedResult) -> None:
        if not self.enabled:
            return
        # Re-inserting moves the key to the newest position.
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(key=key, value=value, created_at=self._clock())
        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug(f"Result cache full, evicted oldest entry {oldest[:48]!r}")

    def sweep(self) -> int:
        """Remove every expired entry and return how many were dropped."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if self._expired(entry, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries.")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if not self.enabled or self._sweep_task is not None:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(
            f"Result cache started (ttl={self.ttl:g}s, max_entries={self.max_entries}, "
            f"sweep_interval={self.sweep_interval:g}s)"
        )

    async def stop(self) -> None:
        """Stop the sweep task and drop all entries."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweep_task
            self._sweep_task = None
        self.clear()
