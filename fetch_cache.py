"""Keyed cache of workout query results.

Each query descriptor key owns one ``CacheEntry``. Concurrent resolves of
the same key share one in-flight fetch. Every fetch carries a generation
number so that, for a single key, the response of the latest request wins
even when an older response arrives after it. Invalidation marks entries
stale and detaches their in-flight fetch, so the next resolve always goes
back to the server.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from queries import KeyFamily, QueryDescriptor, matches_family

logger = logging.getLogger(__name__)

Fetcher = Callable[[QueryDescriptor], Awaitable[Any]]


@dataclass
class CacheEntry:
    key: tuple
    data: Any = None
    has_data: bool = False
    stale: bool = True
    in_flight: Optional[asyncio.Task] = None
    in_flight_generation: int = 0
    requested: int = 0
    applied: int = 0
    valid_from: int = 1
    fetched_at: Optional[float] = None

    @property
    def fresh(self) -> bool:
        return self.has_data and not self.stale


@dataclass
class Resolution:
    """Result of ``FetchCache.resolve``.

    ``data`` is the last known result (possibly ``None``). When
    ``is_loading`` is true, ``pending`` is the task to await for the new
    result.
    """

    descriptor: QueryDescriptor
    data: Any
    is_loading: bool
    pending: Optional[asyncio.Task] = None

    async def wait(self) -> Any:
        if self.pending is None:
            return self.data
        return await self.pending


class FetchCache:
    """Cache and de-duplicate fetches per query descriptor."""

    def __init__(self, fetcher: Fetcher) -> None:
        self._fetcher = fetcher
        self._entries: Dict[tuple, CacheEntry] = {}

    def __contains__(self, descriptor: QueryDescriptor) -> bool:
        return descriptor.key in self._entries

    def entry(self, descriptor: QueryDescriptor) -> Optional[CacheEntry]:
        return self._entries.get(descriptor.key)

    def resolve(self, descriptor: QueryDescriptor) -> Resolution:
        """Return cached data or start (or join) a fetch for ``descriptor``.

        Must be called from inside a running event loop.
        """
        key = descriptor.key
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry(key)
        if entry.fresh:
            logger.debug("cache hit for %s", key)
            return Resolution(descriptor, entry.data, False)
        if entry.in_flight is not None:
            logger.debug("joining in-flight fetch for %s", key)
            return Resolution(descriptor, entry.data, True, entry.in_flight)
        task = self._start(descriptor, entry)
        return Resolution(descriptor, entry.data, True, task)

    async def fetch(self, descriptor: QueryDescriptor) -> Any:
        """Resolve ``descriptor`` and wait for its data."""
        return await self.resolve(descriptor).wait()

    def invalidate(self, family: str = KeyFamily.ALL) -> int:
        """Mark every entry in ``family`` stale and return how many matched."""
        count = 0
        for key, entry in self._entries.items():
            if not matches_family(key, family):
                continue
            entry.stale = True
            entry.valid_from = entry.requested + 1
            entry.in_flight = None
            entry.in_flight_generation = 0
            count += 1
        logger.info("invalidated %d cache entries (%s)", count, family)
        return count

    def _start(self, descriptor: QueryDescriptor, entry: CacheEntry) -> asyncio.Task:
        entry.requested += 1
        generation = entry.requested
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run(descriptor, entry, generation))
        task.add_done_callback(self._log_failure)
        entry.in_flight = task
        entry.in_flight_generation = generation
        logger.info("fetching %s (request %d)", entry.key, generation)
        return task

    async def _run(self, descriptor: QueryDescriptor, entry: CacheEntry, generation: int) -> Any:
        try:
            data = await self._fetcher(descriptor)
        finally:
            if entry.in_flight_generation == generation:
                entry.in_flight = None
                entry.in_flight_generation = 0
        self._store(entry, generation, data)
        return entry.data

    def _store(self, entry: CacheEntry, generation: int, data: Any) -> None:
        if generation < entry.applied:
            logger.debug(
                "dropping response %d for %s, request %d already applied",
                generation,
                entry.key,
                entry.applied,
            )
            return
        entry.data = data
        entry.has_data = True
        entry.applied = generation
        entry.fetched_at = time.time()
        if generation >= entry.valid_from:
            entry.stale = False

    @staticmethod
    def _log_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("fetch failed: %s", exc)
