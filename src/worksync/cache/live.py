# src/worksync/cache/live.py

from __future__ import annotations

"""
Continuous queries over the cache.

A LiveQuery is re-evaluated whenever one of the tables it reads changes.
Consumers simply iterate:

    async for tasks in repo.get_all_tasks():
        render(tasks)

The first value is the current snapshot; later values arrive after writes.
Several writes that land before the consumer wakes up produce one snapshot.
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Generic, TypeVar

from .store import CacheStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LiveQuery(Generic[T]):
    def __init__(self, store: CacheStore, tables: Iterable[str], fetch: Callable[[], T]) -> None:
        self._store = store
        self._tables = frozenset(tables)
        self._fetch = fetch

    @property
    def tables(self) -> frozenset[str]:
        return self._tables

    def snapshot(self) -> T:
        """Evaluate the query once, without subscribing."""
        return self._fetch()

    def __aiter__(self) -> AsyncIterator[T]:
        return self._stream()

    async def _stream(self) -> AsyncIterator[T]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[frozenset[str]] = asyncio.Queue()

        def _on_change(touched: frozenset[str]) -> None:
            if not (touched & self._tables):
                return
            # Writes may come from worker threads; the loop may already be gone on shutdown.
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(queue.put_nowait, touched)

        unsubscribe = self._store.subscribe(_on_change)
        try:
            yield self._fetch()
            while True:
                await queue.get()
                while not queue.empty():
                    queue.get_nowait()
                yield self._fetch()
        finally:
            unsubscribe()
            logger.debug("LiveQuery unsubscribed tables=%s", sorted(self._tables))
