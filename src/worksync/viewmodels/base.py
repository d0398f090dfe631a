# src/worksync/viewmodels/base.py

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

S = TypeVar("S")

StateListener = Callable[[S], None]


class StateFlow(Generic[S]):
    """
    Observable holder of the latest UI state.

    - `value` is always the current state (replace it, never mutate it)
    - listeners are called synchronously on every change
    - `stream()` yields the current value, then every later one (conflated)
    """

    def __init__(self, initial: S) -> None:
        self._value = initial
        self._listeners: list[StateListener[S]] = []

    @property
    def value(self) -> S:
        return self._value

    def set(self, new_value: S) -> None:
        if new_value == self._value:
            return
        self._value = new_value
        for listener in list(self._listeners):
            try:
                listener(new_value)
            except Exception:
                logger.exception("State listener failed")

    def update(self, fn: Callable[[S], S]) -> S:
        self.set(fn(self._value))
        return self._value

    def subscribe(self, listener: StateListener[S]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def stream(self) -> AsyncIterator[S]:
        changed = asyncio.Event()
        unsubscribe = self.subscribe(lambda _v: changed.set())
        try:
            yield self._value
            while True:
                await changed.wait()
                changed.clear()
                yield self._value
        finally:
            unsubscribe()


class ViewModel:
    """
    Owns background collectors (live-query observers).

    Collectors are keyed: launching a new one under the same key cancels the
    previous one, so e.g. switching task lists never leaves two lists feeding
    the same state. `close()` cancels everything.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, asyncio.Task[None]] = {}
        self._closed = False

    def _launch(self, key: str, factory: Callable[[], Awaitable[None]]) -> asyncio.Task[None]:
        if self._closed:
            raise RuntimeError(f"{type(self).__name__} is closed")
        self._cancel(key)
        job = asyncio.get_running_loop().create_task(factory(), name=f"{type(self).__name__}.{key}")
        self._jobs[key] = job
        job.add_done_callback(lambda t, k=key: self._on_job_done(k, t))
        return job

    def _on_job_done(self, key: str, job: asyncio.Task[None]) -> None:
        if self._jobs.get(key) is job:
            self._jobs.pop(key, None)
        if job.cancelled():
            return
        exc = job.exception()
        if exc is not None:
            logger.error("Background job %s failed", job.get_name(), exc_info=exc)

    def _cancel(self, key: str) -> None:
        job = self._jobs.pop(key, None)
        if job is not None and not job.done():
            job.cancel()

    @property
    def active_jobs(self) -> list[str]:
        return sorted(k for k, j in self._jobs.items() if not j.done())

    async def close(self) -> None:
        self._closed = True
        jobs = list(self._jobs.values())
        self._jobs.clear()
        for job in jobs:
            job.cancel()
        for job in jobs:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await job
