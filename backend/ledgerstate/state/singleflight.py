"""Coalesce concurrent runs of the same coroutine per key."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any


class SingleFlight:
    """At most one in-flight task per key; later callers await the same task.

    Waiters are shielded: cancelling one caller does not cancel the shared
    task. An exception raised by the task reaches every waiter.
    """

    def __init__(self) -> None:
        self._inflight: dict[Any, asyncio.Task] = {}

    def in_flight(self, key: Any) -> bool:
        task = self._inflight.get(key)
        return task is not None and not task.done()

    async def run(
        self, key: Any, factory: Callable[[], Awaitable[Any]]
    ) -> tuple[Any, bool]:
        """Return (result, started) where `started` is True for the caller that ran it."""
        task = self._inflight.get(key)
        started = task is None or task.done()
        if started:
            task = asyncio.ensure_future(factory())
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        return await asyncio.shield(task), started

    def _forget(self, key: Any, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Every waiter may have been cancelled; mark the error as retrieved
        if not task.cancelled():
            task.exception()
