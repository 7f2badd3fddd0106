"""
Single-flight - Collapse concurrent identical operations into one task.

The first caller for a key starts the task; later callers join it. Every
waiter awaits through `asyncio.shield`, so a waiter that gives up (is
cancelled) never cancels the shared task for the others.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """In-flight task registry keyed by operation identity."""

    def __init__(self):
        self._tasks: Dict[Hashable, "asyncio.Task[T]"] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._tasks

    def keys(self):
        return list(self._tasks)

    def task(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> "asyncio.Task[T]":
        """
        Return the in-flight task for `key`, starting one with `factory` if none.

        The entry is cleared when the task finishes, on success and failure.
        """
        existing = self._tasks.get(key)
        if existing is not None:
            return existing

        task = asyncio.ensure_future(factory())
        self._tasks[key] = task
        task.add_done_callback(lambda done: self._finished(key, done))
        return task

    async def do(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        """Start or join the operation for `key` and wait for its result."""
        return await asyncio.shield(self.task(key, factory))

    def forget(self, key: Optional[Hashable] = None) -> None:
        """
        Stop tracking in-flight tasks (all, or one key).

        Forgotten tasks keep running for the waiters already joined; new
        callers start a fresh task.
        """
        if key is None:
            self._tasks.clear()
        else:
            self._tasks.pop(key, None)

    def _finished(self, key: Hashable, task: "asyncio.Task[T]") -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        # Mark the exception retrieved even if every waiter gave up
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Single-flight task %r failed: %s", key, task.exception())
