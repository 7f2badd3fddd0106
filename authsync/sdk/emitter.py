"""
Event Emitter - Fan-out of coordinator events to subscribers.

Each subscriber owns an unbounded queue, so delivery is ordered per
subscriber and publishing never waits on a slow consumer.
"""

import asyncio
import logging
from typing import List, Optional

from authsync.domain.events import AuthEvent

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """
    Async iterator over the events published after it was created.

    Usage:
        async for event in coordinator.subscribe():
            ...
    """

    def __init__(self, emitter: "EventEmitter"):
        self._emitter = emitter
        self._queue: "asyncio.Queue" = asyncio.Queue()
        self._closed = False

    def _deliver(self, item) -> None:
        self._queue.put_nowait(item)

    @property
    def pending(self) -> int:
        """Events queued but not yet consumed."""
        return self._queue.qsize()

    async def get(self) -> Optional[AuthEvent]:
        """Next event, or None once the stream is finished."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            self._closed = True
            return None
        return item

    def close(self) -> None:
        """Stop receiving events; queued events can still be drained."""
        if not self._closed:
            self._emitter._remove(self)
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> AuthEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class EventEmitter:
    """Publishes events to every live subscription in publish order."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self._finished = False

    def subscribe(self) -> Subscription:
        subscription = Subscription(self)
        if self._finished:
            subscription._deliver(_CLOSED)
        else:
            self._subscriptions.append(subscription)
        return subscription

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, event: AuthEvent) -> None:
        if self._finished:
            logger.debug("Dropping %s published after finish", type(event).__name__)
            return
        logger.debug("Publishing %s to %d subscriber(s)", type(event).__name__, len(self._subscriptions))
        for subscription in list(self._subscriptions):
            subscription._deliver(event)

    def finish(self) -> None:
        """End every subscription's stream."""
        self._finished = True
        for subscription in self._subscriptions:
            subscription._deliver(_CLOSED)
        self._subscriptions.clear()

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
