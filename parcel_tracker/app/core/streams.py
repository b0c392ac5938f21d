"""
Latest-value observable used for the current-user stream.

One producer publishes; any number of subscribers receive the value current
at subscription time followed by every later change. A slow subscriber only
ever sees the most recent value (no backlog).
"""

import asyncio
from typing import Generic, Optional, Set, TypeVar

T = TypeVar("T")

_EMPTY = object()


class Subscription(Generic[T]):
    """A single consumer's view of a `LatestValueStream`."""

    def __init__(self, stream: "LatestValueStream[T]"):
        self._stream = stream
        self._pending = _EMPTY
        self._ready = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _offer(self, value) -> None:
        self._pending = value
        self._ready.set()

    async def get(self) -> T:
        """
        Wait for the next value.

        Raises:
            StopAsyncIteration: once unsubscribed and nothing is pending
        """
        while self._pending is _EMPTY:
            if self._closed:
                raise StopAsyncIteration
            self._ready.clear()
            await self._ready.wait()
        value, self._pending = self._pending, _EMPTY
        return value

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stream._remove(self)
        self._ready.set()

    def __aiter__(self):
        return self

    async def __anext__(self) -> T:
        return await self.get()

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class LatestValueStream(Generic[T]):
    """Single-producer, multi-consumer stream where the latest value wins."""

    def __init__(self, initial: Optional[T] = None):
        self._value = initial
        self._subscribers: Set[Subscription[T]] = set()

    @property
    def value(self) -> Optional[T]:
        return self._value

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, value: Optional[T]) -> None:
        self._value = value
        for subscription in list(self._subscribers):
            subscription._offer(value)

    def subscribe(self) -> Subscription[T]:
        subscription: Subscription[T] = Subscription(self)
        self._subscribers.add(subscription)
        subscription._offer(self._value)
        return subscription

    def _remove(self, subscription: Subscription[T]) -> None:
        self._subscribers.discard(subscription)

    def close(self) -> None:
        """Unsubscribe every consumer (used at shutdown)."""
        for subscription in list(self._subscribers):
            subscription.unsubscribe()
