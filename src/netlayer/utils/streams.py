"""Bounded state channels with explicit, ordered completion.

Progress of uploads and downloads is published through ``StateChannel``.
A channel is closed only after the final value has been handed to the
queue, so a consumer always sees the terminal state before the iteration
ends.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Final

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY: Final[int] = 64


class _Closed:
    """Sentinel marking the end of a channel."""


_CLOSED: Final[_Closed] = _Closed()


class StateChannel[T]:
    """Single-producer channel of state values with many subscribers.

    Every subscriber gets its own bounded queue. When a subscriber's queue is
    full, the oldest pending value is dropped: consumers only care about the
    latest progress and must never stall the producer. The sentinel marking
    completion is never dropped.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        """Initialize StateChannel.

        Args:
            capacity: Maximum number of pending values per subscriber
        """
        self._capacity: int = capacity
        self._subscribers: list[asyncio.Queue[T | _Closed]] = []
        self._latest: T | None = None
        self._closed: bool = False

    @property
    def closed(self) -> bool:
        """Whether the channel has completed."""
        return self._closed

    @property
    def latest(self) -> T | None:
        """Last value sent, or None before the first send."""
        return self._latest

    def send(self, value: T) -> None:
        """Publish a value to all subscribers.

        Sending on a closed channel is ignored.
        """
        if self._closed:
            logger.debug("Dropping value sent on a closed channel")
            return
        self._latest = value
        for queue in self._subscribers:
            self._put(queue, value)

    def _put(self, queue: asyncio.Queue[T | _Closed], item: T) -> None:
        # one slot stays free for the closing sentinel
        if queue.qsize() >= self._capacity:
            _ = queue.get_nowait()
        queue.put_nowait(item)

    def close(self) -> None:
        """Complete the channel after every value already sent."""
        if self._closed:
            return
        self._closed = True
        for queue in self._subscribers:
            queue.put_nowait(_CLOSED)

    async def complete(self, value: T, delay: float = 0.02) -> None:
        """Send a terminal value, give consumers a moment to read it, then close.

        The channel is closed even when the grace period is cancelled.

        Args:
            value: Terminal state
            delay: Grace period between the last send and completion
        """
        self.send(value)
        try:
            await asyncio.sleep(delay)
        finally:
            self.close()

    def subscribe(self) -> AsyncIterator[T]:
        """Iterate over values sent from now on.

        A subscriber joining after values were sent first receives the latest
        one. Subscribing to a closed channel yields the latest value (if any)
        and then stops.
        """
        queue: asyncio.Queue[T | _Closed] = asyncio.Queue(maxsize=self._capacity + 1)
        if self._latest is not None:
            queue.put_nowait(self._latest)
        if self._closed:
            queue.put_nowait(_CLOSED)
        else:
            self._subscribers.append(queue)
        return self._iterate(queue)

    async def _iterate(self, queue: asyncio.Queue[T | _Closed]) -> AsyncIterator[T]:
        try:
            while True:
                item = await queue.get()
                if isinstance(item, _Closed):
                    return
                yield item
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)
