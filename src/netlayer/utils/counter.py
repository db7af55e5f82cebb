"""Owner-serialized per-key counter."""

from __future__ import annotations

import asyncio


class Counter:
    """Async-safe counter keyed by string.

    All reads and writes go through a single lock, so concurrent callers
    incrementing the same key never observe the same value twice.
    """

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    async def count(self, key: str) -> int:
        """Return the current count for ``key`` (0 when unseen)."""
        async with self._lock:
            return self._counts.get(key, 0)

    async def increment(self, key: str) -> int:
        """Increment the count for ``key`` and return the new value."""
        async with self._lock:
            value = self._counts.get(key, 0) + 1
            self._counts[key] = value
            return value

    async def reset(self, key: str) -> None:
        """Forget the count for ``key``."""
        async with self._lock:
            _ = self._counts.pop(key, None)
