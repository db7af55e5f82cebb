"""Owner-serialized registry of long-running tasks."""

from __future__ import annotations

import asyncio


class TaskRegistry[T]:
    """Async-safe mapping of task id to task.

    Every read and write goes through one lock; callers never touch the
    underlying dictionary directly.
    """

    def __init__(self) -> None:
        self._items: dict[str, T] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    async def get(self, task_id: str) -> T | None:
        async with self._lock:
            return self._items.get(task_id)

    async def put(self, task_id: str, item: T) -> None:
        async with self._lock:
            self._items[task_id] = item

    async def remove(self, task_id: str) -> T | None:
        async with self._lock:
            return self._items.pop(task_id, None)

    async def values(self) -> list[T]:
        """Snapshot of all registered tasks."""
        async with self._lock:
            return list(self._items.values())
