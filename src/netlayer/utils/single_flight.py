"""Coalesce concurrent calls onto one in-flight operation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class SingleFlight[T]:
    """Runs at most one operation at a time and shares its outcome.

    Callers arriving while an operation is in flight await that operation
    instead of starting another one. Every waiter observes the same result
    or the same exception. Once the operation finishes, the next call starts
    a fresh one.
    """

    def __init__(self) -> None:
        self._task: asyncio.Task[T] | None = None

    @property
    def in_flight(self) -> bool:
        """Whether an operation is currently running."""
        return self._task is not None

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Join the in-flight operation or start ``operation``.

        A waiter being cancelled does not cancel the shared operation.

        Args:
            operation: Factory for the awaitable to run when nothing is in flight

        Returns:
            Result of the shared operation
        """
        task = self._task
        if task is None:
            task = asyncio.ensure_future(self._execute(operation))
            self._task = task
        else:
            logger.debug("Joining in-flight operation")
        return await asyncio.shield(task)

    async def _execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await operation()
        finally:
            self._task = None
