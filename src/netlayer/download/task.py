"""Download task handle."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import replace
from typing import Final

from netlayer.core.endpoint_request import EndpointRequest
from netlayer.download.state import DownloadState
from netlayer.types.models import TaskState
from netlayer.utils.streams import StateChannel

logger = logging.getLogger(__name__)

COMPLETION_GRACE: Final[float] = 0.02


class DownloadTask:
    """Handle to one download.

    The manager owns the transfer; the handle exposes its state and lets
    the caller pause, resume or cancel it.
    """

    def __init__(self, endpoint_request: EndpointRequest) -> None:
        self.endpoint_request: EndpointRequest = endpoint_request
        self._state: DownloadState = DownloadState()
        self._channel: StateChannel[DownloadState] = StateChannel()
        self._channel.send(self._state)
        self._gate: asyncio.Event = asyncio.Event()
        self._gate.set()
        self._handle: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"DownloadTask(id={self.id!r}, state={self._state.task_state.value})"

    @property
    def id(self) -> str:
        return self.endpoint_request.id

    @property
    def state(self) -> DownloadState:
        """Latest state snapshot."""
        return self._state

    @property
    def is_active(self) -> bool:
        return self._handle is not None and not self._handle.done()

    def state_stream(self) -> AsyncIterator[DownloadState]:
        """Iterate over states, starting with the latest, until a terminal one."""
        return self._channel.subscribe()

    def pause(self) -> None:
        if self._state.task_state is TaskState.RUNNING:
            self._gate.clear()
            self._emit(task_state=TaskState.SUSPENDED)

    def resume(self) -> None:
        if self._state.task_state is TaskState.SUSPENDED:
            self._gate.set()
            self._emit(task_state=TaskState.RUNNING)

    def cancel(self) -> None:
        """Abort the transfer.

        The final state carries resume data when part of the content was
        already written.
        """
        if self._handle is not None and not self._handle.done():
            _ = self._handle.cancel()

    async def wait(self) -> DownloadState:
        """Wait for the transfer to end and return the final state."""
        if self._handle is not None:
            try:
                await asyncio.shield(self._handle)
            except asyncio.CancelledError:
                if not self._handle.cancelled():
                    raise
        return self._state

    # Manager-facing lifecycle

    def _emit(self, **changes: object) -> None:
        self._state = replace(self._state, **changes)  # pyright: ignore[reportArgumentType]
        self._channel.send(self._state)

    def _attach(self, handle: asyncio.Task[None]) -> None:
        self._handle = handle
        handle.add_done_callback(self._on_done)

    def _on_done(self, handle: asyncio.Task[None]) -> None:
        """Settle a transfer that ended before it could report a terminal state."""
        if self._state.is_terminal:
            return
        if handle.cancelled():
            self._state = replace(self._state, task_state=TaskState.CANCELLED)
        else:
            self._state = replace(self._state, task_state=TaskState.FAILED, error=handle.exception())
        self._channel.send(self._state)
        _ = asyncio.get_running_loop().call_later(COMPLETION_GRACE, self._channel.close)

    async def _wait_if_paused(self) -> None:
        await self._gate.wait()

    async def _finish(self, task_state: TaskState, **changes: object) -> None:
        self._state = replace(self._state, task_state=task_state, **changes)  # pyright: ignore[reportArgumentType]
        await self._channel.complete(self._state, COMPLETION_GRACE)
