"""Upload task handle, payload descriptors and progress state."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Final

from netlayer.core.endpoint_request import EndpointRequest
from netlayer.types.models import Response, TaskState
from netlayer.upload.multipart import MultipartFormData
from netlayer.utils.streams import StateChannel

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE: Final[int] = 64 * 1024
DEFAULT_MULTIPART_THRESHOLD: Final[int] = 10_000_000
COMPLETION_GRACE: Final[float] = 0.02


# Payloads accepted by the upload manager


@dataclass(slots=True, frozen=True)
class DataUpload:
    """Upload of in-memory bytes with an explicit content type."""

    data: bytes
    content_type: str


@dataclass(slots=True, frozen=True)
class FileUpload:
    """Upload of a file's content; the content type is guessed from its name."""

    path: Path


@dataclass(slots=True, frozen=True)
class MultipartUpload:
    """Upload of a multipart form.

    Forms whose content exceeds ``size_threshold`` bytes are encoded to a
    temporary file first instead of in memory.
    """

    form: MultipartFormData
    size_threshold: int = DEFAULT_MULTIPART_THRESHOLD


type UploadType = DataUpload | FileUpload | MultipartUpload


# What a task actually sends


@dataclass(slots=True, frozen=True)
class DataUploadable:
    data: bytes


@dataclass(slots=True, frozen=True)
class FileUploadable:
    path: Path
    remove_on_complete: bool = False


type Uploadable = DataUploadable | FileUploadable


async def remove_temporary_payload(uploadable: Uploadable) -> None:
    """Delete a payload file the manager encoded for a single upload."""
    if isinstance(uploadable, FileUploadable) and uploadable.remove_on_complete:
        try:
            await asyncio.to_thread(uploadable.path.unlink, missing_ok=True)
        except OSError:
            logger.warning("Failed to remove temporary upload file %s", uploadable.path)


@dataclass(slots=True, frozen=True)
class UploadState:
    """Snapshot of an upload's progress.

    Attributes:
        sent_bytes: Bytes handed to the transport so far
        total_bytes: Size of the payload
        task_state: Lifecycle state
        error: Surfaced error once the task failed
        response: Processed response once the task completed
    """

    sent_bytes: int
    total_bytes: int
    task_state: TaskState
    error: Exception | None = None
    response: Response | None = None

    @property
    def fraction_completed(self) -> float:
        if self.total_bytes <= 0:
            return 1.0 if self.task_state is TaskState.COMPLETED else 0.0
        return min(self.sent_bytes / self.total_bytes, 1.0)

    @property
    def is_terminal(self) -> bool:
        return self.task_state.is_terminal


class UploadTask:
    """Handle of one upload, stable across retries.

    The manager owns the transport handle; callers pause, resume and cancel
    through this object and observe progress with ``state_stream``.
    """

    def __init__(self, endpoint_request: EndpointRequest, uploadable: Uploadable, total_bytes: int) -> None:
        """Initialize UploadTask.

        Args:
            endpoint_request: Call context; its id is the task id
            uploadable: Payload sent by every attempt
            total_bytes: Payload size
        """
        self.endpoint_request: EndpointRequest = endpoint_request
        self.uploadable: Uploadable = uploadable
        self._state: UploadState = UploadState(0, total_bytes, TaskState.CREATED)
        self._channel: StateChannel[UploadState] = StateChannel()
        self._channel.send(self._state)
        self._gate: asyncio.Event = asyncio.Event()
        self._gate.set()
        self._handle: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"UploadTask(id={self.id!r}, state={self._state.task_state.value})"

    @property
    def id(self) -> str:
        return self.endpoint_request.id

    @property
    def state(self) -> UploadState:
        """Latest state snapshot."""
        return self._state

    @property
    def fraction_completed(self) -> float:
        return self._state.fraction_completed

    @property
    def is_active(self) -> bool:
        """Whether a transport handle is currently running."""
        return self._handle is not None and not self._handle.done()

    def state_stream(self) -> AsyncIterator[UploadState]:
        """Iterate over states, starting with the latest, until a terminal one."""
        return self._channel.subscribe()

    def _emit(self, **changes: object) -> None:
        self._state = replace(self._state, **changes)  # pyright: ignore[reportArgumentType]
        self._channel.send(self._state)

    def pause(self) -> None:
        """Suspend sending; progress stops until ``resume``."""
        if self._state.task_state is TaskState.RUNNING:
            self._gate.clear()
            self._emit(task_state=TaskState.SUSPENDED)

    def resume(self) -> None:
        """Continue a suspended upload; any other state is left untouched."""
        if self._state.task_state is TaskState.SUSPENDED:
            self._gate.set()
            self._emit(task_state=TaskState.RUNNING)

    def cancel(self) -> None:
        """Abort the upload. Cancellation is terminal until an explicit retry."""
        if self._handle is not None and not self._handle.done():
            _ = self._handle.cancel()
        elif not self._state.is_terminal:
            self._state = replace(self._state, task_state=TaskState.CANCELLED)
            self._channel.send(self._state)
            self._channel.close()

    async def cleanup(self) -> None:
        """Remove a temporary payload file once it is no longer needed."""
        await remove_temporary_payload(self.uploadable)

    async def wait(self) -> UploadState:
        """Wait for the current attempt sequence to end and return the final state."""
        if self._handle is not None:
            try:
                await asyncio.shield(self._handle)
            except asyncio.CancelledError:
                if not self._handle.cancelled():
                    raise
        return self._state

    # Manager-facing lifecycle

    def _attach(self, handle: asyncio.Task[None]) -> None:
        """Install a new transport handle, reopening the stream after a terminal state."""
        if self._state.is_terminal:
            self._channel = StateChannel()
        self._handle = handle
        handle.add_done_callback(self._on_done)
        self._gate.set()
        self._emit(sent_bytes=0, task_state=TaskState.RUNNING, error=None, response=None)

    def _on_done(self, handle: asyncio.Task[None]) -> None:
        """Settle a handle that ended without reaching a terminal state itself."""
        if handle is not self._handle or self._state.is_terminal:
            return
        if handle.cancelled():
            self._state = replace(self._state, task_state=TaskState.CANCELLED)
        else:
            self._state = replace(self._state, task_state=TaskState.FAILED, error=handle.exception())
        channel = self._channel
        channel.send(self._state)
        _ = asyncio.get_running_loop().call_later(COMPLETION_GRACE, channel.close)

    def _restart_attempt(self) -> None:
        self._gate.set()
        self._emit(sent_bytes=0, task_state=TaskState.RUNNING)

    async def _finish(
        self,
        task_state: TaskState,
        *,
        error: Exception | None = None,
        response: Response | None = None,
    ) -> None:
        self._state = replace(self._state, task_state=task_state, error=error, response=response)
        await self._channel.complete(self._state, COMPLETION_GRACE)

    async def _body(self) -> AsyncIterator[bytes]:
        """Payload chunks, honouring pause and counting progress."""
        sent = 0
        match self.uploadable:
            case DataUploadable(data=data):
                for start in range(0, len(data), UPLOAD_CHUNK_SIZE):
                    await self._gate.wait()
                    chunk = data[start : start + UPLOAD_CHUNK_SIZE]
                    yield chunk
                    sent += len(chunk)
                    self._emit(sent_bytes=sent)
            case FileUploadable(path=path):
                handle = await asyncio.to_thread(path.open, "rb")
                try:
                    while True:
                        await self._gate.wait()
                        chunk = await asyncio.to_thread(handle.read, UPLOAD_CHUNK_SIZE)
                        if not chunk:
                            break
                        yield chunk
                        sent += len(chunk)
                        self._emit(sent_bytes=sent)
                finally:
                    await asyncio.to_thread(handle.close)
