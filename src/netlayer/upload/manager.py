"""Upload task manager.

Each upload runs as a background asyncio task owned by the manager. An
attempt builds and adapts the request, streams the payload through the
transport and processes the response. A failed attempt goes through the
retry engine, scoped to the task id. When retrying stops, the task emits a
final failed state and its state stream completes. ``retry`` restarts a
failed or cancelled task under the same identity.
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
from collections.abc import AsyncIterator, Sequence
from pathlib import Path

from netlayer.core.chain import adapt_request, process_error, process_response
from netlayer.core.endpoint import Endpoint
from netlayer.core.endpoint_request import EndpointRequest, make_session_id
from netlayer.core.errors import SessionInvalidated, UploadTaskNotFound
from netlayer.core.request_builder import build_request
from netlayer.core.retry import Retrier, RetryConfiguration
from netlayer.interceptors.status_code import StatusCodeProcessor
from netlayer.transport.httpx_transport import HTTPXTransport
from netlayer.types.models import HTTPMethod, TaskState, WireRequest
from netlayer.types.protocols import ErrorProcessor, RequestAdapter, ResponseProcessor, Transport
from netlayer.upload.multipart import MultipartFormDataEncoder, guess_mime_type
from netlayer.upload.task import (
    DataUpload,
    DataUploadable,
    FileUpload,
    FileUploadable,
    MultipartUpload,
    Uploadable,
    UploadState,
    UploadTask,
    UploadType,
    remove_temporary_payload,
)
from netlayer.utils.logging import correlation_id_context
from netlayer.utils.registry import TaskRegistry

logger = logging.getLogger(__name__)

DEFAULT_RETRY_CONFIGURATION = RetryConfiguration.default()


class UploadAPIManager:
    """Creates, tracks and retries uploads.

    Example:
        >>> manager = UploadAPIManager()
        >>> task = await manager.upload(FileUpload(Path("photo.jpg")), endpoint)
        >>> async for state in manager.state_stream(task.id):
        ...     print(state.fraction_completed)
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        encoder: MultipartFormDataEncoder | None = None,
        request_adapters: Sequence[RequestAdapter] = (),
        response_processors: Sequence[ResponseProcessor] | None = None,
        error_processors: Sequence[ErrorProcessor] = (),
        session_id: str | None = None,
        retrier: Retrier | None = None,
        temporary_directory: Path | None = None,
    ) -> None:
        """Initialize UploadAPIManager.

        Args:
            transport: Transport streaming the payloads (httpx by default)
            encoder: Multipart encoder
            request_adapters: Stages run before each attempt
            response_processors: Stages run on responses (status validation by default)
            error_processors: Stages run on surfaced errors
            session_id: Id grouping debug captures
            retrier: Retry engine (a fresh one by default)
            temporary_directory: Where large multipart bodies are encoded
        """
        self.transport: Transport = transport or HTTPXTransport()
        self.encoder: MultipartFormDataEncoder = encoder or MultipartFormDataEncoder()
        self.request_adapters: tuple[RequestAdapter, ...] = tuple(request_adapters)
        self.response_processors: tuple[ResponseProcessor, ...] = tuple(
            response_processors if response_processors is not None else (StatusCodeProcessor(),)
        )
        self.error_processors: tuple[ErrorProcessor, ...] = tuple(error_processors)
        self.session_id: str = session_id or make_session_id()
        self.retrier: Retrier = retrier or Retrier()
        self.temporary_directory: Path = temporary_directory or Path(tempfile.gettempdir()) / "netlayer"
        self._tasks: TaskRegistry[UploadTask] = TaskRegistry()
        self._retry_configurations: dict[str, RetryConfiguration | None] = {}
        self._content_types: dict[str, str] = {}
        self._invalidated: bool = False

    async def active_tasks(self) -> list[UploadTask]:
        """Tasks whose transport handle is currently running."""
        return [task for task in await self._tasks.values() if task.is_active]

    async def task(self, task_id: str) -> UploadTask | None:
        """Return a registered task by id."""
        return await self._tasks.get(task_id)

    async def upload(
        self,
        upload_type: UploadType,
        endpoint: Endpoint,
        *,
        retry_configuration: RetryConfiguration | None = DEFAULT_RETRY_CONFIGURATION,
    ) -> UploadTask:
        """Start uploading ``upload_type`` to ``endpoint``.

        Args:
            upload_type: Payload to send
            endpoint: Target endpoint
            retry_configuration: Retry policy applied to failed attempts

        Returns:
            The running task

        Raises:
            SessionInvalidated: If the manager's session was invalidated
            NetworkingError: If the request cannot be built or adapted
        """
        if self._invalidated:
            raise SessionInvalidated()
        endpoint_request = EndpointRequest(endpoint, self.session_id)
        with correlation_id_context(endpoint_request.id):
            uploadable, content_type = await self._uploadable(upload_type, endpoint_request)
            try:
                total_bytes = await self._size(uploadable)
                request = await self._prepare(endpoint_request, content_type, total_bytes)
            except BaseException:
                await remove_temporary_payload(uploadable)
                raise
            task = UploadTask(endpoint_request, uploadable, total_bytes)
            self._retry_configurations[task.id] = retry_configuration
            self._content_types[task.id] = content_type
            await self._tasks.put(task.id, task)
            self._start(task, request)
        logger.info("Started upload %s (%d bytes)", task.id, total_bytes)
        return task

    async def upload_to_url(
        self,
        upload_type: UploadType,
        url: str,
        *,
        retry_configuration: RetryConfiguration | None = DEFAULT_RETRY_CONFIGURATION,
    ) -> UploadTask:
        """Start a POST upload to an absolute URL."""
        return await self.upload(
            upload_type,
            Endpoint.for_url(url, method=HTTPMethod.POST),
            retry_configuration=retry_configuration,
        )

    async def retry(self, task_id: str) -> None:
        """Resubmit a failed or cancelled task with its original payload and endpoint.

        Raises:
            UploadTaskNotFound: If no task has this id
            SessionInvalidated: If the manager's session was invalidated
        """
        task = await self._tasks.get(task_id)
        if task is None:
            raise UploadTaskNotFound(task_id)
        if self._invalidated:
            raise SessionInvalidated()
        if task.is_active:
            logger.debug("Upload %s is still running, nothing to retry", task_id)
            return
        with correlation_id_context(task.id):
            request = await self._prepare(
                task.endpoint_request,
                self._content_types.get(task.id),
                task.state.total_bytes,
            )
            self._start(task, request)
        logger.info("Retrying upload %s", task_id)

    async def state_stream(self, task_id: str) -> AsyncIterator[UploadState]:
        """Iterate over a task's states until it reaches a terminal state.

        An unknown id yields nothing.
        """
        task = await self._tasks.get(task_id)
        if task is None:
            return
        async for state in task.state_stream():
            yield state

    async def discard(self, task_id: str) -> None:
        """Forget a task kept for inspection after a terminal failure."""
        task = await self._tasks.remove(task_id)
        self._forget(task_id)
        if task is not None:
            task.cancel()
            await task.cleanup()

    async def invalidate_session(self, should_finish_tasks: bool) -> None:
        """Stop accepting uploads and release the transport.

        Args:
            should_finish_tasks: Wait for running uploads instead of cancelling them
        """
        self._invalidated = True
        tasks = await self.active_tasks()
        if not should_finish_tasks:
            for task in tasks:
                task.cancel()
        _ = await asyncio.gather(*(task.wait() for task in tasks), return_exceptions=True)
        await self.transport.aclose()
        logger.info("Upload session %s invalidated", self.session_id)

    # Internals

    async def _uploadable(
        self,
        upload_type: UploadType,
        endpoint_request: EndpointRequest,
    ) -> tuple[Uploadable, str]:
        match upload_type:
            case DataUpload(data=data, content_type=content_type):
                return DataUploadable(data), content_type
            case FileUpload(path=path):
                return FileUploadable(path), guess_mime_type(path)
            case MultipartUpload(form=form, size_threshold=threshold):
                if form.size < threshold:
                    data = await asyncio.to_thread(self.encoder.encode, form)
                    return DataUploadable(data), form.content_type
                await asyncio.to_thread(self.temporary_directory.mkdir, parents=True, exist_ok=True)
                path = self.temporary_directory / endpoint_request.id
                await asyncio.to_thread(self.encoder.encode_to_file, form, path)
                return FileUploadable(path, remove_on_complete=True), form.content_type

    async def _size(self, uploadable: Uploadable) -> int:
        match uploadable:
            case DataUploadable(data=data):
                return len(data)
            case FileUploadable(path=path):
                return (await asyncio.to_thread(path.stat)).st_size

    async def _prepare(
        self,
        endpoint_request: EndpointRequest,
        content_type: str | None,
        total_bytes: int,
    ) -> WireRequest:
        request = build_request(endpoint_request.endpoint)
        if content_type and request.header("Content-Type") is None:
            request = request.with_header("Content-Type", content_type)
        request = request.with_header("Content-Length", str(total_bytes))
        return await adapt_request(self.request_adapters, request, endpoint_request)

    def _forget(self, task_id: str) -> None:
        _ = self._retry_configurations.pop(task_id, None)
        _ = self._content_types.pop(task_id, None)

    def _start(self, task: UploadTask, request: WireRequest) -> None:
        handle = asyncio.create_task(self._run(task, request), name=f"upload-{task.id}")
        task._attach(handle)  # pyright: ignore[reportPrivateUsage]

    async def _run(self, task: UploadTask, request: WireRequest) -> None:
        configuration = self._retry_configurations.get(task.id)
        try:
            while True:
                try:
                    response = await self.transport.upload(request, task._body())  # pyright: ignore[reportPrivateUsage]
                    response = await process_response(
                        self.response_processors, response, request, task.endpoint_request
                    )
                except Exception as error:
                    try:
                        await self.retrier.backoff_or_raise(task.id, error, configuration)
                    except Exception as surfaced:
                        processed = await process_error(self.error_processors, surfaced, task.endpoint_request)
                        logger.warning("Upload %s failed: %s", task.id, processed)
                        await task._finish(TaskState.FAILED, error=processed)  # pyright: ignore[reportPrivateUsage]
                        return
                    task._restart_attempt()  # pyright: ignore[reportPrivateUsage]
                    try:
                        request = await self._prepare(
                            task.endpoint_request,
                            self._content_types.get(task.id),
                            task.state.total_bytes,
                        )
                    except Exception as prepare_error:
                        processed = await process_error(self.error_processors, prepare_error, task.endpoint_request)
                        await task._finish(TaskState.FAILED, error=processed)  # pyright: ignore[reportPrivateUsage]
                        return
                    continue

                await self.retrier.reset(task.id)
                logger.info("Upload %s completed with status %s", task.id, response.status_code)
                try:
                    await task._finish(TaskState.COMPLETED, response=response)  # pyright: ignore[reportPrivateUsage]
                finally:
                    await task.cleanup()
                    _ = await self._tasks.remove(task.id)
                    self._forget(task.id)
                return
        except asyncio.CancelledError:
            await self.retrier.reset(task.id)
            # a completed upload stays completed when cancelled during its grace period
            if not task.state.is_terminal:
                logger.info("Upload %s cancelled", task.id)
                await task._finish(TaskState.CANCELLED)  # pyright: ignore[reportPrivateUsage]
            raise
