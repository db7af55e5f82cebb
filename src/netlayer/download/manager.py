"""Download task manager.

``download_request`` retries the initiation step (opening the transfer and
validating the response head) under the retry engine. Once the head is
accepted, the body is streamed into a temporary file by a background task.
On completion the file is moved to the downloads directory, replacing any
file already there. Failures and cancellations during the transfer are not
retried. Their final state carries ``ResumableData`` for a later
``download_request``.
"""

from __future__ import annotations

import asyncio
import logging
import re
import tempfile
from collections.abc import AsyncIterator, Sequence
from pathlib import Path, PurePosixPath
from typing import Final
from urllib.parse import unquote, urlsplit

from netlayer.core.chain import adapt_request, process_error, process_response
from netlayer.core.endpoint import Endpoint
from netlayer.core.endpoint_request import EndpointRequest, make_session_id
from netlayer.core.errors import SessionInvalidated
from netlayer.core.request_builder import build_request
from netlayer.core.retry import Retrier, RetryConfiguration
from netlayer.download.state import DownloadState, ResumableData
from netlayer.download.task import DownloadTask
from netlayer.interceptors.status_code import StatusCodeProcessor
from netlayer.transport.httpx_transport import HTTPXTransport
from netlayer.types.models import Response, TaskState, WireRequest
from netlayer.types.protocols import (
    ErrorProcessor,
    FileSystem,
    RequestAdapter,
    ResponseProcessor,
    ResponseStream,
    Transport,
)
from netlayer.utils.filesystem import LocalFileSystem
from netlayer.utils.logging import correlation_id_context
from netlayer.utils.registry import TaskRegistry

logger = logging.getLogger(__name__)

DEFAULT_RETRY_CONFIGURATION = RetryConfiguration.default()
FLUSH_SIZE: Final[int] = 256 * 1024
PARTIAL_CONTENT: Final[int] = 206
FALLBACK_FILE_NAME: Final[str] = "download"

_FILENAME_PATTERN = re.compile(r"""filename\*?=(?:UTF-8'')?"?([^";]+)"?""", re.IGNORECASE)


def destination_file_name(response: Response) -> str:
    """File name for a finished download.

    The ``Content-Disposition`` filename wins; otherwise the last component
    of the response URL path is used.

    Examples:
        >>> destination_file_name(Response(200, {}, b"", "https://x.io/files/report.pdf"))
        'report.pdf'
    """
    disposition = response.header("Content-Disposition")
    if disposition and (match := _FILENAME_PATTERN.search(disposition)):
        name = PurePosixPath(unquote(match.group(1).strip())).name
        if name:
            return name
    name = PurePosixPath(unquote(urlsplit(response.url).path)).name
    return name or FALLBACK_FILE_NAME


def expected_total_bytes(response: Response, offset: int) -> int | None:
    """Full size of the content, from ``Content-Range`` or ``Content-Length``."""
    content_range = response.header("Content-Range")
    if content_range and "/" in content_range:
        total = content_range.rsplit("/", 1)[1].strip()
        if total.isdigit():
            return int(total)
    length = response.header("Content-Length")
    if length and length.strip().isdigit():
        return int(length) + offset
    return None


class DownloadAPIManager:
    """Starts downloads and tracks them until their files are in place.

    Example:
        >>> manager = DownloadAPIManager(downloads_directory=Path("downloads"))
        >>> task, response = await manager.download_url("https://example.com/a.zip")
        >>> async for state in manager.progress_stream(task):
        ...     print(state.fraction_completed)
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        file_system: FileSystem | None = None,
        downloads_directory: Path | None = None,
        temporary_directory: Path | None = None,
        request_adapters: Sequence[RequestAdapter] = (),
        response_processors: Sequence[ResponseProcessor] | None = None,
        error_processors: Sequence[ErrorProcessor] = (),
        session_id: str | None = None,
        retrier: Retrier | None = None,
    ) -> None:
        """Initialize DownloadAPIManager.

        Args:
            transport: Transport streaming responses (httpx by default)
            file_system: Disk collaborator (the local disk by default)
            downloads_directory: Where finished files are moved
            temporary_directory: Where partial content is written
            request_adapters: Stages run before each initiation attempt
            response_processors: Stages run on the response head
            error_processors: Stages run on surfaced errors
            session_id: Id grouping debug captures
            retrier: Retry engine (a fresh one by default)
        """
        self.transport: Transport = transport or HTTPXTransport()
        self.file_system: FileSystem = file_system or LocalFileSystem()
        self.downloads_directory: Path = downloads_directory or Path.cwd() / "downloads"
        self.temporary_directory: Path = temporary_directory or Path(tempfile.gettempdir()) / "netlayer"
        self.request_adapters: tuple[RequestAdapter, ...] = tuple(request_adapters)
        self.response_processors: tuple[ResponseProcessor, ...] = tuple(
            response_processors if response_processors is not None else (StatusCodeProcessor(),)
        )
        self.error_processors: tuple[ErrorProcessor, ...] = tuple(error_processors)
        self.session_id: str = session_id or make_session_id()
        self.retrier: Retrier = retrier or Retrier()
        self._tasks: TaskRegistry[DownloadTask] = TaskRegistry()
        self._invalidated: bool = False

    async def all_tasks(self) -> list[DownloadTask]:
        """Tasks whose transfer is still running."""
        return [task for task in await self._tasks.values() if task.is_active]

    def progress_stream(self, task: DownloadTask) -> AsyncIterator[DownloadState]:
        """Iterate over ``task``'s states until it reaches a terminal state."""
        return task.state_stream()

    async def download_request(
        self,
        endpoint: Endpoint,
        *,
        resumable_data: ResumableData | None = None,
        retry_configuration: RetryConfiguration | None = DEFAULT_RETRY_CONFIGURATION,
    ) -> tuple[DownloadTask, Response]:
        """Start downloading ``endpoint``.

        Args:
            endpoint: Endpoint serving the content
            resumable_data: Resume data of an interrupted download
            retry_configuration: Retry policy for the initiation step

        Returns:
            The running task and the accepted response head (without body)

        Raises:
            SessionInvalidated: If the manager's session was invalidated
            NetworkingError: The first initiation error once retries are
                exhausted, as translated by the error processors
        """
        if self._invalidated:
            raise SessionInvalidated()
        endpoint_request = EndpointRequest(endpoint, self.session_id)
        task = DownloadTask(endpoint_request)
        with correlation_id_context(task.id):
            try:
                while True:
                    try:
                        head, handle = await self._initiate(task, resumable_data)
                    except Exception as error:
                        try:
                            await self.retrier.backoff_or_raise(task.id, error, retry_configuration)
                        except Exception as surfaced:
                            processed = await process_error(self.error_processors, surfaced, endpoint_request)
                            if processed is surfaced:
                                raise
                            raise processed from surfaced
                        continue
                    break
            finally:
                await self.retrier.reset(task.id)
            task._attach(handle)  # pyright: ignore[reportPrivateUsage]
            await self._tasks.put(task.id, task)
        logger.info("Started download %s from %s", task.id, head.url)
        return task, head

    async def download_url(
        self,
        url: str,
        *,
        resumable_data: ResumableData | None = None,
        retry_configuration: RetryConfiguration | None = DEFAULT_RETRY_CONFIGURATION,
    ) -> tuple[DownloadTask, Response]:
        """Start downloading an absolute URL."""
        return await self.download_request(
            Endpoint.for_url(url),
            resumable_data=resumable_data,
            retry_configuration=retry_configuration,
        )

    async def invalidate_session(self, should_finish_tasks: bool) -> None:
        """Stop accepting downloads and release the transport.

        Args:
            should_finish_tasks: Wait for running transfers instead of cancelling them
        """
        self._invalidated = True
        tasks = await self.all_tasks()
        if not should_finish_tasks:
            for task in tasks:
                task.cancel()
        _ = await asyncio.gather(*(task.wait() for task in tasks), return_exceptions=True)
        await self.transport.aclose()
        logger.info("Download session %s invalidated", self.session_id)

    # Internals

    async def _initiate(
        self,
        task: DownloadTask,
        resumable_data: ResumableData | None,
    ) -> tuple[Response, asyncio.Task[None]]:
        request = build_request(task.endpoint_request.endpoint)
        if resumable_data is not None:
            request = request.with_header("Range", resumable_data.range_header)
            if resumable_data.etag:
                request = request.with_header("If-Range", resumable_data.etag)
        request = await adapt_request(self.request_adapters, request, task.endpoint_request)
        if self._invalidated:
            raise SessionInvalidated()

        loop = asyncio.get_running_loop()
        head_future: asyncio.Future[Response] = loop.create_future()
        proceed = asyncio.Event()
        handle = asyncio.create_task(
            self._transfer(task, request, resumable_data, head_future, proceed),
            name=f"download-{task.id}",
        )
        try:
            head = await head_future
            head = await process_response(self.response_processors, head, request, task.endpoint_request)
        except BaseException:
            _ = handle.cancel()
            _ = await asyncio.gather(handle, return_exceptions=True)
            raise
        proceed.set()
        return head, handle

    async def _transfer(
        self,
        task: DownloadTask,
        request: WireRequest,
        resumable_data: ResumableData | None,
        head_future: asyncio.Future[Response],
        proceed: asyncio.Event,
    ) -> None:
        try:
            async with self.transport.stream(request) as stream:
                head = Response(
                    status_code=stream.status_code,
                    headers=dict(stream.headers),
                    body=b"",
                    url=stream.url,
                )
                head_future.set_result(head)
                await proceed.wait()
                with correlation_id_context(task.id):
                    await self._receive(task, stream, head, resumable_data)
        except asyncio.CancelledError:
            if not head_future.done():
                _ = head_future.cancel()
            raise
        except Exception as error:
            if not head_future.done():
                head_future.set_exception(error)
                return
            if not task.state.is_terminal:
                processed = await process_error(self.error_processors, error, task.endpoint_request)
                await task._finish(TaskState.FAILED, error=processed)  # pyright: ignore[reportPrivateUsage]
        finally:
            if proceed.is_set():
                _ = await self._tasks.remove(task.id)

    async def _receive(
        self,
        task: DownloadTask,
        stream: ResponseStream,
        head: Response,
        resumable_data: ResumableData | None,
    ) -> None:
        await self.file_system.create_directory(self.temporary_directory)
        if resumable_data is not None and head.status_code == PARTIAL_CONTENT:
            partial_path = resumable_data.partial_path
            written = resumable_data.offset
        else:
            if resumable_data is not None:
                logger.info("Server ignored the range request, restarting download %s", task.id)
                if await self.file_system.exists(resumable_data.partial_path):
                    await self.file_system.remove_item(resumable_data.partial_path)
            partial_path = self.temporary_directory / f"{task.id}.download"
            written = 0
            await self.file_system.write(b"", partial_path)

        etag = head.header("ETag")
        received = written
        buffer = bytearray()
        task._emit(  # pyright: ignore[reportPrivateUsage]
            task_state=TaskState.RUNNING,
            downloaded_bytes=received,
            total_bytes=expected_total_bytes(head, written),
        )
        try:
            async for chunk in stream.aiter_bytes():
                await task._wait_if_paused()  # pyright: ignore[reportPrivateUsage]
                buffer.extend(chunk)
                received += len(chunk)
                if len(buffer) >= FLUSH_SIZE:
                    await self.file_system.append(bytes(buffer), partial_path)
                    written += len(buffer)
                    buffer.clear()
                task._emit(downloaded_bytes=received)  # pyright: ignore[reportPrivateUsage]
            if buffer:
                await self.file_system.append(bytes(buffer), partial_path)
                written += len(buffer)
                buffer.clear()
        except asyncio.CancelledError:
            written += await self._flush(buffer, partial_path)
            logger.info("Download %s cancelled after %d bytes", task.id, written)
            await task._finish(  # pyright: ignore[reportPrivateUsage]
                TaskState.CANCELLED,
                resumable_data=ResumableData(head.url, partial_path, written, etag),
            )
            raise
        except Exception as error:
            written += await self._flush(buffer, partial_path)
            processed = await process_error(self.error_processors, error, task.endpoint_request)
            logger.warning("Download %s failed after %d bytes: %s", task.id, written, processed)
            await task._finish(  # pyright: ignore[reportPrivateUsage]
                TaskState.FAILED,
                error=processed,
                resumable_data=ResumableData(head.url, partial_path, written, etag),
            )
            return

        destination = self.downloads_directory / destination_file_name(head)
        await self.file_system.create_directory(self.downloads_directory)
        if await self.file_system.exists(destination):
            await self.file_system.remove_item(destination)
        await self.file_system.move_item(partial_path, destination)
        logger.info("Download %s saved to %s", task.id, destination)
        await task._finish(  # pyright: ignore[reportPrivateUsage]
            TaskState.COMPLETED,
            downloaded_bytes=received,
            total_bytes=task.state.total_bytes if task.state.total_bytes is not None else received,
            downloaded_file_path=destination,
        )

    async def _flush(self, buffer: bytearray, partial_path: Path) -> int:
        """Persist buffered bytes so they count toward resume data."""
        if not buffer:
            return 0
        try:
            await self.file_system.append(bytes(buffer), partial_path)
        except OSError:
            logger.warning("Failed to persist %d buffered bytes to %s", len(buffer), partial_path)
            return 0
        return len(buffer)
