"""Unit tests for the upload task manager."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable
from pathlib import Path
from typing import override

import pytest

from netlayer.core.endpoint import Endpoint
from netlayer.core.endpoint_request import EndpointRequest
from netlayer.core.errors import ConnectionFailed, MissingAuthorizationData, SessionInvalidated, UploadTaskNotFound
from netlayer.core.retry import DelayPolicy, Retrier, RetryConfiguration
from netlayer.types.models import HTTPMethod, Response, TaskState, WireRequest
from netlayer.upload import (
    DataUpload,
    FileUpload,
    MultipartFormData,
    MultipartFormDataEncoder,
    MultipartUpload,
    UploadAPIManager,
    UploadState,
)
from netlayer.upload.task import UPLOAD_CHUNK_SIZE
from tests.fixtures.transport import FakeTransport, json_response

ENDPOINT = Endpoint("https://reqres.in", "/api/upload", HTTPMethod.POST)
ONE_RETRY = RetryConfiguration(1, DelayPolicy.constant(0))


class GatedTransport(FakeTransport):
    """Reads one chunk, signals, then waits for permission before reading on."""

    def __init__(self) -> None:
        super().__init__([json_response({"ok": True})])
        self.first_chunk: asyncio.Event = asyncio.Event()
        self.proceed: asyncio.Event = asyncio.Event()
        self.chunks: list[bytes] = []

    @override
    async def upload(self, request: WireRequest, content: AsyncIterable[bytes]) -> Response:
        self.requests.append(request)
        async for chunk in content:
            self.chunks.append(chunk)
            if len(self.chunks) == 1:
                self.first_chunk.set()
                await self.proceed.wait()
        return self._next()


class HangingTransport(FakeTransport):
    """Never finishes an upload."""

    @override
    async def upload(self, request: WireRequest, content: AsyncIterable[bytes]) -> Response:
        self.requests.append(request)
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


class RejectingAdapter:
    """Fails every request for lack of credentials."""

    async def adapt(self, request: WireRequest, endpoint_request: EndpointRequest) -> WireRequest:
        raise MissingAuthorizationData()


@pytest.fixture
def manager(fake_transport: FakeTransport, retrier: Retrier, tmp_path: Path) -> UploadAPIManager:
    return UploadAPIManager(fake_transport, retrier=retrier, temporary_directory=tmp_path / "tmp")


async def collect(task_states: AsyncIterable[UploadState]) -> list[UploadState]:
    return [state async for state in task_states]


class TestUpload:
    """Test successful uploads."""

    async def test_data_upload_completes(self, manager: UploadAPIManager, fake_transport: FakeTransport) -> None:
        fake_transport.script(json_response({"id": 1}, status_code=201))

        task = await manager.upload(DataUpload(b"payload", "text/plain"), ENDPOINT)
        state = await task.wait()

        assert state.task_state is TaskState.COMPLETED
        assert state.response is not None
        assert state.response.status_code == 201
        assert state.sent_bytes == 7
        assert state.fraction_completed == 1.0
        assert fake_transport.uploaded == [b"payload"]
        request = fake_transport.requests[0]
        assert request.header("Content-Type") == "text/plain"
        assert request.header("Content-Length") == "7"
        assert await manager.task(task.id) is None

    async def test_terminal_state_arrives_before_stream_ends(
        self, manager: UploadAPIManager, fake_transport: FakeTransport
    ) -> None:
        fake_transport.script(json_response({}))

        task = await manager.upload(DataUpload(b"x" * (UPLOAD_CHUNK_SIZE * 2 + 10), "application/octet-stream"), ENDPOINT)
        states = await collect(task.state_stream())

        assert states[0].task_state is TaskState.RUNNING
        assert states[-1].task_state is TaskState.COMPLETED
        assert [state.sent_bytes for state in states if state.task_state is TaskState.RUNNING][-1] == UPLOAD_CHUNK_SIZE * 2 + 10

    async def test_file_upload_guesses_content_type(
        self, manager: UploadAPIManager, fake_transport: FakeTransport, tmp_path: Path
    ) -> None:
        path = tmp_path / "photo.png"
        _ = path.write_bytes(b"\x89PNG" * 100)
        fake_transport.script(json_response({}))

        task = await manager.upload(FileUpload(path), ENDPOINT)
        state = await task.wait()

        assert state.task_state is TaskState.COMPLETED
        assert fake_transport.requests[0].header("Content-Type") == "image/png"
        assert fake_transport.uploaded == [b"\x89PNG" * 100]
        assert path.exists()

    async def test_small_multipart_is_encoded_in_memory(
        self, manager: UploadAPIManager, fake_transport: FakeTransport, tmp_path: Path
    ) -> None:
        form = MultipartFormData(boundary="boundary")
        form.append(b"Hello", "first-data")
        fake_transport.script(json_response({}))

        task = await manager.upload(MultipartUpload(form), ENDPOINT)
        _ = await task.wait()

        assert fake_transport.uploaded == [MultipartFormDataEncoder().encode(form)]
        assert fake_transport.requests[0].header("Content-Type") == "multipart/form-data; boundary=boundary"
        assert not (tmp_path / "tmp").exists()

    async def test_large_multipart_goes_through_temporary_file(
        self, manager: UploadAPIManager, fake_transport: FakeTransport, tmp_path: Path
    ) -> None:
        form = MultipartFormData(boundary="boundary")
        form.append(b"Hello" * 100, "first-data")
        fake_transport.script(json_response({}))

        task = await manager.upload(MultipartUpload(form, size_threshold=10), ENDPOINT)
        temporary_file = tmp_path / "tmp" / task.id
        assert temporary_file.exists()
        _ = await task.wait()

        assert fake_transport.uploaded == [MultipartFormDataEncoder().encode(form)]
        assert not temporary_file.exists()

    async def test_upload_to_url_posts(self, manager: UploadAPIManager, fake_transport: FakeTransport) -> None:
        fake_transport.script(json_response({}))

        task = await manager.upload_to_url(DataUpload(b"x", "text/plain"), "https://uploads.example.com/files?kind=raw")
        _ = await task.wait()

        assert fake_transport.requests[0].method is HTTPMethod.POST
        assert fake_transport.requests[0].url == "https://uploads.example.com/files?kind=raw"


class TestFailureAndRetry:
    """Test failed uploads and explicit retries."""

    async def test_fails_after_retries(self, manager: UploadAPIManager, fake_transport: FakeTransport) -> None:
        first = ConnectionFailed("refused", ENDPOINT.base_url)
        fake_transport.script(first)

        task = await manager.upload(DataUpload(b"abc", "text/plain"), ENDPOINT, retry_configuration=ONE_RETRY)
        states = await collect(task.state_stream())

        assert states[-1].task_state is TaskState.FAILED
        assert states[-1].error is first
        assert len(fake_transport.requests) == 2
        assert await manager.task(task.id) is task

    async def test_recovers_within_retries(self, manager: UploadAPIManager, fake_transport: FakeTransport) -> None:
        fake_transport.script(json_response({}, status_code=503), json_response({}, status_code=200))

        task = await manager.upload(DataUpload(b"abc", "text/plain"), ENDPOINT, retry_configuration=ONE_RETRY)
        state = await task.wait()

        assert state.task_state is TaskState.COMPLETED
        assert fake_transport.uploaded == [b"abc", b"abc"]

    async def test_retry_failed_task(self, manager: UploadAPIManager, fake_transport: FakeTransport) -> None:
        fake_transport.script(ConnectionFailed("refused", ENDPOINT.base_url))
        task = await manager.upload(DataUpload(b"abc", "text/plain"), ENDPOINT, retry_configuration=None)
        assert (await task.wait()).task_state is TaskState.FAILED

        fake_transport.items = [json_response({}, status_code=201)]
        await manager.retry(task.id)
        state = await task.wait()

        assert state.task_state is TaskState.COMPLETED
        assert state.error is None
        assert await manager.task(task.id) is None

    async def test_retry_unknown_task(self, manager: UploadAPIManager) -> None:
        with pytest.raises(UploadTaskNotFound):
            await manager.retry("missing")

    async def test_discard_failed_task(self, manager: UploadAPIManager, fake_transport: FakeTransport) -> None:
        fake_transport.script(ConnectionFailed("refused", ENDPOINT.base_url))
        task = await manager.upload(DataUpload(b"abc", "text/plain"), ENDPOINT, retry_configuration=None)
        _ = await task.wait()

        await manager.discard(task.id)

        assert await manager.task(task.id) is None

    async def test_unknown_state_stream_is_empty(self, manager: UploadAPIManager) -> None:
        assert await collect(manager.state_stream("missing")) == []

    async def test_temporary_file_removed_when_setup_fails(
        self, fake_transport: FakeTransport, retrier: Retrier, tmp_path: Path
    ) -> None:
        manager = UploadAPIManager(
            fake_transport,
            request_adapters=[RejectingAdapter()],
            retrier=retrier,
            temporary_directory=tmp_path / "tmp",
        )
        form = MultipartFormData(boundary="boundary")
        form.append(b"Hello" * 100, "first-data")

        with pytest.raises(MissingAuthorizationData):
            _ = await manager.upload(MultipartUpload(form, size_threshold=10), ENDPOINT)

        assert list((tmp_path / "tmp").iterdir()) == []
        assert fake_transport.requests == []
        assert await manager.active_tasks() == []


class TestPauseAndCancel:
    """Test pausing, resuming and cancelling."""

    async def test_pause_and_resume(self, retrier: Retrier) -> None:
        transport = GatedTransport()
        manager = UploadAPIManager(transport, retrier=retrier)
        payload = b"z" * (UPLOAD_CHUNK_SIZE * 3)

        task = await manager.upload(DataUpload(payload, "application/octet-stream"), ENDPOINT)
        await transport.first_chunk.wait()
        task.pause()
        transport.proceed.set()
        await asyncio.sleep(0.05)

        assert task.state.task_state is TaskState.SUSPENDED
        assert task.state.sent_bytes == UPLOAD_CHUNK_SIZE
        assert len(transport.chunks) == 1

        task.resume()
        state = await task.wait()

        assert state.task_state is TaskState.COMPLETED
        assert b"".join(transport.chunks) == payload

    async def test_resume_ignored_unless_suspended(self, manager: UploadAPIManager, fake_transport: FakeTransport) -> None:
        fake_transport.script(json_response({}))
        task = await manager.upload(DataUpload(b"abc", "text/plain"), ENDPOINT)
        _ = await task.wait()

        task.resume()

        assert task.state.task_state is TaskState.COMPLETED

    async def test_cancel_running_upload(self, retrier: Retrier) -> None:
        transport = HangingTransport()
        manager = UploadAPIManager(transport, retrier=retrier)

        task = await manager.upload(DataUpload(b"abc", "text/plain"), ENDPOINT)
        await asyncio.sleep(0.01)
        assert await manager.active_tasks() == [task]
        task.cancel()
        states = await collect(task.state_stream())

        assert states[-1].task_state is TaskState.CANCELLED
        assert (await task.wait()).task_state is TaskState.CANCELLED
        assert await manager.active_tasks() == []

    async def test_cancel_before_first_attempt_runs(
        self, manager: UploadAPIManager, fake_transport: FakeTransport
    ) -> None:
        fake_transport.script(json_response({}))

        task = await manager.upload(DataUpload(b"abc", "text/plain"), ENDPOINT)
        task.cancel()
        states = await collect(task.state_stream())

        assert states[-1].task_state is TaskState.CANCELLED
        assert fake_transport.requests == []

    async def test_cancelled_task_can_be_retried(self, retrier: Retrier) -> None:
        transport = HangingTransport()
        manager = UploadAPIManager(transport, retrier=retrier)
        task = await manager.upload(DataUpload(b"abc", "text/plain"), ENDPOINT)
        await asyncio.sleep(0.01)
        task.cancel()
        _ = await task.wait()

        await manager.retry(task.id)
        await asyncio.sleep(0.01)

        assert task.state.task_state is TaskState.RUNNING
        assert len(transport.requests) == 2
        task.cancel()
        _ = await task.wait()

    async def test_cancel_after_completion_keeps_completed_state(
        self, manager: UploadAPIManager, fake_transport: FakeTransport, tmp_path: Path
    ) -> None:
        form = MultipartFormData(boundary="boundary")
        form.append(b"Hello" * 100, "first-data")
        fake_transport.script(json_response({}))
        task = await manager.upload(MultipartUpload(form, size_threshold=10), ENDPOINT)
        states: list[UploadState] = []

        async def consume() -> None:
            async for state in task.state_stream():
                states.append(state)
                if state.task_state is TaskState.COMPLETED:
                    task.cancel()

        await asyncio.wait_for(consume(), timeout=1)
        final = await task.wait()

        assert [state.task_state for state in states if state.is_terminal] == [TaskState.COMPLETED]
        assert final.task_state is TaskState.COMPLETED
        assert not (tmp_path / "tmp" / task.id).exists()
        assert await manager.task(task.id) is None


class TestInvalidateSession:
    """Test session invalidation."""

    async def test_cancels_running_uploads_and_rejects_new_ones(self, retrier: Retrier) -> None:
        transport = HangingTransport()
        manager = UploadAPIManager(transport, retrier=retrier)
        task = await manager.upload(DataUpload(b"abc", "text/plain"), ENDPOINT)
        await asyncio.sleep(0.01)

        await manager.invalidate_session(should_finish_tasks=False)

        assert task.state.task_state is TaskState.CANCELLED
        assert transport.closed
        with pytest.raises(SessionInvalidated):
            _ = await manager.upload(DataUpload(b"abc", "text/plain"), ENDPOINT)
        with pytest.raises(SessionInvalidated):
            await manager.retry(task.id)

    async def test_finishes_running_uploads(self, manager: UploadAPIManager, fake_transport: FakeTransport) -> None:
        fake_transport.script(json_response({}))
        task = await manager.upload(DataUpload(b"abc", "text/plain"), ENDPOINT)

        await manager.invalidate_session(should_finish_tasks=True)

        assert task.state.task_state is TaskState.COMPLETED
        assert fake_transport.closed
