"""Unit tests for debug captures and their replay."""

from __future__ import annotations

from pathlib import Path

import pytest

from netlayer.core.api_manager import APIManager
from netlayer.core.endpoint import Endpoint
from netlayer.core.errors import ReplayDataMissing, UnacceptableStatusCode
from netlayer.core.retry import Retrier
from netlayer.interceptors.status_code import StatusCodeProcessor
from netlayer.interceptors.storage import EndpointRequestStorageProcessor, StoredRequestModel, capture_file_name
from netlayer.transport.replay import StoredResponseTransport
from netlayer.types.models import HTTPMethod, Response, WireRequest
from tests.fixtures.transport import USERS_PAGE_2, FakeTransport, json_response

SESSION = "20240101_120000"
USERS = Endpoint("https://reqres.in", "/api/users", query={"page": 2})
IDENTIFIER = "api_users_page_2_get"


def capturing_manager(transport: FakeTransport, storage: EndpointRequestStorageProcessor, retrier: Retrier) -> APIManager:
    return APIManager(
        transport,
        request_adapters=[],
        response_processors=[StatusCodeProcessor(), storage],
        error_processors=[storage],
        session_id=SESSION,
        retrier=retrier,
    )


class TestCaptureFileName:
    """Test capture naming."""

    def test_name(self) -> None:
        assert capture_file_name(SESSION, IDENTIFIER, 3) == f"{SESSION}_{IDENTIFIER}_3.json"


class TestEndpointRequestStorageProcessor:
    """Test capture writing."""

    async def test_each_call_gets_a_numbered_capture(
        self, tmp_path: Path, fake_transport: FakeTransport, retrier: Retrier
    ) -> None:
        storage = EndpointRequestStorageProcessor(tmp_path)
        manager = capturing_manager(fake_transport, storage, retrier)
        fake_transport.script(json_response(USERS_PAGE_2))

        _ = await manager.request(USERS)
        _ = await manager.request(USERS)
        await storage.drain()

        session_directory = tmp_path / SESSION
        assert sorted(path.name for path in session_directory.iterdir()) == [
            capture_file_name(SESSION, IDENTIFIER, 1),
            capture_file_name(SESSION, IDENTIFIER, 2),
        ]
        model = StoredRequestModel.model_validate_json(
            (session_directory / capture_file_name(SESSION, IDENTIFIER, 1)).read_bytes()
        )
        assert model.status_code == 200
        assert model.parameters == {"page": "2"}
        assert model.method == "GET"
        assert model.response_body_string is not None
        assert model.to_response().json() == USERS_PAGE_2

    async def test_error_with_response_is_captured(
        self, tmp_path: Path, fake_transport: FakeTransport, retrier: Retrier
    ) -> None:
        storage = EndpointRequestStorageProcessor(tmp_path)
        manager = capturing_manager(fake_transport, storage, retrier)
        fake_transport.script(json_response({"error": "missing"}, status_code=404))

        with pytest.raises(UnacceptableStatusCode):
            _ = await manager.request(USERS)
        await storage.drain()

        path = tmp_path / SESSION / capture_file_name(SESSION, IDENTIFIER, 1)
        assert StoredRequestModel.model_validate_json(path.read_bytes()).status_code == 404

    async def test_binary_body_survives_capture(
        self, tmp_path: Path, fake_transport: FakeTransport, retrier: Retrier
    ) -> None:
        storage = EndpointRequestStorageProcessor(tmp_path)
        manager = capturing_manager(fake_transport, storage, retrier)
        fake_transport.script(Response(200, {"Content-Type": "image/png"}, b"\x89PNG\xff"))

        _ = await manager.request(USERS)
        await storage.drain()

        model = StoredRequestModel.model_validate_json(
            (tmp_path / SESSION / capture_file_name(SESSION, IDENTIFIER, 1)).read_bytes()
        )
        assert model.response_body == b"\x89PNG\xff"
        assert model.response_body_string is None

    async def test_old_sessions_are_pruned(
        self, tmp_path: Path, fake_transport: FakeTransport, retrier: Retrier
    ) -> None:
        for name in ("20230101_000000", "20230102_000000", "20230103_000000"):
            (tmp_path / name).mkdir()
        storage = EndpointRequestStorageProcessor(tmp_path, stored_sessions_limit=2)
        fake_transport.script(json_response(USERS_PAGE_2))

        _ = await capturing_manager(fake_transport, storage, retrier).request(USERS)
        await storage.drain()

        assert sorted(path.name for path in tmp_path.iterdir()) == ["20230103_000000", SESSION]

    async def test_write_failure_does_not_affect_call(
        self, tmp_path: Path, fake_transport: FakeTransport, retrier: Retrier
    ) -> None:
        blocker = tmp_path / "not-a-directory"
        _ = blocker.write_text("file")
        storage = EndpointRequestStorageProcessor(blocker)
        fake_transport.script(json_response(USERS_PAGE_2))

        response = await capturing_manager(fake_transport, storage, retrier).request(USERS)
        await storage.drain()

        assert response.status_code == 200


class TestStoredResponseTransport:
    """Test offline replay of captures."""

    @pytest.fixture
    async def captured(self, tmp_path: Path, retrier: Retrier) -> Path:
        transport = FakeTransport([json_response({"call": 1}), json_response({"call": 2})])
        storage = EndpointRequestStorageProcessor(tmp_path)
        manager = capturing_manager(transport, storage, retrier)
        _ = await manager.request(USERS)
        _ = await manager.request(USERS)
        await storage.drain()
        return tmp_path

    async def test_replays_in_order_then_repeats_last(self, captured: Path) -> None:
        replay = StoredResponseTransport(SESSION, captured)
        request = WireRequest(HTTPMethod.GET, "https://reqres.in/api/users?page=2")

        bodies = [(await replay.send(request)).json() for _ in range(3)]

        assert bodies == [{"call": 1}, {"call": 2}, {"call": 2}]

    async def test_replay_through_manager(self, captured: Path, retrier: Retrier) -> None:
        manager = APIManager(StoredResponseTransport(SESSION, captured), session_id="replay", retrier=retrier)

        response = await manager.request(USERS)

        assert response.json() == {"call": 1}

    async def test_stream_serves_stored_body(self, captured: Path) -> None:
        replay = StoredResponseTransport(SESSION, captured)

        async with replay.stream(WireRequest(HTTPMethod.GET, "https://reqres.in/api/users?page=2")) as stream:
            chunks = [chunk async for chunk in stream.aiter_bytes()]

        assert stream.status_code == 200
        assert b"".join(chunks) == b'{"call": 1}'

    async def test_missing_capture(self, captured: Path) -> None:
        replay = StoredResponseTransport(SESSION, captured)

        with pytest.raises(ReplayDataMissing) as exc_info:
            _ = await replay.send(WireRequest(HTTPMethod.GET, "https://reqres.in/api/unknown"))

        assert "api_unknown_get_1" in str(exc_info.value)
