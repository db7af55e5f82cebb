"""Unit tests for diagnostic request logging."""

from __future__ import annotations

import logging

import pytest

from netlayer.core.endpoint import Endpoint, JSONBody, RawBody
from netlayer.core.endpoint_request import EndpointRequest
from netlayer.core.errors import ConnectionFailed, UnacceptableStatusCode
from netlayer.interceptors.logging_interceptor import LoggingInterceptor, pretty_body
from netlayer.types.models import HTTPMethod, StatusCodeRange, WireRequest
from netlayer.utils.sanitization import REDACTED
from tests.fixtures.transport import json_response

LOGGER_NAME = "tests.logging_interceptor"


@pytest.fixture
def interceptor(caplog: pytest.LogCaptureFixture) -> LoggingInterceptor:
    caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
    return LoggingInterceptor(logging.getLogger(LOGGER_NAME))


class TestPrettyBody:
    """Test body rendering."""

    def test_json_is_indented_and_sorted(self) -> None:
        assert pretty_body(b'{"b": 1, "a": 2}') == '{\n  "a": 2,\n  "b": 1\n}'

    def test_plain_text(self) -> None:
        assert pretty_body(b"hello") == "hello"

    def test_binary(self) -> None:
        assert pretty_body(b"\x80\x81") == "<2 bytes>"

    def test_empty(self) -> None:
        assert pretty_body(b"") is None
        assert pretty_body(None) is None


class TestLoggingInterceptor:
    """Test what each stage writes to the log."""

    async def test_request_headers_are_redacted(
        self, interceptor: LoggingInterceptor, caplog: pytest.LogCaptureFixture
    ) -> None:
        request = WireRequest(
            HTTPMethod.POST,
            "https://reqres.in/api/users",
            {"Authorization": "Bearer secret-token", "Accept": "application/json"},
            b'{"name": "morpheus"}',
        )
        endpoint = Endpoint("https://reqres.in", "/api/users", HTTPMethod.POST, body=JSONBody({"name": "morpheus"}))

        adapted = await interceptor.adapt(request, EndpointRequest(endpoint, "session"))

        assert adapted is request
        assert "--> POST https://reqres.in/api/users" in caplog.text
        assert f"Authorization: {REDACTED}" in caplog.text
        assert "secret-token" not in caplog.text
        assert '"name": "morpheus"' in caplog.text

    async def test_hidden_body_is_not_logged(
        self, interceptor: LoggingInterceptor, caplog: pytest.LogCaptureFixture
    ) -> None:
        request = WireRequest(HTTPMethod.POST, "https://reqres.in/api/login", body=b"password=hunter2")
        endpoint = Endpoint(
            "https://reqres.in", "/api/login", HTTPMethod.POST, body=RawBody(b"password=hunter2", hide_from_logs=True)
        )

        _ = await interceptor.adapt(request, EndpointRequest(endpoint, "session"))

        assert "hunter2" not in caplog.text
        assert "Body is hidden from logs" in caplog.text

    async def test_response_is_logged_with_selected_headers(
        self, interceptor: LoggingInterceptor, caplog: pytest.LogCaptureFixture
    ) -> None:
        response = json_response({"page": 2})
        request = WireRequest(HTTPMethod.GET, "https://reqres.in/api/users?page=2")

        processed = await interceptor.process(
            response, request, EndpointRequest(Endpoint("https://reqres.in", "/api/users"), "session")
        )

        assert processed is response
        assert "<-- 200 GET https://reqres.in/api/users?page=2" in caplog.text
        assert "Content-Type: application/json" in caplog.text

    async def test_nothing_rendered_above_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger=LOGGER_NAME)
        interceptor = LoggingInterceptor(logging.getLogger(LOGGER_NAME))

        _ = await interceptor.adapt(
            WireRequest(HTTPMethod.GET, "https://reqres.in/api/users"),
            EndpointRequest(Endpoint("https://reqres.in", "/api/users"), "session"),
        )

        assert caplog.records == []

    async def test_status_error_logged_with_body(
        self, interceptor: LoggingInterceptor, caplog: pytest.LogCaptureFixture
    ) -> None:
        error = UnacceptableStatusCode(404, StatusCodeRange.success(), json_response({"missing": True}, 404))
        endpoint_request = EndpointRequest(Endpoint("https://reqres.in/api", "/users/23"), "session")

        returned = await interceptor.process_error(error, endpoint_request)

        assert returned is error
        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert "Request failed with status 404: GET /api/users/23" in record.getMessage()
        assert '"missing": true' in record.getMessage()

    async def test_transport_error_logged(
        self, interceptor: LoggingInterceptor, caplog: pytest.LogCaptureFixture
    ) -> None:
        error = ConnectionFailed("connection refused", "https://reqres.in/api/users")

        _ = await interceptor.process_error(
            error, EndpointRequest(Endpoint("https://reqres.in", "/api/users"), "session")
        )

        assert "Request failed: GET /api/users: ConnectionFailed: connection refused" in caplog.text
