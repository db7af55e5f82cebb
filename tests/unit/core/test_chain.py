"""Unit tests for adapter and processor folds."""

from __future__ import annotations

import pytest

from netlayer.core.chain import adapt_request, process_error, process_response
from netlayer.core.endpoint import Endpoint
from netlayer.core.endpoint_request import EndpointRequest
from netlayer.types.models import HTTPMethod, Response, WireRequest


class HeaderAdapter:
    def __init__(self, name: str, value: str) -> None:
        self.name = name
        self.value = value

    async def adapt(self, request: WireRequest, endpoint_request: EndpointRequest) -> WireRequest:
        return request.with_header(self.name, self.value)


class SuffixProcessor:
    def __init__(self, suffix: bytes) -> None:
        self.suffix = suffix

    async def process(self, response: Response, request: WireRequest, endpoint_request: EndpointRequest) -> Response:
        return Response(response.status_code, response.headers, response.body + self.suffix, response.url)


class FailingProcessor:
    async def process(self, response: Response, request: WireRequest, endpoint_request: EndpointRequest) -> Response:
        raise RuntimeError("rejected")


class WrappingErrorProcessor:
    async def process_error(self, error: Exception, endpoint_request: EndpointRequest) -> Exception:
        return LookupError(f"wrapped {error}")


@pytest.fixture
def endpoint_request() -> EndpointRequest:
    return EndpointRequest(Endpoint("https://x.io", "/a"), "20240101_000000")


class TestChain:
    """Test fold ordering and short-circuiting."""

    async def test_adapters_run_in_order(self, endpoint_request: EndpointRequest) -> None:
        request = WireRequest(HTTPMethod.GET, "https://x.io/a")

        adapted = await adapt_request(
            [HeaderAdapter("X-Step", "1"), HeaderAdapter("X-Step", "2")],
            request,
            endpoint_request,
        )

        assert adapted.header("X-Step") == "2"

    async def test_processors_see_previous_output(self, endpoint_request: EndpointRequest) -> None:
        request = WireRequest(HTTPMethod.GET, "https://x.io/a")

        response = await process_response(
            [SuffixProcessor(b"b"), SuffixProcessor(b"c")],
            Response(200, {}, b"a"),
            request,
            endpoint_request,
        )

        assert response.body == b"abc"

    async def test_failing_processor_stops_fold(self, endpoint_request: EndpointRequest) -> None:
        request = WireRequest(HTTPMethod.GET, "https://x.io/a")

        with pytest.raises(RuntimeError, match="rejected"):
            _ = await process_response([FailingProcessor(), SuffixProcessor(b"x")], Response(200), request, endpoint_request)

    async def test_error_processors_translate(self, endpoint_request: EndpointRequest) -> None:
        error = await process_error([WrappingErrorProcessor()], ValueError("boom"), endpoint_request)

        assert isinstance(error, LookupError)
        assert str(error) == "wrapped boom"

    async def test_empty_chains_are_identity(self, endpoint_request: EndpointRequest) -> None:
        request = WireRequest(HTTPMethod.GET, "https://x.io/a")
        original = ValueError("same")

        assert await adapt_request([], request, endpoint_request) is request
        assert await process_error([], original, endpoint_request) is original
