"""Unit tests for wire-level models."""

from __future__ import annotations

import pytest

from netlayer.types.models import (
    HTTPMethod,
    Response,
    StatusCodeRange,
    TaskState,
    WireRequest,
    find_header,
    url_identifier,
)


class TestStatusCodeRange:
    """Test status code range membership."""

    def test_success_range_is_half_open(self) -> None:
        success = StatusCodeRange.success()

        assert 200 in success
        assert 299 in success
        assert 300 not in success
        assert 199 not in success

    def test_success_and_redirect_covers_3xx(self) -> None:
        assert 304 in StatusCodeRange.success_and_redirect()
        assert 404 not in StatusCodeRange.success_and_redirect()

    def test_empty_range(self) -> None:
        assert StatusCodeRange(300, 200).is_empty
        assert not StatusCodeRange.redirect().is_empty

    def test_non_int_is_never_contained(self) -> None:
        assert "200" not in StatusCodeRange.success()

    def test_str_renders_half_open_notation(self) -> None:
        assert str(StatusCodeRange.success()) == "200..<300"


class TestURLIdentifier:
    """Test identifier derivation from URLs."""

    def test_path_query_and_method(self) -> None:
        assert url_identifier("https://reqres.in/api/users?page=2", "GET") == "api_users_page_2_get"

    def test_query_items_sorted_by_name(self) -> None:
        first = url_identifier("https://x.io/a?b=2&a=1", "POST")
        second = url_identifier("https://x.io/a?a=1&b=2", "POST")

        assert first == second == "a_a_1_b_2_post"

    def test_query_values_are_decoded_and_slashes_replaced(self) -> None:
        assert url_identifier("https://x.io/files?name=a%2Fb", "GET") == "files_name_a-b_get"

    def test_root_url_yields_method_only(self) -> None:
        assert url_identifier("https://x.io", "DELETE") == "delete"


class TestWireRequest:
    """Test immutable request helpers."""

    def test_with_header_replaces_case_insensitively(self) -> None:
        request = WireRequest(HTTPMethod.GET, "https://x.io", {"content-type": "text/plain"})

        updated = request.with_header("Content-Type", "application/json")

        assert dict(updated.headers) == {"Content-Type": "application/json"}
        assert dict(request.headers) == {"content-type": "text/plain"}

    def test_header_lookup_ignores_case(self) -> None:
        request = WireRequest(HTTPMethod.GET, "https://x.io", {"X-Trace": "abc"})

        assert request.header("x-trace") == "abc"
        assert request.header("missing") is None

    def test_identifier_matches_url_identifier(self) -> None:
        request = WireRequest(HTTPMethod.GET, "https://reqres.in/api/users?page=2")

        assert request.identifier == "api_users_page_2_get"


class TestResponse:
    """Test response decoding helpers."""

    def test_text_and_json(self) -> None:
        response = Response(200, {}, b'{"ok": true}')

        assert response.text() == '{"ok": true}'
        assert response.json() == {"ok": True}

    def test_text_returns_none_for_binary(self) -> None:
        assert Response(200, {}, b"\xff\xfe").text() is None

    def test_json_raises_for_invalid_body(self) -> None:
        with pytest.raises(ValueError):
            _ = Response(200, {}, b"not json").json()

    def test_find_header(self) -> None:
        assert find_header({"ETag": '"v1"'}, "etag") == '"v1"'


class TestTaskState:
    """Test task lifecycle helpers."""

    @pytest.mark.parametrize(
        ("state", "terminal"),
        [
            (TaskState.CREATED, False),
            (TaskState.RUNNING, False),
            (TaskState.SUSPENDED, False),
            (TaskState.COMPLETED, True),
            (TaskState.FAILED, True),
            (TaskState.CANCELLED, True),
        ],
    )
    def test_is_terminal(self, state: TaskState, terminal: bool) -> None:
        assert state.is_terminal is terminal
