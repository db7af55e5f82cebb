"""Unit tests for URL, query and body building."""

from __future__ import annotations

import json

import pytest

from netlayer.core.endpoint import (
    ArrayEncoding,
    ArrayParameter,
    CustomEncodedParameter,
    Endpoint,
    JSONBody,
    PercentEncodedParameter,
    RawBody,
)
from netlayer.core.errors import BodyEncodingError, InvalidURLComponents
from netlayer.core.request_builder import (
    build_request,
    build_url,
    encode_query,
    endpoint_identifier,
    percent_encoded,
    plus_sign_encoded,
)
from netlayer.types.models import HTTPMethod

BASE_URL = "https://reqres.in"


class TestQueryEncoding:
    """Test query parameter encoding."""

    def test_array_individual(self) -> None:
        query = {"filter": ArrayParameter([1, 2, 3], ArrayEncoding.INDIVIDUAL)}

        assert encode_query(query) == "filter=1&filter=2&filter=3"

    def test_array_comma_separated(self) -> None:
        query = {"filter": ArrayParameter([1, 2, 3], ArrayEncoding.COMMA_SEPARATED)}

        assert encode_query(query) == "filter=1,2,3"

    def test_single_scalar(self) -> None:
        assert encode_query({"filter": 1}) == "filter=1"

    def test_booleans_render_lowercase(self) -> None:
        assert encode_query({"active": True, "deleted": False}) == "active=true&deleted=false"

    def test_keys_are_sorted_and_array_order_kept(self) -> None:
        query = {"z": "last", "a": ArrayParameter([3, 1, 2])}

        assert encode_query(query) == "a=3&a=1&a=2&z=last"

    def test_default_encoding_keeps_plus_literal(self) -> None:
        assert encode_query({"date": "2023-11-29T12:13:04.598+0100"}) == "date=2023-11-29T12:13:04.598+0100"

    def test_plus_sign_wrapper_escapes_plus(self) -> None:
        query = {"date": PercentEncodedParameter.plus_sign("2023-11-29T12:13:04.598+0100")}

        assert encode_query(query) == "date=2023-11-29T12:13:04.598%2B0100"

    def test_custom_encoded_is_verbatim(self) -> None:
        assert encode_query({"q": CustomEncodedParameter("a%20b&c")}) == "q=a%20b&c"

    def test_default_encoding_escapes_delimiters(self) -> None:
        assert encode_query({"q": "a&b=c d"}) == "q=a%26b%3Dc%20d"

    def test_empty_query(self) -> None:
        assert encode_query(None) == ""
        assert encode_query({}) == ""

    def test_encoders(self) -> None:
        assert percent_encoded("a+b c") == "a+b%20c"
        assert plus_sign_encoded("a+b c") == "a%2Bb%20c"


class TestBuildURL:
    """Test URL assembly."""

    def test_path_and_query(self) -> None:
        endpoint = Endpoint(BASE_URL, "/api/users", query={"page": 2})

        assert build_url(endpoint) == "https://reqres.in/api/users?page=2"

    def test_empty_path_keeps_base(self) -> None:
        assert build_url(Endpoint("https://reqres.in/api/")) == "https://reqres.in/api/"

    def test_exactly_one_slash_between_base_and_path(self) -> None:
        assert build_url(Endpoint("https://reqres.in/api/", "/users")) == "https://reqres.in/api/users"
        assert build_url(Endpoint("https://reqres.in/api", "users")) == "https://reqres.in/api/users"

    def test_base_with_query_appends_with_ampersand(self) -> None:
        endpoint = Endpoint("https://x.io/search?v=1", query={"q": "a"})

        assert build_url(endpoint) == "https://x.io/search?v=1&q=a"

    def test_path_is_percent_encoded(self) -> None:
        assert build_url(Endpoint(BASE_URL, "/files/my report.pdf")) == "https://reqres.in/files/my%20report.pdf"

    @pytest.mark.parametrize(
        "base_url",
        ["ftp://x.io", "reqres.in", "https://", "https://exa mple.com"],
    )
    def test_invalid_base_url(self, base_url: str) -> None:
        with pytest.raises(InvalidURLComponents) as exc_info:
            _ = build_url(Endpoint(base_url, "/users"))

        assert exc_info.value.base_url == base_url
        assert not exc_info.value.retryable

    def test_path_with_query_is_rejected(self) -> None:
        with pytest.raises(InvalidURLComponents):
            _ = build_url(Endpoint(BASE_URL, "/users?page=2"))


class TestBuildRequest:
    """Test wire request production."""

    def test_get_request_without_body(self) -> None:
        request = build_request(Endpoint(BASE_URL, "/api/users", headers={"Accept": "application/json"}))

        assert request.method is HTTPMethod.GET
        assert request.body is None
        assert request.header("accept") == "application/json"

    def test_json_body_sets_content_type(self) -> None:
        endpoint = Endpoint(BASE_URL, "/api/users", method=HTTPMethod.POST, body=JSONBody({"name": "neo"}))

        request = build_request(endpoint)

        assert request.header("Content-Type") == "application/json"
        assert json.loads(request.body or b"") == {"name": "neo"}

    def test_explicit_content_type_is_kept(self) -> None:
        endpoint = Endpoint(
            BASE_URL,
            "/api/users",
            method=HTTPMethod.POST,
            headers={"content-type": "application/vnd.api+json"},
            body=JSONBody({"name": "neo"}),
        )

        assert build_request(endpoint).header("Content-Type") == "application/vnd.api+json"

    def test_raw_body(self) -> None:
        endpoint = Endpoint(BASE_URL, "/blob", method=HTTPMethod.PUT, body=RawBody(b"\x00\x01"))

        request = build_request(endpoint)

        assert request.body == b"\x00\x01"
        assert request.header("Content-Type") == "application/octet-stream"

    def test_unserializable_body(self) -> None:
        endpoint = Endpoint(BASE_URL, "/x", method=HTTPMethod.POST, body=JSONBody(object()))

        with pytest.raises(BodyEncodingError):
            _ = build_request(endpoint)


class TestEndpointIdentifier:
    """Test endpoint identifiers."""

    def test_users_page(self) -> None:
        endpoint = Endpoint(BASE_URL, "/api/users", query={"page": 2})

        assert endpoint_identifier(endpoint) == "api_users_page_2_get"

    def test_matches_request_identifier(self) -> None:
        endpoint = Endpoint(
            BASE_URL,
            "/api/Users",
            method=HTTPMethod.POST,
            query={"b": ArrayParameter(["x", "y"]), "a": True},
        )

        assert endpoint_identifier(endpoint) == build_request(endpoint).identifier
        assert endpoint_identifier(endpoint) == "api_users_a_true_b_x_b_y_post"

    def test_invalid_url_still_has_identifier(self) -> None:
        assert endpoint_identifier(Endpoint("not a url", "/x")) == "get"
