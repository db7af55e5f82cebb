"""Turn endpoint descriptors into transport-ready requests.

URL assembly, query encoding, body encoding and the deterministic endpoint
identifier all live here. Query items are always emitted sorted by key so
that identical logical calls produce identical URLs and identifiers.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from urllib.parse import quote, urlsplit

from netlayer.core.endpoint import (
    ArrayEncoding,
    ArrayParameter,
    CustomEncodedParameter,
    Endpoint,
    PercentEncodedParameter,
    QueryValue,
)
from netlayer.core.errors import BodyEncodingError, InvalidURLComponents
from netlayer.types.aliases import QueryScalar
from netlayer.types.models import WireRequest, url_identifier

logger = logging.getLogger(__name__)

# Characters allowed unescaped in a query component, minus the pair delimiters
_QUERY_SAFE = "!$'()*+,;:@/?"
_PATH_SAFE = "/%:@!$&'()*+,;="
_ALLOWED_SCHEMES = frozenset({"http", "https"})


def percent_encoded(value: str) -> str:
    """Percent-encode a query component with the default rules.

    Args:
        value: Raw value

    Returns:
        Encoded value; ``+`` and ``:`` stay literal
    """
    return quote(value, safe=_QUERY_SAFE)


def plus_sign_encoded(value: str) -> str:
    """Percent-encode a query component and additionally escape ``+``.

    Examples:
        >>> plus_sign_encoded("2023-11-29T12:13:04.598+0100")
        '2023-11-29T12:13:04.598%2B0100'
    """
    return percent_encoded(value).replace("+", "%2B")


def _render_scalar(value: QueryScalar) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _raw_items(name: str, value: QueryValue) -> list[tuple[str, str, bool]]:
    """Expand one parameter into ``(name, value, already_encoded)`` triples."""
    match value:
        case ArrayParameter(values=values, encoding=ArrayEncoding.INDIVIDUAL):
            return [(name, _render_scalar(item), False) for item in values]
        case ArrayParameter(values=values, encoding=ArrayEncoding.COMMA_SEPARATED):
            return [(name, ",".join(_render_scalar(item) for item in values), False)]
        case PercentEncodedParameter(value=encoded):
            return [(name, encoded, True)]
        case CustomEncodedParameter(encoded_value=encoded):
            return [(name, encoded, True)]
        case _:
            return [(name, _render_scalar(value), False)]


def query_items(query: Mapping[str, QueryValue] | None) -> list[tuple[str, str]]:
    """Encode query parameters into ordered ``(name, encoded_value)`` pairs.

    Items are sorted by key; array values keep their order within a key.

    Args:
        query: Query parameters, or None

    Returns:
        Encoded pairs ready to be joined into a query string
    """
    if not query:
        return []
    items: list[tuple[str, str]] = []
    for name in sorted(query):
        for item_name, item_value, encoded in _raw_items(name, query[name]):
            items.append(
                (percent_encoded(item_name), item_value if encoded else percent_encoded(item_value))
            )
    return items


def encode_query(query: Mapping[str, QueryValue] | None) -> str:
    """Build the query string (without the leading ``?``)."""
    return "&".join(f"{name}={value}" for name, value in query_items(query))


def build_url(endpoint: Endpoint) -> str:
    """Assemble the absolute URL of an endpoint.

    Args:
        endpoint: Endpoint descriptor

    Returns:
        Absolute URL

    Raises:
        InvalidURLComponents: If the components cannot form a valid URL
    """
    base = endpoint.base_url
    if any(char.isspace() for char in base):
        raise InvalidURLComponents(base, endpoint.path, "base URL contains whitespace")

    parts = urlsplit(base)
    if parts.scheme.lower() not in _ALLOWED_SCHEMES:
        raise InvalidURLComponents(base, endpoint.path, f"unsupported scheme {parts.scheme!r}")
    if not parts.hostname:
        raise InvalidURLComponents(base, endpoint.path, "missing host")
    if "#" in endpoint.path or "?" in endpoint.path:
        raise InvalidURLComponents(base, endpoint.path, "path must not carry a query or fragment")

    url = base
    if endpoint.path:
        url = f"{base.rstrip('/')}/{quote(endpoint.path.lstrip('/'), safe=_PATH_SAFE)}"

    query = encode_query(endpoint.query)
    if query:
        separator = "&" if parts.query else "?"
        url = f"{url}{separator}{query}"
    return url


def build_request(endpoint: Endpoint) -> WireRequest:
    """Produce the wire request for an endpoint.

    Args:
        endpoint: Endpoint descriptor

    Returns:
        Transport-ready request

    Raises:
        InvalidURLComponents: If the URL cannot be assembled
        BodyEncodingError: If the body cannot be serialized
    """
    url = build_url(endpoint)
    request = WireRequest(method=endpoint.method, url=url, headers=dict(endpoint.headers or {}))

    if endpoint.body is not None:
        try:
            data = endpoint.body.encode()
        except (TypeError, ValueError) as exc:
            raise BodyEncodingError(str(exc)) from exc
        request = request.with_body(data)
        if request.header("Content-Type") is None:
            request = request.with_header("Content-Type", endpoint.body.content_type)

    logger.debug("Built %s request for %s", request.method, url)
    return request


def endpoint_identifier(endpoint: Endpoint) -> str:
    """Identifier of an endpoint, equal to that of the request it builds."""
    try:
        url = build_url(endpoint)
    except InvalidURLComponents:
        url = ""
    return url_identifier(url, endpoint.method.value)
