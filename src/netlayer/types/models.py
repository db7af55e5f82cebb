"""Wire-level data models.

This module defines the immutable values that travel through the request
pipeline: the transport-ready request, the response and the acceptable
status-code range used by validation.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum, StrEnum
from urllib.parse import parse_qsl, urlsplit

from netlayer.types.aliases import Headers


class HTTPMethod(StrEnum):
    """HTTP request methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class TaskState(Enum):
    """Lifecycle of an upload or download task."""

    CREATED = "created"
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in {TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELLED}


def url_identifier(url: str, method: str) -> str:
    """Derive a stable identifier from a URL's path, sorted query and method.

    Path segments come first, then the name and decoded value of each query
    item sorted by name, then the method. Parts are lowercased, empty parts
    are dropped and the rest are joined with ``_``.

    Examples:
        >>> url_identifier("https://reqres.in/api/users?page=2", "GET")
        'api_users_page_2_get'
    """
    split = urlsplit(url)
    parts = [segment for segment in split.path.split("/") if segment]
    query = parse_qsl(split.query, keep_blank_values=True)
    for name, value in sorted(query, key=lambda item: item[0]):
        parts.extend((name, value))
    parts.append(method)
    return "_".join(part.lower().replace("/", "-") for part in parts if part)


def find_header(headers: Headers, name: str) -> str | None:
    """Look up a header value ignoring the case of its name.

    Args:
        headers: Header mapping to search
        name: Header name

    Returns:
        The header value or None if the header is absent
    """
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


@dataclass(slots=True, frozen=True)
class StatusCodeRange:
    """Half-open range of acceptable HTTP status codes ``[start, stop)``.

    A range with ``start >= stop`` accepts nothing and disables validation.
    """

    start: int
    stop: int

    @classmethod
    def success(cls) -> StatusCodeRange:
        """Return the 2xx range."""
        return cls(200, 300)

    @classmethod
    def redirect(cls) -> StatusCodeRange:
        """Return the 3xx range."""
        return cls(300, 400)

    @classmethod
    def success_and_redirect(cls) -> StatusCodeRange:
        """Return the combined 2xx and 3xx range."""
        return cls(200, 400)

    @property
    def is_empty(self) -> bool:
        """Whether the range accepts no status code at all."""
        return self.start >= self.stop

    def __contains__(self, status_code: object) -> bool:
        return isinstance(status_code, int) and self.start <= status_code < self.stop

    def __str__(self) -> str:
        return f"{self.start}..<{self.stop}"


@dataclass(slots=True, frozen=True)
class WireRequest:
    """Concrete, transport-ready HTTP request.

    Stages never mutate a request in place; ``with_header`` and
    ``with_body`` return new values.
    """

    method: HTTPMethod
    url: str
    headers: Headers = field(default_factory=dict)
    body: bytes | None = None

    def header(self, name: str) -> str | None:
        """Return a header value ignoring case, or None."""
        return find_header(self.headers, name)

    def with_header(self, name: str, value: str) -> WireRequest:
        """Return a copy with the header set, replacing any same-named header."""
        headers = {key: val for key, val in self.headers.items() if key.lower() != name.lower()}
        headers[name] = value
        return replace(self, headers=headers)

    def with_body(self, body: bytes | None) -> WireRequest:
        """Return a copy carrying a different body."""
        return replace(self, body=body)

    @property
    def identifier(self) -> str:
        """Identifier derived from URL path, sorted query and method."""
        return url_identifier(self.url, self.method.value)


@dataclass(slots=True, frozen=True)
class Response:
    """HTTP response as seen by the pipeline.

    ``status_code`` is None when the transport produced something that is not
    a proper HTTP response.
    """

    status_code: int | None
    headers: Headers = field(default_factory=dict)
    body: bytes = b""
    url: str = ""

    def header(self, name: str) -> str | None:
        """Return a header value ignoring case, or None."""
        return find_header(self.headers, name)

    def text(self) -> str | None:
        """Decode the body as UTF-8, or None when it is not valid UTF-8."""
        try:
            return self.body.decode("utf-8")
        except UnicodeDecodeError:
            return None

    def json(self) -> object:
        """Parse the body as JSON.

        Raises:
            ValueError: If the body is not valid JSON
        """
        return json.loads(self.body)  # pyright: ignore[reportAny] # json.loads returns Any
