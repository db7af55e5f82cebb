"""Endpoint descriptors.

An ``Endpoint`` is an immutable description of one logical request type:
where it goes, how its query and body are encoded, which status codes it
accepts and whether it needs authorization. Descriptors are built fresh per
call site and handed to the request builder.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum, auto
from urllib.parse import urlsplit

from pydantic import BaseModel
from pydantic_core import to_json

from netlayer.types.aliases import Headers, QueryScalar
from netlayer.types.models import HTTPMethod, StatusCodeRange


class ArrayEncoding(Enum):
    """How an array query parameter is written into the URL."""

    INDIVIDUAL = auto()  # key=1&key=2
    COMMA_SEPARATED = auto()  # key=1,2


@dataclass(slots=True, frozen=True)
class ArrayParameter:
    """Query parameter carrying several values under one key."""

    values: Sequence[QueryScalar]
    encoding: ArrayEncoding = ArrayEncoding.INDIVIDUAL


@dataclass(slots=True, frozen=True)
class PercentEncodedParameter:
    """Query value that is already percent-encoded and is inserted verbatim."""

    value: str

    @classmethod
    def plus_sign(cls, raw: str) -> PercentEncodedParameter:
        """Encode ``raw`` with default query rules, additionally escaping ``+``.

        Servers commonly read a literal ``+`` in a query as a space, which
        breaks values such as timezone offsets.

        Args:
            raw: Unencoded value

        Returns:
            Parameter holding the encoded value
        """
        from netlayer.core.request_builder import plus_sign_encoded

        return cls(plus_sign_encoded(raw))


@dataclass(slots=True, frozen=True)
class CustomEncodedParameter:
    """Query value encoded by the caller and inserted exactly as supplied."""

    encoded_value: str


type QueryValue = QueryScalar | ArrayParameter | PercentEncodedParameter | CustomEncodedParameter


@dataclass(slots=True, frozen=True)
class JSONBody:
    """Body serialized to JSON.

    Pydantic models, dataclasses, datetimes and plain containers are all
    serialized through ``pydantic_core.to_json`` unless an explicit encoder
    is supplied.
    """

    payload: object
    hide_from_logs: bool = False
    encoder: Callable[[object], bytes] | None = None

    content_type: str = field(default="application/json", init=False)

    def encode(self) -> bytes:
        """Serialize the payload."""
        if self.encoder is not None:
            return self.encoder(self.payload)
        if isinstance(self.payload, BaseModel):
            return self.payload.model_dump_json(by_alias=True).encode()
        return to_json(self.payload)


@dataclass(slots=True, frozen=True)
class RawBody:
    """Body sent as-is with a caller-supplied content type."""

    data: bytes
    content_type: str = "application/octet-stream"
    hide_from_logs: bool = False

    def encode(self) -> bytes:
        return self.data


type RequestBody = JSONBody | RawBody


@dataclass(slots=True, frozen=True)
class Endpoint:
    """Immutable description of a logical request.

    Attributes:
        base_url: Absolute base URL, e.g. ``https://api.example.com/v1``
        path: Path appended to the base URL; empty keeps the base unchanged
        method: HTTP method
        query: Query parameters keyed by name
        headers: Extra request headers
        body: Body encoding strategy, or None for no body
        acceptable_status_codes: Accepted status range; None skips validation
        requires_authorization: Whether the bearer token must be attached
    """

    base_url: str
    path: str = ""
    method: HTTPMethod = HTTPMethod.GET
    query: Mapping[str, QueryValue] | None = None
    headers: Headers | None = None
    body: RequestBody | None = None
    acceptable_status_codes: StatusCodeRange | None = field(
        default_factory=StatusCodeRange.success_and_redirect
    )
    requires_authorization: bool = False

    @classmethod
    def for_url(
        cls,
        url: str,
        *,
        method: HTTPMethod = HTTPMethod.GET,
        headers: Headers | None = None,
        requires_authorization: bool = False,
    ) -> Endpoint:
        """Describe a request to an absolute URL that has no dedicated endpoint.

        Query items already present in the URL are kept verbatim.

        Args:
            url: Absolute URL
            method: HTTP method
            headers: Extra request headers
            requires_authorization: Whether the bearer token must be attached

        Returns:
            Endpoint targeting ``url``
        """
        parts = urlsplit(url)
        query: dict[str, QueryValue] = {}
        for item in filter(None, parts.query.split("&")):
            name, _, value = item.partition("=")
            query[name] = CustomEncodedParameter(value)
        return cls(
            base_url=f"{parts.scheme}://{parts.netloc}",
            path=parts.path,
            query=query or None,
            method=method,
            headers=headers,
            requires_authorization=requires_authorization,
        )
