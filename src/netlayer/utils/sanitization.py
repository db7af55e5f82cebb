"""Secret sanitization utilities for logging and error messages.

Bearer tokens, credential headers and token-bearing query parameters are
redacted before anything reaches a log handler, while the structure of URLs
and header maps is preserved for debugging.

Examples:
    >>> sanitize_url("https://api.example.com/data?access_token=secret123")
    'https://api.example.com/data?access_token=<REDACTED>'

    >>> redact_headers({"Authorization": "Bearer abc", "Accept": "*/*"})
    {'Authorization': '<REDACTED>', 'Accept': '*/*'}
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import TypeIs

# Redaction marker for sanitized values
REDACTED = "<REDACTED>"

# Headers whose values are credentials
SENSITIVE_HEADERS: frozenset[str] = frozenset(
    {"authorization", "proxy-authorization", "cookie", "set-cookie", "x-api-key"}
)

_BEARER_PATTERN = re.compile(r"(\bBearer\s+)([A-Za-z0-9\-._~+/]+=*)", re.IGNORECASE)

_TOKEN_IN_QUERY = re.compile(
    r"([?&](?:access_token|refresh_token|token|api[-_]?key|secret|password)=)([^&#\s]+)",
    re.IGNORECASE,
)

_SENSITIVE_FIELD_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in [
        r".*token.*",
        r".*secret.*",
        r".*password.*",
        r".*credential.*",
        r"^authorization$",
        r".*api[-_]?key.*",
    ]
]


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name indicates sensitive data.

    Examples:
        >>> is_sensitive_field("refresh_token")
        True
        >>> is_sensitive_field("page")
        False
    """
    return any(pattern.match(field_name) for pattern in _SENSITIVE_FIELD_PATTERNS)


def sanitize_url(text: str) -> str:
    """Redact bearer tokens and token query parameters inside ``text``.

    Args:
        text: A URL or free-form message

    Returns:
        The text with secrets replaced by the redaction marker
    """
    if not text:
        return text
    sanitized = _BEARER_PATTERN.sub(rf"\1{REDACTED}", text)
    return _TOKEN_IN_QUERY.sub(rf"\1{REDACTED}", sanitized)


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of ``headers`` with credential values redacted."""
    return {
        name: REDACTED if name.lower() in SENSITIVE_HEADERS else value
        for name, value in headers.items()
    }


def _is_primitive(value: object) -> TypeIs[str | int | float | bool | None]:
    return isinstance(value, (str, int, float, bool, type(None)))


def _is_mapping(value: object) -> TypeIs[Mapping[str, object]]:
    return isinstance(value, Mapping)


def _is_sequence(value: object) -> TypeIs[Sequence[object]]:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def sanitize_value(value: object, *, field_name: str | None = None) -> object:
    """Recursively sanitize sensitive values from structured data.

    Args:
        value: The value to sanitize
        field_name: Optional field name for context-aware sanitization

    Returns:
        Sanitized value with secrets replaced by the redaction marker

    Examples:
        >>> sanitize_value({"access_token": "abc", "page": 2})
        {'access_token': '<REDACTED>', 'page': 2}
    """
    if field_name and is_sensitive_field(field_name):
        return REDACTED

    if _is_primitive(value):
        if type(value) is str:
            return sanitize_url(value)
        return value

    if _is_mapping(value):
        return {key: sanitize_value(val, field_name=str(key)) for key, val in value.items()}

    if _is_sequence(value):
        items = [sanitize_value(item) for item in value]
        return tuple(items) if isinstance(value, tuple) else items

    return value


def sanitize_args(args: tuple[object, ...]) -> tuple[object, ...]:
    """Sanitize the args tuple of a log record."""
    return tuple(sanitize_value(arg) for arg in args)
