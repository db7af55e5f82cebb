"""Diagnostic logging stage.

Logs outgoing requests, received responses and pipeline errors without
altering any of them. Credential headers are redacted and bodies marked
``hide_from_logs`` are never printed.
"""

from __future__ import annotations

import json
import logging
from typing import Final
from urllib.parse import urlsplit

from netlayer.core.endpoint_request import EndpointRequest
from netlayer.core.errors import NetworkingError, UnacceptableStatusCode
from netlayer.types.models import Response, WireRequest
from netlayer.utils.sanitization import redact_headers

logger = logging.getLogger(__name__)

LOGGED_RESPONSE_HEADERS: Final[tuple[str, ...]] = (
    "Date",
    "Server",
    "Content-Type",
    "Content-Length",
    "Connection",
)

_HIDDEN_BODY: Final[str] = "Body is hidden from logs"


def pretty_body(body: bytes | None) -> str | None:
    """Render a body for logging: indented JSON when possible, else text.

    Returns:
        Rendered body, or None for an empty body
    """
    if not body:
        return None
    try:
        return json.dumps(json.loads(body), indent=2, ensure_ascii=False, sort_keys=True)
    except (ValueError, UnicodeDecodeError):
        pass
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        return f"<{len(body)} bytes>"


class LoggingInterceptor:
    """Request adapter, response processor and error processor that only logs."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        """Initialize LoggingInterceptor.

        Args:
            log: Logger to write to (defaults to this module's logger)
        """
        self._log: logging.Logger = log or logger

    async def adapt(self, request: WireRequest, endpoint_request: EndpointRequest) -> WireRequest:
        if self._log.isEnabledFor(logging.DEBUG):
            lines = [f"--> {request.method} {request.url}"]
            lines.extend(f"{name}: {value}" for name, value in redact_headers(request.headers).items())
            body = endpoint_request.endpoint.body
            if body is not None and body.hide_from_logs:
                lines.append(_HIDDEN_BODY)
            elif (rendered := pretty_body(request.body)) is not None:
                lines.append(rendered)
            self._log.debug("\n".join(lines))
        return request

    async def process(
        self,
        response: Response,
        request: WireRequest,
        endpoint_request: EndpointRequest,
    ) -> Response:
        if self._log.isEnabledFor(logging.DEBUG):
            lines = [f"<-- {response.status_code} {request.method} {request.url}"]
            for name in LOGGED_RESPONSE_HEADERS:
                if (value := response.header(name)) is not None:
                    lines.append(f"{name}: {value}")
            if (rendered := pretty_body(response.body)) is not None:
                lines.append(rendered)
            self._log.debug("\n".join(lines))
        return response

    async def process_error(self, error: Exception, endpoint_request: EndpointRequest) -> Exception:
        endpoint = endpoint_request.endpoint
        path = urlsplit(endpoint.base_url).path.rstrip("/") + "/" + endpoint.path.lstrip("/")
        if isinstance(error, UnacceptableStatusCode):
            body = pretty_body(error.response.body)
            self._log.error(
                "Request failed with status %d: %s %s%s",
                error.status_code,
                endpoint.method,
                path,
                f"\n{body}" if body else "",
            )
        else:
            message = error.message if isinstance(error, NetworkingError) else str(error)
            self._log.error(
                "Request failed: %s %s: %s: %s",
                endpoint.method,
                path,
                type(error).__name__,
                message,
            )
        return error
