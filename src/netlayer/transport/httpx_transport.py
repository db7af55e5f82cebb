"""Default transport built on ``httpx.AsyncClient``."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Self

import httpx

from netlayer.core.errors import ConnectionFailed, TransportError, TransportTimeout
from netlayer.types.aliases import Headers
from netlayer.types.models import Response, WireRequest

logger = logging.getLogger(__name__)


def translate_error(exc: httpx.HTTPError, url: str) -> TransportError:
    """Map an httpx failure onto the transport error taxonomy."""
    message = str(exc) or type(exc).__name__
    if isinstance(exc, httpx.TimeoutException):
        return TransportTimeout(message, url)
    if isinstance(exc, (httpx.ConnectError, httpx.NetworkError)):
        return ConnectionFailed(message, url)
    return TransportError(message, url)


@dataclass(slots=True)
class HTTPXResponseStream:
    """Streamed httpx response exposed through the ``ResponseStream`` protocol."""

    response: httpx.Response

    @property
    def status_code(self) -> int | None:
        return self.response.status_code

    @property
    def headers(self) -> Headers:
        return dict(self.response.headers)

    @property
    def url(self) -> str:
        return str(self.response.url)

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            raise translate_error(exc, self.url) from exc


class HTTPXTransport:
    """Transport executing requests with a pooled ``httpx.AsyncClient``.

    Example:
        >>> async with HTTPXTransport(timeout=10.0) as transport:
        ...     response = await transport.send(request)
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 30.0,
        max_connections: int = 100,
        follow_redirects: bool = True,
        user_agent: str | None = None,
    ) -> None:
        """Initialize HTTPXTransport.

        Args:
            client: Pre-configured client to use instead of creating one
            timeout: Per-request timeout in seconds
            max_connections: Connection pool size
            follow_redirects: Whether redirects are followed automatically
            user_agent: Value of the ``User-Agent`` header
        """
        if client is None:
            headers = {"User-Agent": user_agent} if user_agent else None
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(timeout),
                limits=httpx.Limits(max_connections=max_connections),
                follow_redirects=follow_redirects,
                headers=headers,
            )
        self._client: httpx.AsyncClient = client

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.aclose()

    async def send(self, request: WireRequest) -> Response:
        """Execute ``request`` and read the whole body.

        Raises:
            TransportError: On connectivity failures or timeouts
        """
        try:
            response = await self._client.request(
                request.method.value,
                request.url,
                headers=dict(request.headers),
                content=request.body,
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", request.method, request.url, exc)
            raise translate_error(exc, request.url) from exc
        return Response(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.content,
            url=str(response.url),
        )

    async def upload(self, request: WireRequest, content: AsyncIterable[bytes]) -> Response:
        """Execute ``request`` streaming the body from ``content``.

        Raises:
            TransportError: On connectivity failures or timeouts
        """
        try:
            response = await self._client.request(
                request.method.value,
                request.url,
                headers=dict(request.headers),
                content=content,
            )
        except httpx.HTTPError as exc:
            logger.warning("Upload to %s failed: %s", request.url, exc)
            raise translate_error(exc, request.url) from exc
        return Response(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.content,
            url=str(response.url),
        )

    @asynccontextmanager
    async def stream(self, request: WireRequest) -> AsyncIterator[HTTPXResponseStream]:
        """Open ``request`` and yield the response before its body is read.

        Raises:
            TransportError: On connectivity failures or timeouts
        """
        try:
            async with self._client.stream(
                request.method.value,
                request.url,
                headers=dict(request.headers),
                content=request.body,
            ) as response:
                yield HTTPXResponseStream(response)
        except httpx.HTTPError as exc:
            raise translate_error(exc, request.url) from exc

    async def aclose(self) -> None:
        await self._client.aclose()
