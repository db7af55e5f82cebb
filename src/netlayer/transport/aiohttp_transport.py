"""Transport built on ``aiohttp.ClientSession``."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Self

import aiohttp

from netlayer.core.errors import ConnectionFailed, TransportError, TransportTimeout
from netlayer.types.aliases import Headers
from netlayer.types.models import Response, WireRequest

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def translate_error(exc: aiohttp.ClientError | TimeoutError, url: str) -> TransportError:
    """Map an aiohttp failure onto the transport error taxonomy."""
    message = str(exc) or type(exc).__name__
    if isinstance(exc, TimeoutError):
        return TransportTimeout(message, url)
    if isinstance(exc, (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError)):
        return ConnectionFailed(message, url)
    return TransportError(message, url)


@dataclass(slots=True)
class AIOHTTPResponseStream:
    """Streamed aiohttp response exposed through the ``ResponseStream`` protocol."""

    response: aiohttp.ClientResponse

    @property
    def status_code(self) -> int | None:
        return self.response.status

    @property
    def headers(self) -> Headers:
        return dict(self.response.headers)

    @property
    def url(self) -> str:
        return str(self.response.url)

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.response.content.iter_chunked(_CHUNK_SIZE):
                yield chunk
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise translate_error(exc, self.url) from exc


class AIOHTTPTransport:
    """Transport executing requests with an ``aiohttp.ClientSession``.

    The session is created lazily on first use, or eagerly when the transport
    is used as an async context manager.

    Example:
        >>> async with AIOHTTPTransport(timeout=10.0) as transport:
        ...     response = await transport.send(request)
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        max_connections: int = 100,
        follow_redirects: bool = True,
        user_agent: str | None = None,
    ) -> None:
        """Initialize AIOHTTPTransport.

        Args:
            timeout: Total timeout per request in seconds
            max_connections: Connection pool size
            follow_redirects: Whether redirects are followed automatically
            user_agent: Value of the ``User-Agent`` header
        """
        self._timeout: float = timeout
        self._max_connections: int = max_connections
        self._follow_redirects: bool = follow_redirects
        self._user_agent: str | None = user_agent
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> Self:
        _ = self._ensure_session()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.aclose()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"User-Agent": self._user_agent} if self._user_agent else None
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                connector=aiohttp.TCPConnector(limit=self._max_connections),
                headers=headers,
            )
        return self._session

    async def _read(self, response: aiohttp.ClientResponse) -> Response:
        return Response(
            status_code=response.status,
            headers=dict(response.headers),
            body=await response.read(),
            url=str(response.url),
        )

    async def send(self, request: WireRequest) -> Response:
        """Execute ``request`` and read the whole body.

        Raises:
            TransportError: On connectivity failures or timeouts
        """
        session = self._ensure_session()
        try:
            async with session.request(
                request.method.value,
                request.url,
                headers=dict(request.headers),
                data=request.body,
                allow_redirects=self._follow_redirects,
            ) as response:
                return await self._read(response)
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.warning("%s %s failed: %s", request.method, request.url, exc)
            raise translate_error(exc, request.url) from exc

    async def upload(self, request: WireRequest, content: AsyncIterable[bytes]) -> Response:
        """Execute ``request`` streaming the body from ``content``.

        Raises:
            TransportError: On connectivity failures or timeouts
        """
        session = self._ensure_session()
        try:
            async with session.request(
                request.method.value,
                request.url,
                headers=dict(request.headers),
                data=content,
                allow_redirects=self._follow_redirects,
            ) as response:
                return await self._read(response)
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.warning("Upload to %s failed: %s", request.url, exc)
            raise translate_error(exc, request.url) from exc

    @asynccontextmanager
    async def stream(self, request: WireRequest) -> AsyncIterator[AIOHTTPResponseStream]:
        """Open ``request`` and yield the response before its body is read.

        Raises:
            TransportError: On connectivity failures or timeouts
        """
        session = self._ensure_session()
        try:
            async with session.request(
                request.method.value,
                request.url,
                headers=dict(request.headers),
                data=request.body,
                allow_redirects=self._follow_redirects,
            ) as response:
                yield AIOHTTPResponseStream(response)
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise translate_error(exc, request.url) from exc

    async def aclose(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
            # let the connector finish closing its sockets
            await asyncio.sleep(0)
