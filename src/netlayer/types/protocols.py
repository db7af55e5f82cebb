"""Protocol definitions for pipeline stages and external collaborators.

The request pipeline depends only on these structural contracts; concrete
transports, persistence and disk access are injected by the caller.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Sequence
from contextlib import AbstractAsyncContextManager
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from netlayer.types.aliases import Headers
from netlayer.types.models import Response, WireRequest

if TYPE_CHECKING:
    from netlayer.auth.models import AuthorizationData
    from netlayer.core.endpoint_request import EndpointRequest


@runtime_checkable
class ResponseStream(Protocol):
    """An HTTP response whose body is still being received."""

    @property
    def status_code(self) -> int | None: ...

    @property
    def headers(self) -> Headers: ...

    @property
    def url(self) -> str: ...

    def aiter_bytes(self) -> AsyncIterator[bytes]:
        """Iterate over body chunks as they arrive."""
        ...


@runtime_checkable
class Transport(Protocol):
    """Narrow HTTP transport contract the pipeline executes requests with.

    Implementations translate their library-specific failures into
    ``TransportError`` subclasses. Timeouts are a transport property.
    """

    async def send(self, request: WireRequest) -> Response:
        """Execute a request and read the whole response.

        Args:
            request: Transport-ready request

        Returns:
            The received response
        """
        ...

    async def upload(self, request: WireRequest, content: AsyncIterable[bytes]) -> Response:
        """Execute a request whose body is streamed from ``content``.

        Args:
            request: Transport-ready request (its ``body`` is ignored)
            content: Body chunks

        Returns:
            The received response
        """
        ...

    def stream(self, request: WireRequest) -> AbstractAsyncContextManager[ResponseStream]:
        """Open a request whose response body is consumed incrementally."""
        ...

    async def aclose(self) -> None:
        """Release pooled connections."""
        ...


@runtime_checkable
class RequestAdapter(Protocol):
    """Stage that transforms a request before it is sent."""

    async def adapt(self, request: WireRequest, endpoint_request: EndpointRequest) -> WireRequest:
        """Return the request to hand to the next stage.

        Args:
            request: Request produced by the previous stage
            endpoint_request: Call context of the request

        Returns:
            The adapted request
        """
        ...


@runtime_checkable
class ResponseProcessor(Protocol):
    """Stage that validates or transforms a response after it is received."""

    async def process(
        self,
        response: Response,
        request: WireRequest,
        endpoint_request: EndpointRequest,
    ) -> Response:
        """Return the response to hand to the next stage.

        Args:
            response: Response produced by the previous stage
            request: The request that was sent
            endpoint_request: Call context of the request

        Returns:
            The processed response
        """
        ...


@runtime_checkable
class ErrorProcessor(Protocol):
    """Stage that observes or translates a failure of the pipeline."""

    async def process_error(self, error: Exception, endpoint_request: EndpointRequest) -> Exception:
        """Return the error to hand to the next stage.

        Args:
            error: Error produced by the previous stage
            endpoint_request: Call context of the failed request

        Returns:
            The same or a translated error
        """
        ...


@runtime_checkable
class AuthorizationStorage(Protocol):
    """Persistence for authorization data.

    ``get`` raises ``MissingAuthorizationData`` when nothing is stored.
    """

    async def save(self, data: AuthorizationData) -> None: ...

    async def get(self) -> AuthorizationData: ...

    async def delete(self) -> None: ...


@runtime_checkable
class FileSystem(Protocol):
    """Disk access used by debug capture, replay and downloads."""

    async def write(self, data: bytes, path: Path) -> None: ...

    async def append(self, data: bytes, path: Path) -> None: ...

    async def read(self, path: Path) -> bytes: ...

    async def create_directory(self, path: Path) -> None: ...

    async def move_item(self, source: Path, destination: Path) -> None: ...

    async def remove_item(self, path: Path) -> None: ...

    async def exists(self, path: Path) -> bool: ...

    async def list_directory(self, path: Path) -> Sequence[Path]: ...

    async def size(self, path: Path) -> int: ...
