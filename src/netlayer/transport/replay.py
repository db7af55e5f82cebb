"""Replay transport serving responses from debug captures.

Captures written by ``EndpointRequestStorageProcessor`` are served back in
sequence order per endpoint identifier. Once the captures of an endpoint are
exhausted, the last one keeps being served.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from netlayer.core.errors import ReplayDataMissing
from netlayer.interceptors.storage import StoredRequestModel, capture_file_name
from netlayer.types.aliases import Headers
from netlayer.types.models import Response, WireRequest
from netlayer.types.protocols import FileSystem
from netlayer.utils.counter import Counter
from netlayer.utils.filesystem import LocalFileSystem

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 16 * 1024


@dataclass(slots=True)
class StoredResponseStream:
    """A fully stored response exposed as a stream."""

    response: Response

    @property
    def status_code(self) -> int | None:
        return self.response.status_code

    @property
    def headers(self) -> Headers:
        return self.response.headers

    @property
    def url(self) -> str:
        return self.response.url

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        body = self.response.body
        for start in range(0, len(body), _CHUNK_SIZE):
            yield body[start : start + _CHUNK_SIZE]


class StoredResponseTransport:
    """Transport answering requests from the captures of one session."""

    def __init__(
        self,
        session_id: str,
        directory: Path,
        *,
        file_system: FileSystem | None = None,
    ) -> None:
        """Initialize StoredResponseTransport.

        Args:
            session_id: Session whose captures are replayed
            directory: Root directory of all stored sessions
            file_system: Disk collaborator (defaults to the local disk)
        """
        self.session_id: str = session_id
        self.directory: Path = directory
        self.file_system: FileSystem = file_system or LocalFileSystem()
        self._counter: Counter = Counter()

    async def _locate(self, identifier: str, index: int) -> Path:
        session_directory = self.directory / self.session_id
        for candidate in range(index, 0, -1):
            path = session_directory / capture_file_name(self.session_id, identifier, candidate)
            if await self.file_system.exists(path):
                if candidate != index:
                    logger.debug("Captures of %s exhausted, replaying #%d", identifier, candidate)
                return path
        raise ReplayDataMissing(capture_file_name(self.session_id, identifier, index))

    async def send(self, request: WireRequest) -> Response:
        """Return the next stored response for the request's identifier.

        Raises:
            ReplayDataMissing: If the session holds no capture for the request
        """
        identifier = request.identifier
        index = await self._counter.increment(identifier)
        path = await self._locate(identifier, index)
        model = StoredRequestModel.model_validate_json(await self.file_system.read(path))
        return model.to_response()

    async def upload(self, request: WireRequest, content: AsyncIterable[bytes]) -> Response:
        async for _chunk in content:
            pass
        return await self.send(request)

    @asynccontextmanager
    async def stream(self, request: WireRequest) -> AsyncIterator[StoredResponseStream]:
        yield StoredResponseStream(await self.send(request))

    async def aclose(self) -> None:
        pass
