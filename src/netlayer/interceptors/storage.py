"""Debug-capture stage.

Every response (and every error carrying one) is written as a JSON document
to ``<directory>/<session id>/<session id>_<endpoint identifier>_<n>.json``,
where ``n`` counts calls to the same endpoint within the session. The same
files feed ``StoredResponseTransport`` for offline replay.

Writes run in background tasks; a failed write is logged and never affects
the request pipeline.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path
from urllib.parse import parse_qsl, urlsplit

from pydantic import BaseModel, ConfigDict, Field

from netlayer.core.endpoint_request import EndpointRequest
from netlayer.core.request_builder import build_url
from netlayer.types.models import Response, WireRequest
from netlayer.types.protocols import FileSystem
from netlayer.utils.counter import Counter
from netlayer.utils.filesystem import LocalFileSystem

logger = logging.getLogger(__name__)


def capture_file_name(session_id: str, identifier: str, index: int) -> str:
    """Return the capture file name for one request of a session."""
    return f"{session_id}_{identifier}_{index}.json"


def _decode(body: bytes | None) -> str | None:
    if body is None:
        return None
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        return None


class StoredRequestModel(BaseModel):
    """One captured request/response pair.

    Raw bodies are stored base64-encoded; the ``*_string`` fields repeat them
    as UTF-8 text when they decode cleanly.
    """

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    session_id: str
    date: datetime
    path: str
    parameters: dict[str, str] | None = None
    method: str
    status_code: int | None = None
    request_body: bytes | None = None
    request_body_string: str | None = None
    response_body: bytes | None = None
    response_body_string: str | None = None
    request_headers: dict[str, str] | None = None
    response_headers: dict[str, str] | None = None
    url: str = ""

    @classmethod
    def capture(
        cls,
        endpoint_request: EndpointRequest,
        response: Response,
        request: WireRequest | None,
        date: datetime | None = None,
    ) -> StoredRequestModel:
        """Build the capture of a response and the request that produced it.

        Args:
            endpoint_request: Call context
            response: Received response
            request: Sent request, or None when only the error survived
            date: Capture time (defaults to now)
        """
        url = request.url if request is not None else (response.url or build_url(endpoint_request.endpoint))
        parameters: dict[str, str] = {}
        for name, value in sorted(parse_qsl(urlsplit(url).query, keep_blank_values=True)):
            parameters[name] = f"{parameters[name]},{value}" if name in parameters else value
        return cls(
            session_id=endpoint_request.session_id,
            date=date or datetime.now(UTC),
            path=endpoint_request.endpoint.path,
            parameters=parameters or None,
            method=str(endpoint_request.endpoint.method),
            status_code=response.status_code,
            request_body=request.body if request is not None else None,
            request_body_string=_decode(request.body) if request is not None else None,
            response_body=response.body,
            response_body_string=_decode(response.body),
            request_headers=dict(request.headers) if request is not None else None,
            response_headers=dict(response.headers),
            url=url,
        )

    def to_response(self) -> Response:
        """Rebuild the captured response."""
        return Response(
            status_code=self.status_code,
            headers=self.response_headers or {},
            body=self.response_body or b"",
            url=self.url,
        )


class EndpointRequestStorageProcessor:
    """Response and error processor writing debug captures in the background."""

    def __init__(
        self,
        directory: Path,
        *,
        file_system: FileSystem | None = None,
        stored_sessions_limit: int | None = None,
    ) -> None:
        """Initialize EndpointRequestStorageProcessor.

        Args:
            directory: Root directory holding one sub-directory per session
            file_system: Disk collaborator (defaults to the local disk)
            stored_sessions_limit: Keep only this many newest sessions
        """
        self.directory: Path = directory
        self.file_system: FileSystem = file_system or LocalFileSystem()
        self.stored_sessions_limit: int | None = stored_sessions_limit
        self._counter: Counter = Counter()
        self._pending: set[asyncio.Task[None]] = set()
        self._pruned: bool = False

    async def process(
        self,
        response: Response,
        request: WireRequest,
        endpoint_request: EndpointRequest,
    ) -> Response:
        await self._schedule(endpoint_request, response, request)
        return response

    async def process_error(self, error: Exception, endpoint_request: EndpointRequest) -> Exception:
        response = getattr(error, "response", None)
        if isinstance(response, Response):
            await self._schedule(endpoint_request, response, None)
        return error

    async def drain(self) -> None:
        """Wait until every scheduled capture has been written."""
        while self._pending:
            _ = await asyncio.gather(*self._pending, return_exceptions=True)

    async def _schedule(
        self,
        endpoint_request: EndpointRequest,
        response: Response,
        request: WireRequest | None,
    ) -> None:
        key = f"{endpoint_request.session_id}_{endpoint_request.identifier}"
        index = await self._counter.increment(key)
        model = StoredRequestModel.capture(endpoint_request, response, request)
        task = asyncio.create_task(self._store(model, endpoint_request.identifier, index))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _store(self, model: StoredRequestModel, identifier: str, index: int) -> None:
        session_directory = self.directory / model.session_id
        path = session_directory / capture_file_name(model.session_id, identifier, index)
        try:
            await self.file_system.create_directory(session_directory)
            if not self._pruned:
                self._pruned = True
                await self._prune_sessions(model.session_id)
            await self.file_system.write(model.model_dump_json(indent=2).encode(), path)
            logger.debug("Stored capture %s", path.name)
        except Exception:
            logger.exception("Failed to store capture %s", path)

    async def _prune_sessions(self, current_session: str) -> None:
        if self.stored_sessions_limit is None:
            return
        sessions = sorted(
            (path for path in await self.file_system.list_directory(self.directory) if path.name != current_session),
            key=lambda path: path.name,
            reverse=True,
        )
        # the current session occupies one slot
        for stale in sessions[max(self.stored_sessions_limit - 1, 0) :]:
            logger.info("Removing stored session %s", stale.name)
            await self.file_system.remove_item(stale)
