"""Request execution core.

``APIManager`` runs one logical call as: build the request, adapt it, send
it, process the response. Any failure goes to the retry engine, which either
waits and resubmits the whole sequence or hands back the error to surface.
The surfaced error passes through the error processors before it reaches
the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from functools import lru_cache
from typing import Any, overload

from pydantic import TypeAdapter, ValidationError

from netlayer.core.chain import adapt_request, process_error, process_response
from netlayer.core.endpoint import Endpoint
from netlayer.core.endpoint_request import EndpointRequest, make_session_id
from netlayer.core.errors import DecodingError, SessionInvalidated
from netlayer.core.request_builder import build_request
from netlayer.core.retry import Retrier, RetryConfiguration
from netlayer.interceptors.logging_interceptor import LoggingInterceptor
from netlayer.interceptors.status_code import StatusCodeProcessor
from netlayer.transport.httpx_transport import HTTPXTransport
from netlayer.types.models import Response
from netlayer.types.protocols import ErrorProcessor, RequestAdapter, ResponseProcessor, Transport
from netlayer.utils.logging import correlation_id_context

logger = logging.getLogger(__name__)

DEFAULT_RETRY_CONFIGURATION = RetryConfiguration.default()


@lru_cache(maxsize=256)
def _type_adapter(target: type[Any]) -> TypeAdapter[Any]:  # pyright: ignore[reportExplicitAny]
    return TypeAdapter(target)


def decode_body[T](body: bytes, decode: type[T] | Callable[[bytes], T]) -> T:
    """Decode a response body with a pydantic-validated type or a callable.

    Args:
        body: Raw response body
        decode: Target type validated from JSON, or a decoder callable

    Returns:
        Decoded value

    Raises:
        DecodingError: If the body does not decode to the target
    """
    if isinstance(decode, type):
        try:
            return _type_adapter(decode).validate_json(body)  # pyright: ignore[reportAny]
        except ValidationError as exc:
            raise DecodingError(str(exc), body, decode.__name__) from exc
    try:
        return decode(body)
    except (TypeError, ValueError, KeyError) as exc:
        raise DecodingError(str(exc), body, getattr(decode, "__name__", repr(decode))) from exc


class APIManager:
    """Executes endpoint requests through the adapter and processor chains.

    The manager holds no per-call state of its own: retry counters live in
    the retrier, keyed by request id, so any number of calls may run
    concurrently on one instance.

    Example:
        >>> manager = APIManager(request_adapters=[LoggingInterceptor()])
        >>> users = await manager.request(endpoint, decode=UsersPage)
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        request_adapters: Sequence[RequestAdapter] | None = None,
        response_processors: Sequence[ResponseProcessor] | None = None,
        error_processors: Sequence[ErrorProcessor] | None = None,
        session_id: str | None = None,
        retrier: Retrier | None = None,
    ) -> None:
        """Initialize APIManager.

        Args:
            transport: Transport to send requests with (httpx by default)
            request_adapters: Stages run before sending (logging by default)
            response_processors: Stages run on responses (status validation
                and logging by default)
            error_processors: Stages run on surfaced errors (logging by default)
            session_id: Id grouping debug captures (a timestamp by default)
            retrier: Retry engine (a fresh one by default)
        """
        logging_interceptor = LoggingInterceptor()
        self.transport: Transport = transport or HTTPXTransport()
        self.request_adapters: tuple[RequestAdapter, ...] = tuple(
            request_adapters if request_adapters is not None else (logging_interceptor,)
        )
        self.response_processors: tuple[ResponseProcessor, ...] = tuple(
            response_processors
            if response_processors is not None
            else (StatusCodeProcessor(), logging_interceptor)
        )
        self.error_processors: tuple[ErrorProcessor, ...] = tuple(
            error_processors if error_processors is not None else (logging_interceptor,)
        )
        self.session_id: str = session_id or make_session_id()
        self.retrier: Retrier = retrier or Retrier()
        self._invalidated: bool = False

    @overload
    async def request(
        self,
        endpoint: Endpoint,
        *,
        decode: None = None,
        retry_configuration: RetryConfiguration | None = DEFAULT_RETRY_CONFIGURATION,
    ) -> Response: ...

    @overload
    async def request[T](
        self,
        endpoint: Endpoint,
        *,
        decode: type[T] | Callable[[bytes], T],
        retry_configuration: RetryConfiguration | None = DEFAULT_RETRY_CONFIGURATION,
    ) -> T: ...

    async def request[T](
        self,
        endpoint: Endpoint,
        *,
        decode: type[T] | Callable[[bytes], T] | None = None,
        retry_configuration: RetryConfiguration | None = DEFAULT_RETRY_CONFIGURATION,
    ) -> Response | T:
        """Execute a request for ``endpoint``.

        Args:
            endpoint: Endpoint descriptor
            decode: Optional decode target for the response body
            retry_configuration: Retry policy, or None to never retry

        Returns:
            The processed response, or the decoded body when ``decode`` is given

        Raises:
            NetworkingError: The first error of the call once retries are
                exhausted, as translated by the error processors
            DecodingError: If the body does not decode; never retried
        """
        endpoint_request = EndpointRequest(endpoint, self.session_id)
        with correlation_id_context(endpoint_request.id):
            response = await self._execute(endpoint_request, retry_configuration)
            if decode is None:
                return response
            return decode_body(response.body, decode)

    async def _execute(
        self,
        endpoint_request: EndpointRequest,
        retry_configuration: RetryConfiguration | None,
    ) -> Response:
        try:
            while True:
                try:
                    response = await self._attempt(endpoint_request)
                except Exception as error:
                    try:
                        await self.retrier.backoff_or_raise(endpoint_request.id, error, retry_configuration)
                    except Exception as surfaced:
                        processed = await process_error(self.error_processors, surfaced, endpoint_request)
                        if processed is surfaced:
                            raise
                        raise processed from surfaced
                    continue
                return response
        finally:
            # also runs when the call is cancelled mid-backoff
            await self.retrier.reset(endpoint_request.id)

    async def _attempt(self, endpoint_request: EndpointRequest) -> Response:
        request = build_request(endpoint_request.endpoint)
        request = await adapt_request(self.request_adapters, request, endpoint_request)
        if self._invalidated:
            raise SessionInvalidated()
        response = await self.transport.send(request)
        return await process_response(self.response_processors, response, request, endpoint_request)

    @property
    def is_invalidated(self) -> bool:
        """Whether ``invalidate_session`` has been called."""
        return self._invalidated

    async def invalidate_session(self) -> None:
        """Close the transport; every later request fails with ``SessionInvalidated``."""
        if self._invalidated:
            return
        self._invalidated = True
        await self.transport.aclose()
        logger.info("Session %s invalidated", self.session_id)
