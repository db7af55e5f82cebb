"""Type definitions: wire-level models, protocols and aliases."""

from netlayer.types.aliases import Headers, QueryScalar
from netlayer.types.models import HTTPMethod, Response, StatusCodeRange, TaskState, WireRequest
from netlayer.types.protocols import (
    AuthorizationStorage,
    ErrorProcessor,
    FileSystem,
    RequestAdapter,
    ResponseProcessor,
    ResponseStream,
    Transport,
)

__all__ = [
    "AuthorizationStorage",
    "ErrorProcessor",
    "FileSystem",
    "HTTPMethod",
    "Headers",
    "QueryScalar",
    "RequestAdapter",
    "Response",
    "ResponseProcessor",
    "ResponseStream",
    "StatusCodeRange",
    "TaskState",
    "Transport",
    "WireRequest",
]
