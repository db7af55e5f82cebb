"""Error taxonomy for the networking pipeline.

Every error carries a human-readable message plus a ``context`` dictionary
for diagnostics. The class-level ``retryable`` flag marks conditions that the
retry engine never resubmits, regardless of the configured predicate.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar

from netlayer.types.models import Response, StatusCodeRange


class NetworkingError(Exception):
    """Base exception for all networking errors."""

    retryable: ClassVar[bool] = True

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:  # pyright: ignore[reportAny] # Flexible error context
        """Initialize NetworkingError.

        Args:
            message: Error message
            context: Additional context information for debugging
        """
        super().__init__(message)
        self.message: str = message
        self.context: dict[str, Any] = context or {}  # pyright: ignore[reportAny] # Flexible error context


# Request building


class RequestableError(NetworkingError):
    """Base exception for failures while building a request."""

    retryable: ClassVar[bool] = False


class InvalidURLComponents(RequestableError):
    """Raised when base URL, path and query cannot form a valid absolute URL."""

    def __init__(self, base_url: str, path: str, reason: str) -> None:
        """Initialize InvalidURLComponents.

        Args:
            base_url: Base URL of the endpoint
            path: Path of the endpoint
            reason: Why the URL is invalid
        """
        super().__init__(
            f"Invalid URL components ({reason}): base={base_url!r} path={path!r}",
            {"base_url": base_url, "path": path, "reason": reason},
        )
        self.base_url: str = base_url
        self.path: str = path


class BodyEncodingError(RequestableError):
    """Raised when the request body cannot be serialized."""

    def __init__(self, reason: str) -> None:
        """Initialize BodyEncodingError.

        Args:
            reason: Serializer failure description
        """
        super().__init__(f"Failed to encode request body: {reason}")


# Response validation


class NetworkError(NetworkingError):
    """Base exception for response-level failures."""


class UnacceptableStatusCode(NetworkError):
    """Raised when a response status lies outside the acceptable range."""

    def __init__(self, status_code: int, acceptable: StatusCodeRange, response: Response) -> None:
        """Initialize UnacceptableStatusCode.

        Args:
            status_code: Received HTTP status code
            acceptable: Range the endpoint accepts
            response: The offending response
        """
        super().__init__(
            f"Unacceptable status code {status_code}, expected {acceptable}",
            {"status_code": status_code, "acceptable": str(acceptable), "url": response.url},
        )
        self.status_code: int = status_code
        self.acceptable: StatusCodeRange = acceptable
        self.response: Response = response


class NoStatusCode(NetworkError):
    """Raised when the transport reply is not a proper HTTP response."""

    def __init__(self, response: Response) -> None:
        """Initialize NoStatusCode.

        Args:
            response: The reply without a status code
        """
        super().__init__("Response has no HTTP status code", {"url": response.url})
        self.response: Response = response


class HeaderIsInvalid(NetworkError):
    """Raised when a response header required by the pipeline is malformed."""

    def __init__(self, header: str, value: str | None) -> None:
        """Initialize HeaderIsInvalid.

        Args:
            header: Header name
            value: Offending value, or None when missing
        """
        super().__init__(f"Invalid header {header}: {value!r}", {"header": header})
        self.header: str = header


class UnknownNetworkError(NetworkError):
    """Raised when a failure has no more specific classification."""


# Transport


class TransportError(NetworkingError):
    """Base exception for transport failures such as connectivity loss."""

    def __init__(self, message: str, url: str | None = None) -> None:
        """Initialize TransportError.

        Args:
            message: Error message
            url: URL of the failed request, if known
        """
        super().__init__(message, {"url": url} if url is not None else None)
        self.url: str | None = url


class TransportTimeout(TransportError):
    """Raised when the transport gives up waiting for the server."""


class ConnectionFailed(TransportError):
    """Raised when no connection to the server could be established."""


# Authorization


class AuthorizationError(NetworkingError):
    """Base exception for authorization failures."""


class Unauthorized(AuthorizationError):
    """Raised when the server rejected the credentials of an authorized request."""

    def __init__(self, response: Response | None = None) -> None:
        """Initialize Unauthorized.

        Args:
            response: The 401 response, if one was received
        """
        super().__init__("Request was not authorized", {"url": response.url} if response else None)
        self.response: Response | None = response


class MissingAuthorizationData(AuthorizationError):
    """Raised when an authorized request is made without stored credentials."""

    retryable: ClassVar[bool] = False

    def __init__(self) -> None:
        """Initialize MissingAuthorizationData."""
        super().__init__("No authorization data is stored")


class ExpiredAccessToken(AuthorizationError):
    """Raised when the stored access token is expired."""

    def __init__(self) -> None:
        """Initialize ExpiredAccessToken."""
        super().__init__("Access token is expired")


class ExpiredRefreshToken(AuthorizationError):
    """Raised when the refresh token is rejected; the user must re-authenticate."""

    retryable: ClassVar[bool] = False

    def __init__(self) -> None:
        """Initialize ExpiredRefreshToken."""
        super().__init__("Refresh token is expired")


# Decoding


class DecodingError(NetworkingError):
    """Raised when a successful response body cannot be decoded."""

    retryable: ClassVar[bool] = False

    def __init__(self, message: str, body: bytes, target: str) -> None:
        """Initialize DecodingError.

        Args:
            message: Decoder failure description
            body: Raw response body
            target: Name of the decode target
        """
        super().__init__(f"Failed to decode {target}: {message}", {"target": target, "size": len(body)})
        self.body: bytes = body
        self.target: str = target


# Manager lifecycle


class APIManagerError(NetworkingError):
    """Base exception for manager lifecycle failures."""


class SessionInvalidated(APIManagerError):
    """Raised when a request is made on a manager whose session was invalidated."""

    retryable: ClassVar[bool] = False

    def __init__(self) -> None:
        """Initialize SessionInvalidated."""
        super().__init__("The session has been invalidated")


class ReplayDataMissing(NetworkingError):
    """Raised when the replay transport has no stored capture for a request."""

    retryable: ClassVar[bool] = False

    def __init__(self, file_name: str) -> None:
        """Initialize ReplayDataMissing.

        Args:
            file_name: Capture file that was looked up
        """
        super().__init__(f"No stored response named {file_name}", {"file_name": file_name})
        self.file_name: str = file_name


class UploadTaskNotFound(NetworkingError):
    """Raised when an upload task id is not registered with the manager."""

    retryable: ClassVar[bool] = False

    def __init__(self, task_id: str) -> None:
        """Initialize UploadTaskNotFound.

        Args:
            task_id: The unknown task id
        """
        super().__init__(f"No upload task with id {task_id}", {"task_id": task_id})
        self.task_id: str = task_id


class ReachabilityFailure(Enum):
    """Why a reachability monitor could not run."""

    FAILED_TO_CREATE = "failed_to_create"


class ReachabilityError(NetworkingError):
    """Raised when network interface state cannot be read."""

    retryable: ClassVar[bool] = False
    FAILED_TO_CREATE: ClassVar[ReachabilityFailure] = ReachabilityFailure.FAILED_TO_CREATE

    def __init__(self, reason: ReachabilityFailure, detail: str = "") -> None:
        """Initialize ReachabilityError.

        Args:
            reason: Failure kind
            detail: Underlying error description
        """
        super().__init__(
            f"Reachability monitor failed ({reason.value}): {detail}".rstrip(": "),
            {"reason": reason.value, "detail": detail},
        )
        self.reason: ReachabilityFailure = reason


def is_retryable(error: BaseException) -> bool:
    """Whether an error may be resubmitted at all.

    Errors outside the taxonomy (for example raw ``OSError``) are retryable.
    """
    return not isinstance(error, NetworkingError) or error.retryable
