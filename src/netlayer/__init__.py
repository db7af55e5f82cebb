"""netlayer - asynchronous HTTP client pipeline.

Endpoints are described declaratively, built into wire requests and sent
through composable adapter and processor chains with retries, bearer-token
authorization, debug capture and replay. Long-running uploads and downloads
are tracked as tasks with observable progress.
"""

from netlayer.auth import (
    AuthorizationData,
    AuthorizationManager,
    AuthorizationTokenInterceptor,
    InMemoryAuthorizationStorage,
)
from netlayer.config import NetworkingConfig, load_config
from netlayer.core.api_manager import APIManager
from netlayer.core.endpoint import (
    ArrayEncoding,
    ArrayParameter,
    CustomEncodedParameter,
    Endpoint,
    JSONBody,
    PercentEncodedParameter,
    RawBody,
)
from netlayer.core.endpoint_request import EndpointRequest
from netlayer.core.errors import NetworkingError
from netlayer.core.retry import DelayPolicy, Retrier, RetryConfiguration
from netlayer.download import DownloadAPIManager, DownloadState, DownloadTask, ResumableData
from netlayer.interceptors import EndpointRequestStorageProcessor, LoggingInterceptor, StatusCodeProcessor
from netlayer.reachability import ConnectionType, Reachability
from netlayer.transport import AIOHTTPTransport, HTTPXTransport, StoredResponseTransport
from netlayer.types import HTTPMethod, Response, StatusCodeRange, TaskState, WireRequest
from netlayer.upload import (
    DataUpload,
    FileUpload,
    MultipartFormData,
    MultipartUpload,
    UploadAPIManager,
    UploadState,
    UploadTask,
)

__version__ = "0.1.0"

__all__ = [
    "AIOHTTPTransport",
    "APIManager",
    "ArrayEncoding",
    "ArrayParameter",
    "AuthorizationData",
    "AuthorizationManager",
    "AuthorizationTokenInterceptor",
    "ConnectionType",
    "CustomEncodedParameter",
    "DataUpload",
    "DelayPolicy",
    "DownloadAPIManager",
    "DownloadState",
    "DownloadTask",
    "Endpoint",
    "EndpointRequest",
    "EndpointRequestStorageProcessor",
    "FileUpload",
    "HTTPMethod",
    "HTTPXTransport",
    "InMemoryAuthorizationStorage",
    "JSONBody",
    "LoggingInterceptor",
    "MultipartFormData",
    "MultipartUpload",
    "NetworkingConfig",
    "NetworkingError",
    "PercentEncodedParameter",
    "RawBody",
    "Reachability",
    "Response",
    "ResumableData",
    "Retrier",
    "RetryConfiguration",
    "StatusCodeProcessor",
    "StatusCodeRange",
    "StoredResponseTransport",
    "TaskState",
    "UploadAPIManager",
    "UploadState",
    "UploadTask",
    "WireRequest",
    "load_config",
]
