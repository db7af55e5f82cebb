"""Standard pipeline stages."""

from netlayer.interceptors.logging_interceptor import LoggingInterceptor
from netlayer.interceptors.status_code import StatusCodeProcessor
from netlayer.interceptors.storage import EndpointRequestStorageProcessor, StoredRequestModel

__all__ = [
    "EndpointRequestStorageProcessor",
    "LoggingInterceptor",
    "StatusCodeProcessor",
    "StoredRequestModel",
]
