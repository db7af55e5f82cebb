"""Bearer-token authorization: stored credentials, refresh and request stage."""

from netlayer.auth.interceptor import AuthorizationTokenInterceptor
from netlayer.auth.manager import AuthorizationManager
from netlayer.auth.models import AuthorizationData
from netlayer.auth.storage import InMemoryAuthorizationStorage

__all__ = [
    "AuthorizationData",
    "AuthorizationManager",
    "AuthorizationTokenInterceptor",
    "InMemoryAuthorizationStorage",
]
