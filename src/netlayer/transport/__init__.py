"""Transport implementations."""

from netlayer.transport.aiohttp_transport import AIOHTTPTransport
from netlayer.transport.httpx_transport import HTTPXTransport
from netlayer.transport.replay import StoredResponseTransport

__all__ = ["AIOHTTPTransport", "HTTPXTransport", "StoredResponseTransport"]
