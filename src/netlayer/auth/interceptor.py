"""Request stage attaching bearer tokens with single-flight refresh."""

from __future__ import annotations

import logging

from netlayer.auth.manager import AUTHORIZATION_HEADER, AuthorizationManager
from netlayer.auth.models import AuthorizationData
from netlayer.core.endpoint_request import EndpointRequest
from netlayer.core.errors import NoStatusCode, Unauthorized
from netlayer.types.models import Response, WireRequest
from netlayer.utils.single_flight import SingleFlight

logger = logging.getLogger(__name__)


class AuthorizationTokenInterceptor:
    """Authorizes requests and refreshes expired tokens once for all callers.

    Register the same instance both as a request adapter and as a response
    processor. Concurrent requests that find the token expired all wait on a
    single refresh and then either proceed with the new token or fail with
    the same error.
    """

    def __init__(self, authorization_manager: AuthorizationManager) -> None:
        """Initialize AuthorizationTokenInterceptor.

        Args:
            authorization_manager: Manager owning token storage and refresh
        """
        self.authorization_manager: AuthorizationManager = authorization_manager
        self._refresh: SingleFlight[AuthorizationData] = SingleFlight()

    async def adapt(self, request: WireRequest, endpoint_request: EndpointRequest) -> WireRequest:
        """Attach the bearer token, refreshing it first if it has expired.

        Raises:
            MissingAuthorizationData: If nothing is stored
            ExpiredRefreshToken: If the refresh is rejected
        """
        if not endpoint_request.endpoint.requires_authorization:
            return request
        data = await self.authorization_manager.storage.get()
        if data.is_expired():
            logger.debug("Access token expired before %s", endpoint_request.identifier)
            data = await self.refresh(data)
        return request.with_header(AUTHORIZATION_HEADER, data.header)

    async def process(
        self,
        response: Response,
        request: WireRequest,
        endpoint_request: EndpointRequest,
    ) -> Response:
        """Treat 401 on an authorized request as a stale token.

        The token is refreshed unless another caller already replaced the one
        this request carried, then ``Unauthorized`` is raised so the retry
        engine resubmits with the fresh token.

        Raises:
            NoStatusCode: If the response is not an HTTP response
            Unauthorized: If an authorized request was rejected with 401
        """
        if response.status_code is None:
            raise NoStatusCode(response)
        if response.status_code != 401 or not endpoint_request.endpoint.requires_authorization:
            return response

        stored = await self.authorization_manager.storage.get()
        if request.header(AUTHORIZATION_HEADER) in (None, stored.header):
            logger.info("Received 401 for %s, refreshing token", endpoint_request.identifier)
            _ = await self.refresh(stored)
        raise Unauthorized(response)

    async def refresh(self, seen: AuthorizationData | None = None) -> AuthorizationData:
        """Refresh the token, joining a refresh that is already running.

        A caller that read ``seen`` before an earlier refresh stored newer
        data gets the stored data instead of triggering another exchange.

        Args:
            seen: Authorization data the caller found stale
        """
        return await self._refresh.run(lambda: self._refresh_unless_replaced(seen))

    async def _refresh_unless_replaced(self, seen: AuthorizationData | None) -> AuthorizationData:
        if seen is not None:
            current = await self.authorization_manager.storage.get()
            if current != seen and not current.is_expired():
                logger.debug("Authorization data already refreshed by another request")
                return current
        return await self.authorization_manager.refresh()
