"""Authorization manager base class.

Applications subclass ``AuthorizationManager`` and implement
``refresh_authorization_data`` with their token-exchange call. That call
should go through an ``APIManager`` without an authorization stage, so a
refresh never triggers another refresh.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from netlayer.auth.models import AuthorizationData
from netlayer.core.errors import ExpiredAccessToken, ExpiredRefreshToken, UnacceptableStatusCode
from netlayer.types.models import WireRequest
from netlayer.types.protocols import AuthorizationStorage

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "Authorization"


class AuthorizationManager(ABC):
    """Attaches bearer tokens and refreshes them through the injected storage."""

    def __init__(self, storage: AuthorizationStorage) -> None:
        """Initialize AuthorizationManager.

        Args:
            storage: Persistence for authorization data
        """
        self.storage: AuthorizationStorage = storage

    @abstractmethod
    async def refresh_authorization_data(self, refresh_token: str) -> AuthorizationData:
        """Exchange a refresh token for new authorization data.

        Args:
            refresh_token: Currently stored refresh token

        Returns:
            The new token pair
        """

    async def valid_access_token(self) -> str:
        """Return the stored access token if it is still valid.

        Raises:
            MissingAuthorizationData: If nothing is stored
            ExpiredAccessToken: If the stored token is expired
        """
        data = await self.storage.get()
        if data.is_expired():
            raise ExpiredAccessToken()
        return data.access_token

    async def authorize(self, request: WireRequest) -> WireRequest:
        """Return ``request`` carrying the bearer token."""
        token = await self.valid_access_token()
        return request.with_header(AUTHORIZATION_HEADER, f"Bearer {token}")

    async def refresh(self) -> AuthorizationData:
        """Refresh the stored authorization data and persist the result.

        Raises:
            MissingAuthorizationData: If nothing is stored
            ExpiredRefreshToken: If the token exchange is rejected with 401
        """
        current = await self.storage.get()
        try:
            refreshed = await self.refresh_authorization_data(current.refresh_token)
        except UnacceptableStatusCode as exc:
            if exc.status_code == 401:
                logger.warning("Refresh token was rejected; re-authentication required")
                raise ExpiredRefreshToken() from exc
            raise
        await self.storage.save(refreshed)
        logger.info("Authorization data refreshed")
        return refreshed

    async def store(self, data: AuthorizationData) -> None:
        """Persist authorization data obtained by logging in."""
        await self.storage.save(data)

    async def revoke(self) -> None:
        """Delete the stored authorization data."""
        await self.storage.delete()
