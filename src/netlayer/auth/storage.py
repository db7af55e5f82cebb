"""In-memory authorization storage."""

from __future__ import annotations

import asyncio

from netlayer.auth.models import AuthorizationData
from netlayer.core.errors import MissingAuthorizationData


class InMemoryAuthorizationStorage:
    """Keeps authorization data for the lifetime of the process."""

    def __init__(self, data: AuthorizationData | None = None) -> None:
        self._data: AuthorizationData | None = data
        self._lock: asyncio.Lock = asyncio.Lock()

    async def save(self, data: AuthorizationData) -> None:
        async with self._lock:
            self._data = data

    async def get(self) -> AuthorizationData:
        """Return the stored data.

        Raises:
            MissingAuthorizationData: If nothing is stored
        """
        async with self._lock:
            if self._data is None:
                raise MissingAuthorizationData()
            return self._data

    async def delete(self) -> None:
        async with self._lock:
            self._data = None
