"""Authorization data model."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field


class AuthorizationData(BaseModel):
    """OAuth-style token pair with its expiry.

    A missing ``expires_in`` means the expiry is unknown and the access token
    is treated as valid until the server rejects it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    access_token: str = Field(min_length=1)
    refresh_token: str
    expires_in: datetime | None = Field(default=None, description="Absolute expiry of the access token")
    expiration_offset: timedelta = Field(
        default=timedelta(seconds=60),
        description="Safety margin before expiry at which the token counts as expired",
    )

    def is_expired(self, now: datetime | None = None) -> bool:
        """Whether the access token should be refreshed before use.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            True when ``expires_in - expiration_offset <= now``
        """
        if self.expires_in is None:
            return False
        expires_in = self.expires_in
        if expires_in.tzinfo is None:
            expires_in = expires_in.replace(tzinfo=UTC)
        reference = now or datetime.now(UTC)
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=UTC)
        return expires_in - self.expiration_offset <= reference

    @property
    def header(self) -> str:
        """Value of the ``Authorization`` header."""
        return f"Bearer {self.access_token}"
