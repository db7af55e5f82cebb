"""Pydantic models for networking configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from netlayer.core.errors import UnacceptableStatusCode
from netlayer.core.retry import DelayPolicy, RetryConfiguration
from netlayer.interceptors.storage import EndpointRequestStorageProcessor
from netlayer.transport.httpx_transport import HTTPXTransport
from netlayer.utils.logging import LogFormat, configure_logging


class BaseConfig(BaseModel):
    """Base configuration model with common settings."""

    model_config: ConfigDict = ConfigDict(  # pyright: ignore[reportIncompatibleVariableOverride]
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )


class RetrySettings(BaseConfig):
    """Retry policy for failing calls."""

    retries: int = Field(
        default=3,
        ge=0,
        le=20,
        description="Retries after the first attempt",
    )
    delay: float = Field(
        default=2.0,
        ge=0.0,
        le=300.0,
        description="Seconds between attempts",
    )
    progressive: bool = Field(
        default=False,
        description="Multiply the delay by the attempt number",
    )
    non_retryable_status_codes: list[int] = Field(
        default_factory=lambda: [404, 500],
        description="Status codes that are never retried",
    )

    def to_configuration(self) -> RetryConfiguration:
        """Build the retry engine configuration these settings describe."""
        terminal = frozenset(self.non_retryable_status_codes)

        def should_retry(error: Exception) -> bool:
            return not (isinstance(error, UnacceptableStatusCode) and error.status_code in terminal)

        delay = DelayPolicy.progressive(self.delay) if self.progressive else DelayPolicy.constant(self.delay)
        return RetryConfiguration(retries=self.retries, delay=delay, should_retry=should_retry)


class TransportSettings(BaseConfig):
    """HTTP transport tuning."""

    timeout: float = Field(default=30.0, gt=0.0, le=3600.0, description="Request timeout in seconds")
    max_connections: int = Field(default=100, ge=1, le=10_000, description="Connection pool size")
    follow_redirects: bool = Field(default=True, description="Follow HTTP redirects")
    user_agent: str | None = Field(default=None, description="User-Agent header override")

    def create_transport(self) -> HTTPXTransport:
        return HTTPXTransport(
            timeout=self.timeout,
            max_connections=self.max_connections,
            follow_redirects=self.follow_redirects,
            user_agent=self.user_agent,
        )


class DebugCaptureSettings(BaseConfig):
    """Capturing request/response pairs to disk."""

    enabled: bool = Field(default=False, description="Write a capture file per response")
    directory: Path = Field(default=Path("network-captures"), description="Root capture directory")
    stored_sessions_limit: int | None = Field(
        default=None,
        ge=1,
        description="Number of newest session directories to keep",
    )

    def create_processor(self) -> EndpointRequestStorageProcessor | None:
        """Capture stage for these settings, or None when capturing is off."""
        if not self.enabled:
            return None
        return EndpointRequestStorageProcessor(
            self.directory,
            stored_sessions_limit=self.stored_sessions_limit,
        )


class LoggingSettings(BaseConfig):
    """Library logging output."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    format: Literal["text", "json", "keyvalue"] = Field(default="text", description="Log output format")
    redact_secrets: bool = Field(default=True, description="Redact tokens and credentials")

    def apply(self) -> logging.Logger:
        """Configure the library logger from these settings."""
        return configure_logging(
            log_level=self.level,
            log_format=LogFormat(self.format),
            redact_secrets=self.redact_secrets,
        )


class NetworkingConfig(BaseConfig):
    """Complete networking configuration."""

    retry: RetrySettings = Field(default_factory=RetrySettings)
    transport: TransportSettings = Field(default_factory=TransportSettings)
    debug_capture: DebugCaptureSettings = Field(default_factory=DebugCaptureSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
