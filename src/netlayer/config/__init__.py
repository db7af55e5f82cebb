"""Networking configuration: models, loading and errors."""

from netlayer.config.exceptions import ConfigError, ConfigLoadError, ConfigValidationError, EnvLoadError
from netlayer.config.loader import load_config
from netlayer.config.models import (
    DebugCaptureSettings,
    LoggingSettings,
    NetworkingConfig,
    RetrySettings,
    TransportSettings,
)

__all__ = [
    "ConfigError",
    "ConfigLoadError",
    "ConfigValidationError",
    "DebugCaptureSettings",
    "EnvLoadError",
    "LoggingSettings",
    "NetworkingConfig",
    "RetrySettings",
    "TransportSettings",
    "load_config",
]
