"""Errors raised while loading networking configuration."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError


class ConfigError(Exception):
    """Base exception for all configuration-related errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:  # pyright: ignore[reportAny] # Flexible config error context
        """Initialize ConfigError.

        Args:
            message: Error message
            context: Additional context information for debugging
        """
        super().__init__(message)
        self.context: dict[str, Any] = context or {}  # pyright: ignore[reportAny] # Flexible config error context


class ConfigLoadError(ConfigError):
    """Raised when a configuration file cannot be read or parsed."""

    def __init__(self, message: str, file_path: str | None = None) -> None:
        """Initialize ConfigLoadError.

        Args:
            message: Error message
            file_path: Path to the configuration file that failed to load
        """
        super().__init__(message, {"file_path": file_path} if file_path is not None else None)
        self.file_path: str | None = file_path


class EnvLoadError(ConfigError):
    """Raised when an environment variable cannot be applied."""

    def __init__(self, message: str, env_var: str | None = None) -> None:
        """Initialize EnvLoadError.

        Args:
            message: Error message
            env_var: Environment variable that caused the error
        """
        super().__init__(message, {"env_var": env_var} if env_var is not None else None)
        self.env_var: str | None = env_var


class ConfigValidationError(ConfigError):
    """Raised when loaded values do not validate against the models."""

    def __init__(self, message: str, pydantic_error: ValidationError | None = None) -> None:
        """Initialize ConfigValidationError.

        Args:
            message: Error message
            pydantic_error: Original Pydantic ValidationError
        """
        context: dict[str, Any] = {}  # pyright: ignore[reportAny] # Flexible config error context
        if pydantic_error is not None:
            context["validation_errors"] = [
                {
                    "field": ".".join(str(loc) for loc in err["loc"]),
                    "message": err["msg"],
                    "type": err["type"],
                }
                for err in pydantic_error.errors()
            ]
        super().__init__(message, context)
        self.pydantic_error: ValidationError | None = pydantic_error
