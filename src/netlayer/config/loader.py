"""Configuration loading from YAML and environment variables.

Sources are applied in this order, later ones winning:

1. Model defaults
2. The YAML file, with ``${VAR}`` references resolved from the environment
3. ``<PREFIX><SECTION>__<FIELD>`` environment variables
"""

from __future__ import annotations

import copy
import json
import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import ValidationError

from netlayer.config.exceptions import ConfigLoadError, ConfigValidationError, EnvLoadError
from netlayer.config.models import NetworkingConfig

logger = logging.getLogger(__name__)

DEFAULT_ENV_PREFIX = "NETLAYER_"
_ENV_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

type ConfigData = dict[str, Any]  # pyright: ignore[reportExplicitAny] # Config systems need flexible types


def load_yaml(path: Path) -> ConfigData:
    """Load a YAML mapping from ``path``.

    Empty files load as an empty mapping.

    Raises:
        ConfigLoadError: If the file cannot be read, parsed, or is not a mapping
    """
    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)  # pyright: ignore[reportAny] # yaml.safe_load returns Any
    except (OSError, yaml.YAMLError) as e:
        raise ConfigLoadError(f"Failed to load {path}: {e}", str(path)) from e
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigLoadError(f"Top level of {path} must be a mapping", str(path))
    return cast(ConfigData, content)


def resolve_references(value: object, environ: Mapping[str, str]) -> object:
    """Replace ``${VAR}`` references in every string of a nested structure.

    Raises:
        EnvLoadError: If a referenced variable is not set
    """
    if isinstance(value, str):

        def substitute(match: re.Match[str]) -> str:
            name = match.group(1)
            if name not in environ:
                raise EnvLoadError(f"Environment variable {name} is not set", name)
            return environ[name]

        return _ENV_REFERENCE.sub(substitute, value)
    if isinstance(value, dict):
        return {key: resolve_references(item, environ) for key, item in cast(ConfigData, value).items()}
    if isinstance(value, list):
        return [resolve_references(item, environ) for item in cast(list[object], value)]
    return value


def convert_env_value(value: str, env_var: str) -> object:
    """Convert an environment string to a bool, number, JSON value or string.

    Raises:
        EnvLoadError: If a value that looks like JSON does not parse
    """
    lowered = value.lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    if lowered in ("none", "null"):
        return None
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    if value.startswith(("[", "{")):
        try:
            return cast(object, json.loads(value))
        except json.JSONDecodeError as e:
            raise EnvLoadError(f"Failed to parse JSON for {env_var}: {e}", env_var) from e
    return value


def env_overrides(environ: Mapping[str, str], prefix: str = DEFAULT_ENV_PREFIX) -> ConfigData:
    """Collect ``<PREFIX><SECTION>__<FIELD>`` variables into a nested mapping."""
    overrides: ConfigData = {}
    for env_var, raw_value in sorted(environ.items()):
        if not env_var.startswith(prefix):
            continue
        key = env_var[len(prefix) :].lower()
        if "__" not in key:
            logger.debug("Ignoring %s: expected <SECTION>__<FIELD>", env_var)
            continue
        path = [part for part in key.split("__") if part]
        current = overrides
        for part in path[:-1]:
            nested = current.get(part)
            if not isinstance(nested, dict):
                nested = {}
                current[part] = nested
            current = cast(ConfigData, nested)
        current[path[-1]] = convert_env_value(raw_value, env_var)
    return overrides


def deep_merge(base: ConfigData, override: ConfigData) -> ConfigData:
    """Merge ``override`` into a copy of ``base``; nested mappings merge key by key."""
    result = copy.deepcopy(base)
    for key, value in override.items():  # pyright: ignore[reportAny]
        existing = result.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            result[key] = deep_merge(cast(ConfigData, existing), cast(ConfigData, value))
        else:
            result[key] = copy.deepcopy(value)  # pyright: ignore[reportAny]
    return result


def load_config(
    path: Path | None = None,
    *,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    environ: Mapping[str, str] | None = None,
) -> NetworkingConfig:
    """Load and validate networking configuration.

    Args:
        path: Optional YAML file
        env_prefix: Prefix of override variables
        environ: Environment to read (``os.environ`` by default)

    Returns:
        Validated configuration

    Raises:
        ConfigLoadError: If the file cannot be loaded
        EnvLoadError: If a reference or override cannot be applied
        ConfigValidationError: If the merged values are invalid
    """
    env = environ if environ is not None else os.environ
    data: ConfigData = {}
    if path is not None:
        data = cast(ConfigData, resolve_references(load_yaml(path), env))
        logger.debug("Loaded configuration from %s", path)
    data = deep_merge(data, env_overrides(env, env_prefix))
    try:
        return NetworkingConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid networking configuration: {e.error_count()} error(s)", e) from e
