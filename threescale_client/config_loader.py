"""Config Loader - builds a ClientConfig from a YAML file or the environment.

YAML files may reference environment variables as ``${ENV_VAR}`` so the
provider key does not have to live in the file:

    provider_key: ${THREESCALE_PROVIDER_KEY}
    host: su1.3scale.net
    secure: true
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from threescale_client.errors import ConfigError
from threescale_client.models import DEFAULT_HOST, ClientConfig


_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def load_client_config(config_path: Path) -> ClientConfig:
    """Load client configuration from YAML with ${ENV_VAR} substitution."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError("Config file must be a YAML mapping")

    raw_config = _substitute_env_vars(raw_config)

    try:
        return ClientConfig.model_validate(raw_config)
    except Exception as e:
        raise ConfigError(f"Invalid config structure: {e}") from e


def config_from_env(environ: Mapping[str, str] | None = None) -> ClientConfig:
    """Build configuration from THREESCALE_* variables.

    THREESCALE_PROVIDER_KEY is required; THREESCALE_HOST, THREESCALE_SECURE,
    THREESCALE_PERSISTENT and THREESCALE_TIMEOUT are optional.
    """
    env = os.environ if environ is None else environ

    provider_key = env.get("THREESCALE_PROVIDER_KEY", "").strip()
    if not provider_key:
        raise ConfigError("Missing required environment variable: THREESCALE_PROVIDER_KEY")

    raw_config: dict[str, Any] = {
        "provider_key": provider_key,
        "host": env.get("THREESCALE_HOST") or DEFAULT_HOST,
        "secure": _parse_bool("THREESCALE_SECURE", env.get("THREESCALE_SECURE", "")),
        "persistent": _parse_bool("THREESCALE_PERSISTENT", env.get("THREESCALE_PERSISTENT", "")),
    }
    if env.get("THREESCALE_TIMEOUT"):
        raw_config["timeout"] = env["THREESCALE_TIMEOUT"]

    try:
        return ClientConfig.model_validate(raw_config)
    except Exception as e:
        raise ConfigError(f"Invalid environment configuration: {e}") from e


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _substitute_env_vars(data: Any) -> Any:
    """Recursively substitute ${ENV_VAR} patterns in strings within data."""
    if isinstance(data, str):
        return _substitute_string(data)
    elif isinstance(data, dict):
        return {k: _substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    return data


def _substitute_string(s: str) -> str:
    """Substitute ${ENV_VAR} patterns. Raises ConfigError if env var is not set."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(f"Environment variable '{var_name}' is not set")
        return value

    return _ENV_VAR_PATTERN.sub(replacer, s)
