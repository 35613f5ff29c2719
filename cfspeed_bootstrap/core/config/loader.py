"""
Configuration loader — builds the InstallerConfig for one run.

Layers, lowest precedence first:
    built-in defaults  <  YAML file  <  environment  <  CLI overrides

The environment is passed in as a plain mapping so the version
override can be tested without touching ``os.environ``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from cfspeed_bootstrap.core.models.installer_config import InstallerConfig

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "cfspeed-install.yml"

# Environment variable → config field. First match wins for a field.
ENV_OVERRIDES: tuple[tuple[str, str], ...] = (
    ("CFSPEED_VERSION", "version"),
    ("VERSION", "version"),  # name used by the curl | sh installer
    ("CFSPEED_INSTALL_DIR", "install_dir"),
    ("CFSPEED_REPO", "repo"),
    ("CFSPEED_RELEASE_BASE_URL", "release_base_url"),
    ("CFSPEED_API_BASE_URL", "api_base_url"),
    ("CFSPEED_TIMEOUT", "timeout"),
)


class ConfigError(Exception):
    """Raised when installer configuration is invalid or unreadable."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Look for ``cfspeed-install.yml`` in ``start_dir`` (default: cwd)."""
    candidate = (start_dir or Path.cwd()) / CONFIG_FILE
    return candidate if candidate.is_file() else None


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML config file into a flat mapping.

    The file may be flat or wrap its keys under ``installer:``.

    Raises:
        ConfigError: If the file is missing, unreadable, or not a mapping.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading installer config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    section = data.get("installer", data)
    if not isinstance(section, dict):
        raise ConfigError(f"'installer' in {path} must be a mapping")
    return dict(section)


def env_overrides(env: Mapping[str, str]) -> dict[str, str]:
    """Pick config overrides out of an environment mapping.

    Blank values are ignored, so ``VERSION=`` behaves like an unset
    variable and the latest release is resolved.
    """
    found: dict[str, str] = {}
    for var, field_name in ENV_OVERRIDES:
        if field_name in found:
            continue
        value = env.get(var)
        if value is not None and value.strip():
            found[field_name] = value
    return found


def load_config(
    path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> InstallerConfig:
    """Load and validate installer configuration.

    Args:
        path: Explicit YAML file. If None, ``cfspeed-install.yml`` in the
            current directory is used when present.
        env: Environment mapping (default: ``os.environ``).
        overrides: Highest-precedence values, typically CLI flags.
            ``None`` values are ignored.

    Returns:
        Validated InstallerConfig.

    Raises:
        ConfigError: If any layer is invalid.
    """
    data: dict[str, Any] = {}

    if path is None:
        path = find_config_file()
    if path is not None:
        data.update(read_config_file(path))

    data.update(env_overrides(os.environ if env is None else env))

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = InstallerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid installer configuration: {e}") from e

    logger.debug(
        "Config: repo=%s install_dir=%s version=%s",
        config.repo, config.install_dir, config.version or "latest",
    )
    return config
