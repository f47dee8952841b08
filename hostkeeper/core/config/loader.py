"""
Configuration loader — reads hostkeeper.yml into a MaintenanceConfig.

A missing file is not an error: every setting has a default, so
hostkeeper runs unconfigured. An explicit ``--config`` path must exist.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from hostkeeper.core.models.config import MaintenanceConfig

logger = logging.getLogger(__name__)

CONFIG_FILE = "hostkeeper.yml"


class ConfigError(Exception):
    """Raised when the configuration file is unreadable or invalid."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Nearest hostkeeper.yml in ``start_dir`` (default cwd) or one of its parents."""
    start = (start_dir or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        if (directory / CONFIG_FILE).is_file():
            return directory / CONFIG_FILE
    return None


def load_config(path: Path | None = None, *, search: bool = True) -> MaintenanceConfig:
    """Load and validate the maintenance configuration.

    With no ``path`` and ``search`` on, the nearest hostkeeper.yml above
    the working directory is used; with none found, the defaults.

    Raises:
        ConfigError: explicit file missing, unreadable, not a YAML
            mapping, or rejected by the models.
    """
    if path is None and search:
        path = find_config_file()
    if path is None:
        logger.debug("No %s found, using defaults", CONFIG_FILE)
        return MaintenanceConfig()

    data = _read_mapping(path)
    try:
        config = MaintenanceConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded configuration from %s", path)
    return config


def _read_mapping(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigError(f"{path}: file not found")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"{path}: unreadable ({e})") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    # An empty file means all defaults
    data = {} if data is None else data
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping, not {type(data).__name__}")
    return data
