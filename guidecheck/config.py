# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Configuration loading for guidecheck.

Resolution order for the config file:
1. Explicit path argument (``--config``)
2. GUIDECHECK_CONFIG environment variable
3. ~/.config/guidecheck/config.yml

CLI flags are applied on top via ``overrides``.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import pydantic
import yaml

from guidecheck.errors import ConfigError
from guidecheck.models.config import GuidecheckConfigModel
from guidecheck.paths import HostPaths
from guidecheck.utils.logging import get_logger

logger = get_logger(__name__)


def resolve_config_path(config_path: Optional[Path] = None) -> Tuple[Path, bool]:
    """Resolve which config file to read.

    Returns:
        Tuple of (path, explicit) where explicit is True when the user named
        the file (argument or environment) rather than relying on the default.
    """
    if config_path is not None:
        return Path(config_path), True

    env_path = os.getenv("GUIDECHECK_CONFIG")
    if env_path:
        return Path(env_path), True

    return HostPaths.config_file(), False


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> GuidecheckConfigModel:
    """Load and validate configuration.

    A missing file means defaults. Errors in a file the user named
    explicitly are fatal; errors in the implicit default file are logged
    and defaults are used instead.

    Args:
        config_path: Optional explicit config file
        overrides: Values from CLI flags; None values are ignored

    Returns:
        Validated configuration model

    Raises:
        ConfigError: Explicit config file unreadable or invalid, or invalid overrides
    """
    path, explicit = resolve_config_path(config_path)
    raw: Dict[str, Any] = {}

    if path.exists():
        try:
            raw = _read_yaml(path)
            logger.debug(f"Loaded config from {path}")
        except (OSError, yaml.YAMLError, ConfigError) as e:
            if explicit:
                raise ConfigError(
                    f"Failed to load config from {path}: {e}",
                    hint="Fix the YAML or pass a different --config file",
                )
            logger.warning(f"Failed to load config from {path}: {e}")
            raw = {}
    elif explicit:
        raise ConfigError(f"Config file not found: {path}")

    try:
        model = GuidecheckConfigModel.model_validate(raw)
    except pydantic.ValidationError as e:
        if explicit:
            raise ConfigError(f"Invalid configuration in {path}: {e}")
        logger.warning(f"Config validation errors in {path}, using defaults: {e}")
        model = GuidecheckConfigModel()

    if overrides:
        values = {key: value for key, value in overrides.items() if value is not None}
        try:
            model = GuidecheckConfigModel.model_validate({**model.model_dump(), **values})
        except pydantic.ValidationError as e:
            raise ConfigError(f"Invalid option: {e}")

    return model
