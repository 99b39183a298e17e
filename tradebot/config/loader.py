"""YAML loader for the config subsystem.

The single ``tradebot.yml`` file is read, validated via models.py and returned
as an :class:`AppConfig`. ``TRADEBOT_CONFIG`` points at an alternative file.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import ValidationError

from tradebot.core.errors import ConfigurationError

from .models import AppConfig

_DEFAULT_CONFIG_PATH = Path("config") / "tradebot.yml"
CONFIG_ENV_VAR = "TRADEBOT_CONFIG"


def _read_yaml(path: Path) -> Mapping:
    """Read a YAML file and return a mapping (empty dict if file is blank)."""

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"YAML root must be a mapping in {path}")
    return data


def resolve_config_path(path: Path | str | None = None) -> Path:
    """Pick the explicit path, then ``$TRADEBOT_CONFIG``, then the default."""

    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return _DEFAULT_CONFIG_PATH


def load_app_config(path: Path | str | None = None) -> AppConfig:
    """Load tradebot.yml (server, bybit, storage, telemetry sections)."""

    config_path = resolve_config_path(path)
    data = _read_yaml(config_path)
    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid config in {config_path}: {exc}") from exc
