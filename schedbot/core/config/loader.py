"""Configuration loader - YAML file + env override."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from schedbot.core.config.schema import Config

_DEFAULT_FILES = ("config.yaml", "config.yml")


def load_config(config_path: str | Path | None = None) -> Config:
    """
    Load the processor configuration.

    Config file lookup:
        1. Explicit ``config_path`` argument
        2. ``SCHEDBOT_CONFIG`` env variable
        3. ``./config.yaml`` or ``./config.yml`` in cwd

    A missing file is not an error; defaults and env vars still apply.
    Values priority (handled by pydantic-settings):
        env vars  >  .env file  >  YAML  >  defaults
    """
    path = _resolve_path(config_path)
    data = _read_yaml(path)
    if data:
        logger.debug(f"Config loaded from {path}")
    return Config(**data)


def _resolve_path(config_path: str | Path | None = None) -> Path | None:
    if config_path:
        return Path(config_path).expanduser()

    env = os.environ.get("SCHEDBOT_CONFIG")
    if env:
        return Path(env).expanduser()

    for name in _DEFAULT_FILES:
        candidate = Path(name)
        if candidate.exists():
            return candidate
    return None


def _read_yaml(path: Path | None) -> dict[str, Any]:
    if path is None or not path.is_file():
        return {}
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at top level")
    return data
