"""Load and persist pipeline configuration files."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from hrderby.config import PipelineConfig
from hrderby.errors import ConfigError

logger = logging.getLogger(__name__)

_CONFIG_ENV = "HRDERBY_CONFIG"
_DB_PATH_ENV = "HRDERBY_DB_PATH"
_SCORING_WORKERS_ENV = "HRDERBY_SCORING_WORKERS"
_SOURCE_TIMEOUT_ENV = "HRDERBY_SOURCE_TIMEOUT"

DEFAULT_CONFIG_PATH = Path("hrderby.json")


def _env_float(name: str, default: float, *, clamp_min: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid float for %s: %s; using default %.2f", name, raw, default)
        return default
    if clamp_min is not None:
        value = max(clamp_min, value)
    return value


def _env_int(name: str, default: int, *, min_value: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid int for %s: %s; using default %d", name, raw, default)
        return default
    if min_value is not None:
        value = max(min_value, value)
    return value


def resolve_config_path(path: Optional[Path] = None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.getenv(_CONFIG_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def apply_env_overrides(config: PipelineConfig) -> PipelineConfig:
    """Return a copy of ``config`` with environment overrides applied."""

    updates: Dict[str, Any] = {}
    env_db = os.getenv(_DB_PATH_ENV)
    if env_db:
        updates["db_path"] = Path(env_db)
    workers = _env_int(_SCORING_WORKERS_ENV, config.scoring_workers, min_value=1)
    if workers != config.scoring_workers:
        updates["scoring_workers"] = workers
    timeout = _env_float(_SOURCE_TIMEOUT_ENV, config.source.timeout_seconds, clamp_min=0.1)
    if timeout != config.source.timeout_seconds:
        updates["source"] = config.source.model_copy(update={"timeout_seconds": timeout})
    if not updates:
        return config
    return config.model_copy(update=updates)


def load_config(path: Optional[Path] = None, *, use_env: bool = True) -> PipelineConfig:
    config_path = resolve_config_path(path)
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"Configuration file not found: {config_path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid configuration JSON in {config_path}: {exc}") from exc
    try:
        config = PipelineConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {config_path}: {exc}") from exc
    logger.debug("Loaded configuration for season %s from %s", config.season.season_year, config_path)
    return apply_env_overrides(config) if use_env else config


def save_config(config: PipelineConfig, path: Path) -> None:
    path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
