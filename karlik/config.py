"""Engine configuration loaded from ``karlik_config.yaml``."""
from __future__ import annotations

import logging
import os
import random
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "karlik_config.yaml"
CONFIG_ENV_VAR = "KARLIK_CONFIG"


@dataclass
class EngineConfig:
    max_steps: int = 10_000
    ident_max_attempts: int = 1000
    random_seed: Optional[int] = None
    trace: bool = False
    session_path: str = "karlik.dat"
    log_level: str = "INFO"

    def __post_init__(self):
        if self.max_steps <= 0:
            raise ValueError("'max_steps' must be positive")
        if self.ident_max_attempts <= 0:
            raise ValueError("'ident_max_attempts' must be positive")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ValueError(f"Unknown log level '{self.log_level}'")

    def make_rng(self) -> random.Random:
        return random.Random(self.random_seed)


def load_config(file_path: Optional[str] = None) -> EngineConfig:
    """Read the ``engine_config`` section, falling back to defaults when the file is absent."""

    path = file_path or os.getenv(CONFIG_ENV_VAR) or DEFAULT_CONFIG_FILE
    if not os.path.exists(path):
        logger.warning("Config file '%s' not found. Using defaults.", path)
        return EngineConfig()

    try:
        with open(path, "r", encoding="utf-8") as config_file:
            data = yaml.safe_load(config_file) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in '{path}': {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Top level of '{path}' must be a mapping.")
    section: Dict[str, Any] = data.get("engine_config") or {}
    if not isinstance(section, dict):
        raise ValueError(f"'engine_config' in '{path}' must be a mapping.")

    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ValueError(f"Unknown engine_config keys in '{path}': {', '.join(unknown)}")
    return EngineConfig(**section)


__all__ = ["CONFIG_ENV_VAR", "DEFAULT_CONFIG_FILE", "EngineConfig", "load_config"]
