"""Environment-driven runtime settings."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional


logger = logging.getLogger(__name__)

_MAX_WORKERS_ENV = "NEXUS_MAX_WORKERS"
_PARALLEL_ENV = "NEXUS_PARALLEL"
_HISTORY_SIZE_ENV = "NEXUS_HISTORY_SIZE"
_LEARNING_ENV = "NEXUS_LEARNING"
_ADAPT_ENV = "NEXUS_ADAPT_DISTRIBUTION"
_SEED_ENV = "NEXUS_SEED"

_MAX_WORKERS_DEFAULT = 10
_HISTORY_SIZE_DEFAULT = 100

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _env_int(name: str, default: int, *, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid int for %s: %s; using default %d", name, raw, default)
        return default
    if min_value is not None:
        value = max(min_value, value)
    if max_value is not None:
        value = min(max_value, value)
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    logger.warning("Invalid boolean for %s: %s; using default %s", name, raw, default)
    return default


def _env_optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid int for %s: %s; ignoring", name, raw)
        return None


@dataclass(frozen=True)
class OptimizerSettings:
    max_workers: int = _MAX_WORKERS_DEFAULT
    parallel: bool = True
    history_size: int = _HISTORY_SIZE_DEFAULT
    learning_enabled: bool = True
    adapt_distribution: bool = True
    seed: Optional[int] = None

    @classmethod
    def from_env(cls) -> "OptimizerSettings":
        return cls(
            max_workers=_env_int(_MAX_WORKERS_ENV, _MAX_WORKERS_DEFAULT, min_value=1, max_value=64),
            parallel=_env_bool(_PARALLEL_ENV, True),
            history_size=_env_int(_HISTORY_SIZE_ENV, _HISTORY_SIZE_DEFAULT, min_value=1),
            learning_enabled=_env_bool(_LEARNING_ENV, True),
            adapt_distribution=_env_bool(_ADAPT_ENV, True),
            seed=_env_optional_int(_SEED_ENV),
        )
