"""
Runtime Configuration

Defaults for dataset generation, index construction and playback, with
optional overrides from ``METRICSEARCH_*`` environment variables.

Example:
    >>> from metricsearch.config import runtime_config
    >>> cfg = runtime_config()
    >>> cfg.node_capacity
    4
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}

DOMAIN_SIZE = 10.0
DEFAULT_POINT_COUNT = 15
DEFAULT_PIVOT_COUNT = 2
DEFAULT_K_VALUE = 3
DEFAULT_RANGE_RADIUS = 2.0
DEFAULT_NODE_CAPACITY = 4
DEFAULT_PLAYBACK_DELAY = 0.5


def _int_from_env(raw: Optional[str], *, default: int) -> int:
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid integer value '{raw}'") from exc


def _float_from_env(raw: Optional[str], *, default: float) -> float:
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid float value '{raw}'") from exc


def _optional_int_from_env(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw.strip() == "":
        return None
    return _int_from_env(raw, default=0)


def _normalise_log_level(raw: Optional[str]) -> str:
    if raw is None or raw.strip() == "":
        return "WARNING"
    level = raw.strip().upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unsupported log level '{raw}'. Expected one of {sorted(_LOG_LEVELS)}.")
    return level


@dataclass(frozen=True)
class RuntimeConfig:
    """
    Process-wide defaults.

    Attributes:
        log_level: Level applied to every ``metricsearch.*`` logger
        node_capacity: Default M-tree node capacity
        default_k: Default k for kNN queries
        default_radius: Default radius for range queries
        domain_size: Side length of the square sampling domain
        point_count: Default number of generated points
        pivot_count: Default number of LAESA pivots
        seed: Default random seed, None for nondeterministic runs
        playback_delay: Seconds between steps in continuous playback
        query_x: Default query x coordinate
        query_y: Default query y coordinate
    """
    log_level: str = "WARNING"
    node_capacity: int = DEFAULT_NODE_CAPACITY
    default_k: int = DEFAULT_K_VALUE
    default_radius: float = DEFAULT_RANGE_RADIUS
    domain_size: float = DOMAIN_SIZE
    point_count: int = DEFAULT_POINT_COUNT
    pivot_count: int = DEFAULT_PIVOT_COUNT
    seed: Optional[int] = None
    playback_delay: float = DEFAULT_PLAYBACK_DELAY
    query_x: float = DOMAIN_SIZE / 2
    query_y: float = DOMAIN_SIZE / 2

    @property
    def log_level_value(self) -> int:
        """Numeric logging level."""
        return logging.getLevelName(self.log_level)

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        domain_size = _float_from_env(os.getenv("METRICSEARCH_DOMAIN_SIZE"), default=DOMAIN_SIZE)
        node_capacity = _int_from_env(
            os.getenv("METRICSEARCH_NODE_CAPACITY"), default=DEFAULT_NODE_CAPACITY
        )
        if node_capacity < 2:
            raise ValueError(f"Node capacity must be at least 2, got {node_capacity}")
        return cls(
            log_level=_normalise_log_level(os.getenv("METRICSEARCH_LOG_LEVEL")),
            node_capacity=node_capacity,
            default_k=_int_from_env(os.getenv("METRICSEARCH_DEFAULT_K"), default=DEFAULT_K_VALUE),
            default_radius=_float_from_env(
                os.getenv("METRICSEARCH_DEFAULT_RADIUS"), default=DEFAULT_RANGE_RADIUS
            ),
            domain_size=domain_size,
            point_count=_int_from_env(
                os.getenv("METRICSEARCH_POINT_COUNT"), default=DEFAULT_POINT_COUNT
            ),
            pivot_count=_int_from_env(
                os.getenv("METRICSEARCH_PIVOT_COUNT"), default=DEFAULT_PIVOT_COUNT
            ),
            seed=_optional_int_from_env(os.getenv("METRICSEARCH_SEED")),
            playback_delay=_float_from_env(
                os.getenv("METRICSEARCH_PLAYBACK_DELAY"), default=DEFAULT_PLAYBACK_DELAY
            ),
            query_x=_float_from_env(os.getenv("METRICSEARCH_QUERY_X"), default=domain_size / 2),
            query_y=_float_from_env(os.getenv("METRICSEARCH_QUERY_Y"), default=domain_size / 2),
        )


@lru_cache(maxsize=None)
def runtime_config() -> RuntimeConfig:
    return RuntimeConfig.from_env()


def reset_runtime_config_cache() -> None:
    runtime_config.cache_clear()
