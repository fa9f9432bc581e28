"""Package logging helpers that honour `RuntimeConfig`."""

import logging
from typing import Optional

from . import config as ms_config


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger configured according to the runtime configuration."""

    logger_name = "metricsearch" if name is None else f"metricsearch.{name}"
    runtime = ms_config.runtime_config()
    logger = logging.getLogger(logger_name)
    logger.setLevel(runtime.log_level)
    return logger
