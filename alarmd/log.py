from __future__ import annotations

import os
import sys
from typing import Optional

from loguru import logger as _loguru_logger

_LOGGER = None

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "{level:<8} | {extra[tag]} | {message}"
)


def setup_logging(level: Optional[str] = None):
    """
    Return the process-wide loguru logger, configuring it on first use.

    Calling again with an explicit ``level`` reconfigures the console sink,
    which is what the entry point does once config.yaml has been read.
    """
    global _LOGGER
    if _LOGGER is not None and level is None:
        return _LOGGER

    level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_format = os.environ.get("LOG_FORMAT", DEFAULT_FORMAT)

    _loguru_logger.remove()
    _loguru_logger.configure(extra={"tag": "-"})
    _loguru_logger.add(
        sys.stdout,
        format=log_format,
        level=level,
        enqueue=True,
    )
    _LOGGER = _loguru_logger
    return _LOGGER
