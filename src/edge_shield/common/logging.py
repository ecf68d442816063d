"""Logging configuration for Edge Shield."""

import logging
import sys
from typing import Union

from edge_shield.common.config import LogLevel

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine")


def configure_logging(level: Union[LogLevel, str] = LogLevel.INFO) -> None:
    """Configure root logging for the process.

    Args:
        level: Log level for the application loggers
    """
    level_name = level.value if isinstance(level, LogLevel) else str(level).upper()

    root = logging.getLogger()
    root.setLevel(level_name)

    # Replace existing handlers so repeated calls do not duplicate output
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    if level_name != LogLevel.DEBUG.value:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
