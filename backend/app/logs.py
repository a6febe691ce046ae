"""Process-wide logging setup."""
from __future__ import annotations

import logging

from backend.app.config import LoggingConfig


def configure_logging(config: LoggingConfig) -> None:
    """Configure the root logger from the application settings.

    Calling this more than once only adjusts the level; handlers installed by
    the host (uvicorn, pytest) are left untouched.
    """

    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        logging.getLogger(__name__).warning("Unknown log level %s; using INFO", config.level)
        level = logging.INFO
    logging.basicConfig(level=level, format=config.format)
    logging.getLogger().setLevel(level)
