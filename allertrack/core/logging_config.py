"""
Logging setup for allertrack.

One named logger gets a console handler and a size-rotated file under the
configured logs directory. Library modules only call ``logging.getLogger``;
``Session.from_env`` is what runs this once at startup.
"""

import logging
import logging.handlers
from typing import List, Optional

from .config import Config, config as default_config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def _build_handlers(logger_name: str, settings: Config) -> List[logging.Handler]:
    settings.logs_dir.mkdir(parents=True, exist_ok=True)
    rotating = logging.handlers.RotatingFileHandler(
        settings.logs_dir / f"{logger_name}.log",
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    return [logging.StreamHandler(), rotating]


def setup_logging(
    logger_name: str = "allertrack",
    settings: Optional[Config] = None,
) -> logging.Logger:
    """
    Configure and return the package logger.

    Calling it again for an already configured logger is a no-op, so several
    sessions in one process share the same handlers.

    Args:
        logger_name: Logger to configure, normally the package name
        settings: Source of the level and the logs directory

    Returns:
        The configured logger
    """
    settings = settings or default_config
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger

    logger.setLevel(settings.log_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in _build_handlers(logger_name, settings):
        handler.setLevel(settings.log_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
