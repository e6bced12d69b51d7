"""
Logging setup with console and rotating file handlers.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from astrostep_alpaca.config.models import LoggingConfig


LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _file_handler(path: str, formatter: logging.Formatter) -> Optional[logging.Handler]:
    try:
        handler = RotatingFileHandler(
            path,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8"
        )
    except IOError as e:
        logging.getLogger(__name__).error(f"Failed to create log file {path}: {e}")
        return None
    handler.setFormatter(formatter)
    return handler


def setup_logging(config: LoggingConfig) -> None:
    """
    Configure the root logger.

    Args:
        config: Logging configuration.
    """
    root = logging.getLogger()
    root.setLevel(config.level)
    root.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if config.file:
        handler = _file_handler(config.file, formatter)
        if handler is not None:
            root.addHandler(handler)
            root.info(f"Logging to file: {config.file}")

    root.info(f"Logging initialized at level: {config.level}")
