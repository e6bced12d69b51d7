"""Tests for logging setup."""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from astrostep_alpaca.config.models import LoggingConfig
from astrostep_alpaca.utils.logging_setup import setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)


def test_console_only(root_logger):
    setup_logging(LoggingConfig(level="warning", file=None))

    assert root_logger.level == logging.WARNING
    assert len(root_logger.handlers) == 1
    assert isinstance(root_logger.handlers[0], logging.StreamHandler)


def test_rotating_file(root_logger, tmp_path):
    log_file = tmp_path / "driver.log"

    setup_logging(LoggingConfig(level="DEBUG", file=str(log_file)))
    logging.getLogger("astrostep_alpaca.test").debug("hello focuser")

    file_handlers = [h for h in root_logger.handlers if isinstance(h, RotatingFileHandler)]
    assert len(file_handlers) == 1
    file_handlers[0].flush()
    assert "hello focuser" in log_file.read_text(encoding="utf-8")


def test_unwritable_file_falls_back_to_console(root_logger, tmp_path):
    setup_logging(LoggingConfig(file=str(tmp_path / "missing" / "driver.log")))

    assert len(root_logger.handlers) == 1
