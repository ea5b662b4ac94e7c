"""Tests for logging setup."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from shelldriver.config.settings import LoggingConfig
from shelldriver.utils.logging import setup_logging


@pytest.fixture
def package_logger() -> Iterator[logging.Logger]:
    logger = logging.getLogger("shelldriver")
    saved_handlers = list(logger.handlers)
    saved_level = logger.level
    yield logger
    for handler in list(logger.handlers):
        if handler not in saved_handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(saved_level)


class TestSetupLogging:
    def test_defaults(self, package_logger: logging.Logger) -> None:
        logger = setup_logging()
        assert logger is package_logger
        assert logger.level == logging.INFO

    def test_level_from_config(self, package_logger: logging.Logger) -> None:
        setup_logging(LoggingConfig(level="debug"))
        assert package_logger.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, package_logger: logging.Logger) -> None:
        setup_logging(LoggingConfig(level="chatty"))
        assert package_logger.level == logging.INFO

    def test_repeated_setup_does_not_stack_handlers(self, package_logger: logging.Logger) -> None:
        setup_logging()
        count = len(package_logger.handlers)
        setup_logging()
        assert len(package_logger.handlers) == count

    def test_file_handler(self, package_logger: logging.Logger, tmp_path: Path) -> None:
        log_file = tmp_path / "shelldriver.log"
        setup_logging(LoggingConfig(file=str(log_file)))
        logging.getLogger("shelldriver.shell.session").warning("pipe closed")
        for handler in package_logger.handlers:
            handler.flush()
        assert "pipe closed" in log_file.read_text()
