"""Logging setup utilities for shelldriver.

Configures logging for the package based on the logging configuration
settings.
"""

from __future__ import annotations

import logging
import sys

from shelldriver.config.settings import LoggingConfig

_HANDLER_MARKER = "_shelldriver_handler"


def setup_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """Configure logging for the shelldriver package.

    Sets up the 'shelldriver' logger with the specified level, format,
    and optional file handler. Calling it again replaces the handlers it
    installed earlier instead of stacking duplicates.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, stderr output).

    Returns:
        The configured package logger.
    """
    if config is None:
        config = LoggingConfig()

    root_logger = logging.getLogger("shelldriver")
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(config.format)

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    setattr(console_handler, _HANDLER_MARKER, True)
    root_logger.addHandler(console_handler)

    # File handler (optional)
    if config.file:
        file_handler = logging.FileHandler(config.file)
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_MARKER, True)
        root_logger.addHandler(file_handler)

    root_logger.info("Logging initialized at %s level", config.level)
    return root_logger
