"""
Logging utilities.
"""

import logging
import sys

LOGGER_NAME = "docindex"


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Handlers are attached once, to the package root logger, so module
    loggers propagate to a single stderr stream.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger
    """
    root = logging.getLogger(LOGGER_NAME)

    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        root.addHandler(handler)
        root.setLevel(logging.INFO)

    return logging.getLogger(name)


def set_log_level(level: int | str) -> None:
    """
    Set the package log level.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logging.getLogger(LOGGER_NAME).setLevel(level)
