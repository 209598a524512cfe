"""Logging configuration for the threebody compute host."""

import logging
from typing import Optional

from .settings import LOG_FORMAT, LOG_LEVEL


def setup_logging(name: str = "threebody", level: Optional[str] = None) -> logging.Logger:
    """
    Attach a console handler to the package logger.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger instance
    """
    if level is None:
        level = LOG_LEVEL

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Importing the app more than once (reloaders, tests) must not stack handlers
    if not any(getattr(h, "_threebody", False) for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        console_handler._threebody = True
        logger.addHandler(console_handler)

    return logger
