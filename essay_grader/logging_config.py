"""Logging configuration for the application."""

import logging
import sys

from essay_grader.config import Settings, get_settings

LOGGER_NAME = "essay_grader"


def setup_logging(settings: Settings | None = None) -> logging.Logger:
    """Configure the package logger.

    Safe to call more than once: the stream handler is only attached the
    first time, later calls just update the level.

    Returns:
        logging.Logger: The ``essay_grader`` logger.
    """
    settings = settings or get_settings()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(settings.log_level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(settings.log_format))
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(settings.log_level)

    logger.debug("Logger initialized at level %s", settings.log_level)
    return logger
