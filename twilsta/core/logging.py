"""Logging configuration."""
import logging
import sys

from twilsta.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure the ``twilsta`` logger once and return it.

    Level comes from ``LOG_LEVEL`` unless given explicitly. Repeated calls
    (reloads, tests) do not stack handlers.
    """
    logger = logging.getLogger("twilsta")
    logger.setLevel((level or settings.LOG_LEVEL).upper())

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
