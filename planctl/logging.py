"""Logging configuration for the planctl package."""
import logging
import sys
from typing import Iterable

from planctl.config import Config

NOISY_LOGGERS = ("ansible_runner", "urllib3")


def setup_logger(name: str, level: int = None, quiet: Iterable[str] = NOISY_LOGGERS) -> logging.Logger:
    """
    Set up a logger that writes to stderr.

    Stdout is left for the task output shown to the user.

    Args:
        name: The name of the logger
        level: The logging level (default: Config.LOG_LEVEL)
        quiet: Third party loggers capped at WARNING unless level is DEBUG

    Returns:
        Configured logger instance
    """
    if level is None:
        level = getattr(logging, Config.LOG_LEVEL, logging.INFO)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(Config.LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setLevel(level)

    if level > logging.DEBUG:
        for noisy in quiet:
            logging.getLogger(noisy).setLevel(logging.WARNING)
    return logger
