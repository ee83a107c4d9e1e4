"""Centralized logging utilities."""

import logging
import sys
from typing import Optional
from pathlib import Path


PACKAGE_LOGGER = 'ondemand_jobs'
DEFAULT_FORMAT = '[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s'


def setup_logger(
    name: str = PACKAGE_LOGGER,
    level: int = logging.INFO,
    log_file: Optional[Path] = None
) -> logging.Logger:
    """
    Install console (and optionally file) output on a logger.

    Call once with the default name to see the SDK's request and polling
    logs; module loggers below it propagate here.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    formatter = logging.Formatter(DEFAULT_FORMAT, datefmt='%H:%M:%S')

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger; names outside the package get their own console output."""
    logger = logging.getLogger(name)
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + '.'):
        return logger
    if not logger.handlers:
        return setup_logger(name)
    return logger
