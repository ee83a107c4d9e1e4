"""Shared utilities package."""

from ondemand_jobs.shared.logging import setup_logger, get_logger
from ondemand_jobs.shared.types import FilePayload

__all__ = [
    "setup_logger",
    "get_logger",
    "FilePayload",
]
