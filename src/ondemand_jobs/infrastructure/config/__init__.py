"""Configuration package."""

from ondemand_jobs.infrastructure.config.loader import ConfigLoader, ClientConfig

__all__ = ["ConfigLoader", "ClientConfig"]
