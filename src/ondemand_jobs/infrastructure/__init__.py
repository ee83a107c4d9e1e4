"""Infrastructure layer package."""

from ondemand_jobs.infrastructure.config import ConfigLoader, ClientConfig
from ondemand_jobs.infrastructure.http import HttpClient, encode_form_fields

__all__ = [
    "ConfigLoader",
    "ClientConfig",
    "HttpClient",
    "encode_form_fields",
]
