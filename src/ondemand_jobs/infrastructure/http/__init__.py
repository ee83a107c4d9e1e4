"""HTTP transport package."""

from ondemand_jobs.infrastructure.http.client import HttpClient, encode_form_fields

__all__ = ["HttpClient", "encode_form_fields"]
