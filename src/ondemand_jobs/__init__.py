"""Client SDK for submitting jobs to the on-demand processing API."""

from ondemand_jobs.domain import (
    PathMapping,
    Metadata,
    JobResult,
    ContainerResult,
    JobState,
    JobSnapshot,
    JobClientError,
    RequestError,
    ParseError,
    NotReadyError,
    TransportError,
    CancelledError,
    PollTimeoutError,
    ValidationError,
    ConfigurationError,
)
from ondemand_jobs.infrastructure import ClientConfig, ConfigLoader, HttpClient
from ondemand_jobs.application import Job, CancellationToken, PollPolicy, PollingTask

__version__ = "0.1.0"

__all__ = [
    "PathMapping",
    "Metadata",
    "JobResult",
    "ContainerResult",
    "JobState",
    "JobSnapshot",
    "JobClientError",
    "RequestError",
    "ParseError",
    "NotReadyError",
    "TransportError",
    "CancelledError",
    "PollTimeoutError",
    "ValidationError",
    "ConfigurationError",
    "ClientConfig",
    "ConfigLoader",
    "HttpClient",
    "Job",
    "CancellationToken",
    "PollPolicy",
    "PollingTask",
]
