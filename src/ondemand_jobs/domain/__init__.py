"""Domain layer package."""

from .models import (
    PathMapping,
    Metadata,
    JobResult,
    ContainerResult,
    JobState,
    JobSnapshot,
)
from .exceptions import (
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
from .protocols import IHttpClient

__all__ = [
    # Models
    "PathMapping",
    "Metadata",
    "JobResult",
    "ContainerResult",
    "JobState",
    "JobSnapshot",
    # Exceptions
    "JobClientError",
    "RequestError",
    "ParseError",
    "NotReadyError",
    "TransportError",
    "CancelledError",
    "PollTimeoutError",
    "ValidationError",
    "ConfigurationError",
    # Protocols
    "IHttpClient",
]
