"""Domain exceptions for the on-demand job client."""

from typing import Optional


class JobClientError(Exception):
    """Base exception for all client errors."""
    pass


class RequestError(JobClientError):
    """Raised when the API answers with a non-success HTTP status."""

    def __init__(
        self,
        status_code: int,
        status_text: str,
        message: Optional[str] = None
    ):
        self.status_code = status_code
        self.status_text = status_text or ""
        self.message = message
        detail = f"{status_code} {self.status_text}".strip()
        if message:
            detail = f"{detail}: {message}"
        super().__init__(f"Request failed ({detail})")


class ParseError(JobClientError):
    """Raised when a response body is not the JSON that was expected."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class NotReadyError(JobClientError):
    """Raised when a result is requested before the job completed."""
    pass


class TransportError(JobClientError):
    """Raised when the request fails before any response was received."""
    pass


class CancelledError(JobClientError):
    """Raised when polling is stopped through a cancellation token."""
    pass


class PollTimeoutError(JobClientError):
    """Raised when polling exceeds its check count or duration limit."""
    pass


class ValidationError(JobClientError):
    """Raised when a job is not fit for submission."""
    pass


class ConfigurationError(JobClientError):
    """Raised when configuration is invalid."""
    pass
