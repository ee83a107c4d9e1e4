"""Protocol definitions for dependency inversion."""

from typing import TYPE_CHECKING, Protocol, Any, Dict, Mapping, Optional

if TYPE_CHECKING:
    from ondemand_jobs.infrastructure.config.loader import ClientConfig


class IHttpClient(Protocol):
    """Interface for the HTTP helper used by the job lifecycle."""

    config: "ClientConfig"

    def get(self, path: str, headers: Optional[Dict[str, str]] = None) -> Any:
        """Issue a GET request and return the parsed JSON body."""
        ...

    def post_multipart(
        self,
        path: str,
        fields: Mapping[str, Any],
        files: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """Issue a multipart POST request and return the parsed JSON body."""
        ...

    def put(
        self,
        path: str,
        body: Any,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """Issue a JSON PUT request and return the parsed JSON body."""
        ...
