"""
HTTP helper for the job processing API.

Infrastructure layer: every network call of the SDK goes through HttpClient.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple
import logging

import requests
from requests.exceptions import RequestException

from ondemand_jobs.domain.exceptions import RequestError, ParseError, TransportError
from ondemand_jobs.infrastructure.config.loader import ClientConfig


JSON_CONTENT_TYPE = 'application/json'
DEFAULT_ERROR_MESSAGE = 'An error occurred.'


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def _as_record(item: Any) -> Mapping[str, Any]:
    if hasattr(item, 'to_dict'):
        item = item.to_dict()
    if not isinstance(item, Mapping):
        raise ValueError(f"Sequence elements must be records, got {type(item).__name__}")
    return item


def encode_form_fields(fields: Mapping[str, Any]) -> List[Tuple[str, str]]:
    """
    Flatten fields into multipart form entries.

    Scalars become one entry each. A sequence of records becomes one entry
    per sub-field, keyed ``key[index][subkey]``. Only one level is flattened.
    None values are left out.

    Args:
        fields: Field name to value mapping

    Returns:
        Ordered (name, value) pairs

    Raises:
        ValueError: If a value nests deeper than one level
    """
    entries: List[Tuple[str, str]] = []

    for key, value in fields.items():
        if value is None:
            continue

        if isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                for sub_key, sub_value in _as_record(item).items():
                    if sub_value is None:
                        continue
                    if isinstance(sub_value, (list, tuple, Mapping)):
                        raise ValueError(
                            f"Nested value in {key}[{index}][{sub_key}] is not supported"
                        )
                    entries.append((f"{key}[{index}][{sub_key}]", _form_value(sub_value)))
        elif isinstance(value, Mapping):
            raise ValueError(f"Mapping value for {key} is not supported")
        else:
            entries.append((key, _form_value(value)))

    return entries


class HttpClient:
    """
    HTTP helper bound to one base endpoint.

    Uses a requests session; parses JSON responses and turns failures into
    RequestError / ParseError / TransportError.
    """

    def __init__(
        self,
        config: ClientConfig,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize HTTP client.

        Args:
            config: Client configuration (base URL, key, timeout)
            session: Optional pre-built session (tests inject a mock)
            logger: Logger instance
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': JSON_CONTENT_TYPE,
        })

    def get(self, path: str, headers: Optional[Dict[str, str]] = None) -> Any:
        """GET path and return parsed JSON."""
        return self._request(
            'GET',
            path,
            headers=self._merge_headers(headers, content_type=JSON_CONTENT_TYPE),
        )

    def post_multipart(
        self,
        path: str,
        fields: Mapping[str, Any],
        files: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """
        POST fields (and files) as multipart form data.

        Args:
            path: Route relative to the base URL
            fields: Form fields, flattened by encode_form_fields
            files: Optional part name to (filename, fileobj[, content_type])
            headers: Extra headers

        Returns:
            Parsed JSON response
        """
        # (None, value) parts keep plain fields in the multipart body
        parts: List[Tuple[str, Any]] = [
            (name, (None, value)) for name, value in encode_form_fields(fields)
        ]
        for name, file_spec in (files or {}).items():
            parts.append((name, file_spec))

        return self._request(
            'POST',
            path,
            headers=self._merge_headers(headers),
            files=parts,
        )

    def put(
        self,
        path: str,
        body: Any,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """PUT body as JSON and return parsed JSON."""
        return self._request(
            'PUT',
            path,
            headers=self._merge_headers(headers, content_type=JSON_CONTENT_TYPE),
            json=body,
        )

    def _merge_headers(
        self,
        headers: Optional[Dict[str, str]],
        content_type: Optional[str] = None
    ) -> Dict[str, str]:
        merged: Dict[str, str] = {}
        if content_type:
            merged['Content-Type'] = content_type
        if self.config.api_key:
            merged[self.config.api_key_header] = self.config.api_key
        merged.update(headers or {})
        return merged

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """
        Make API request.

        Args:
            method: HTTP method
            path: Route relative to the base URL
            **kwargs: Additional request arguments

        Returns:
            Response JSON

        Raises:
            TransportError: If no response was received
            RequestError: On non-success status
            ParseError: If the body is not valid JSON
        """
        url = self.config.url_for(path)
        kwargs.setdefault('timeout', self.config.timeout)

        self.logger.debug(f"{method} {url}")

        try:
            response = self.session.request(method, url, **kwargs)
        except RequestException as e:
            error_msg = f"{method} {url} failed before a response was received: {e}"
            self.logger.error(error_msg)
            raise TransportError(error_msg) from e

        return self._handle_response(method, url, response)

    def _handle_response(self, method: str, url: str, response: requests.Response) -> Any:
        if not response.ok:
            try:
                error_data = response.json()
            except ValueError as e:
                self.logger.error(
                    f"{method} {url} returned {response.status_code} with a non-JSON body"
                )
                raise ParseError(
                    f"Error response from {url} is not valid JSON "
                    f"(status {response.status_code} {response.reason})",
                    status_code=response.status_code,
                ) from e

            message = None
            if isinstance(error_data, dict):
                message = error_data.get('message')

            self.logger.error(
                f"{method} {url} returned {response.status_code} {response.reason}: "
                f"{message or DEFAULT_ERROR_MESSAGE}"
            )
            raise RequestError(
                response.status_code,
                response.reason,
                message or DEFAULT_ERROR_MESSAGE,
            )

        try:
            return response.json()
        except ValueError as e:
            self.logger.error(f"{method} {url} returned a non-JSON body")
            raise ParseError(
                f"Response from {url} is not valid JSON",
                status_code=response.status_code,
            ) from e
