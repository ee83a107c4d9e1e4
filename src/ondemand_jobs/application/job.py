"""Job submission lifecycle: submit, poll, fetch result."""

import os
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple
import logging

from ondemand_jobs.domain.models import ContainerResult, JobSnapshot, JobState, Metadata
from ondemand_jobs.domain.exceptions import NotReadyError, ParseError, ValidationError
from ondemand_jobs.domain.protocols import IHttpClient
from ondemand_jobs.infrastructure.config.loader import ClientConfig
from ondemand_jobs.application.polling import (
    CancellationToken,
    PollPolicy,
    Poller,
    PollingTask,
)
from ondemand_jobs.shared.logging import get_logger
from ondemand_jobs.shared.types import FilePayload


FILE_FIELD = 'file'
COMPLETED_STATUS = JobState.COMPLETED.value


def _result_uri_from(response: Any) -> Optional[str]:
    if isinstance(response, dict):
        return response.get('resultUri') or response.get('ResultUri')
    return None


def extract_job_id(response: Any) -> str:
    """
    Read the job identifier from a create-job response.

    Accepts a bare string/number or an object carrying jobId, id, Id or
    Data.Id.

    Raises:
        ParseError: If no identifier can be found
    """
    if isinstance(response, (str, int)) and not isinstance(response, bool):
        if str(response):
            return str(response)

    if isinstance(response, dict):
        for key in ('jobId', 'id', 'Id'):
            if response.get(key) is not None:
                return str(response[key])
        data = response.get('Data')
        if isinstance(data, dict) and data.get('Id') is not None:
            return str(data['Id'])

    raise ParseError(f"No job identifier in create-job response: {response!r}")


def is_completed(response: Any) -> bool:
    """Check whether a status response marks the job complete."""
    if not isinstance(response, dict):
        raise ParseError(
            f"Status response must be an object, got {type(response).__name__}"
        )
    return response.get('completed') is True


class Job:
    """
    One submission request: a file plus the metadata describing it.

    The job does not own the HTTP connection; it is handed an IHttpClient.
    Lifecycle fields are only written by the job's own handlers, under a
    lock, so another thread may read snapshot() while a poll runs.
    """

    def __init__(
        self,
        api_key: str,
        product_id: str,
        metadata: Metadata,
        file: FilePayload,
        client: IHttpClient,
        config: Optional[ClientConfig] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.api_key = api_key
        self.product_id = product_id
        self.metadata = metadata
        self.file = file

        self._client = client
        self.config = config or client.config
        self.logger = logger or get_logger(__name__)

        self._lock = threading.Lock()
        self._state = JobState.CREATED
        self._job_id: Optional[str] = None
        self._result_uri: Optional[str] = None
        self._result: Optional[ContainerResult] = None
        self._checks = 0
        self._error: Optional[str] = None
        self._file_origin: Optional[Tuple[Any, int]] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> JobState:
        with self._lock:
            return self._state

    @property
    def status(self) -> str:
        """Cached lifecycle status string."""
        return self.state.value

    @property
    def job_id(self) -> Optional[str]:
        with self._lock:
            return self._job_id

    @property
    def result_uri(self) -> Optional[str]:
        with self._lock:
            return self._result_uri

    def snapshot(self) -> JobSnapshot:
        """Immutable view of the current lifecycle state."""
        with self._lock:
            return JobSnapshot(
                state=self._state,
                job_id=self._job_id,
                status=self._state.value,
                result_uri=self._result_uri,
                checks=self._checks,
                error=self._error,
            )

    def _begin_submission(self) -> None:
        with self._lock:
            self._state = JobState.SUBMITTING
            self._job_id = None
            self._result_uri = None
            self._result = None
            self._checks = 0
            self._error = None

    def _start_polling(self, job_id: str) -> None:
        with self._lock:
            self._state = JobState.POLLING
            self._job_id = job_id

    def _record_check(self, checks: int) -> None:
        with self._lock:
            self._checks = checks

    def _complete(
        self,
        result: ContainerResult,
        job_id: Optional[str],
        result_uri: Optional[str]
    ) -> None:
        with self._lock:
            self._state = JobState.COMPLETED
            self._job_id = job_id
            self._result = result
            self._result_uri = result_uri

    def _fail(self, error: Exception) -> None:
        with self._lock:
            self._state = JobState.FAILED
            self._error = str(error) or error.__class__.__name__

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """
        Check the job can be submitted.

        Raises:
            ValidationError: On missing key/product, bad metadata or no file
        """
        if not isinstance(self.api_key, str) or not self.api_key.strip():
            raise ValidationError("api_key is required")
        if not isinstance(self.product_id, str) or not self.product_id.strip():
            raise ValidationError("product_id is required")
        if not isinstance(self.metadata, Metadata):
            raise ValidationError(
                f"metadata must be a Metadata instance, got {type(self.metadata).__name__}"
            )
        if self.file is None:
            raise ValidationError("file is required")

    def build_form_fields(self) -> Dict[str, Any]:
        """Form fields shared by both submission paths."""
        fields: Dict[str, Any] = {
            'apiKey': self.api_key,
            'productId': self.product_id,
        }
        fields.update(self.metadata.to_form_fields())
        return fields

    @contextmanager
    def _file_parts(self) -> Iterator[Dict[str, Any]]:
        """Yield the multipart file part; files opened here are closed after."""
        payload = self.file
        mime_type = self.metadata.mime_type or 'application/octet-stream'

        if isinstance(payload, (str, Path)):
            path = Path(payload)
            with open(path, 'rb') as f:
                yield {FILE_FIELD: (path.name, f, mime_type)}
            return

        if isinstance(payload, (bytes, bytearray)):
            yield {FILE_FIELD: (self.config.default_file_name, bytes(payload), mime_type)}
            return

        # Streams are rewound to where the first submission found them
        if callable(getattr(payload, 'seekable', None)) and payload.seekable():
            if self._file_origin is None or self._file_origin[0] is not payload:
                self._file_origin = (payload, payload.tell())
            else:
                payload.seek(self._file_origin[1])

        name = getattr(payload, 'name', None)
        file_name = os.path.basename(name) if isinstance(name, str) and name else None
        yield {FILE_FIELD: (file_name or self.config.default_file_name, payload, mime_type)}

    def _post_submission(self, path: str) -> Any:
        with self._file_parts() as files:
            return self._client.post_multipart(path, self.build_form_fields(), files=files)

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    def submit_without_polling(self) -> ContainerResult:
        """
        Submit the job and wait for the result in a single request.

        Returns:
            The service's result envelope

        Raises:
            ValidationError: If the job is not fit for submission
            RequestError: On non-success HTTP status
            ParseError: If the response is not a result envelope
            TransportError: If the request never got a response
        """
        self.validate()
        self._begin_submission()
        self.logger.info(f"Submitting job for product {self.product_id} (no polling)")

        try:
            response = self._post_submission(self.config.submit_path)
            result = ContainerResult.from_dict(response)
        except Exception as e:
            self._fail(e)
            self.logger.error(f"Failed to submit job: {e}")
            raise

        job_id = str(result.data.id) if result.data and result.data.id is not None else None
        result_uri = _result_uri_from(response)
        if not result_uri and job_id:
            result_uri = self.config.status_path_for(job_id)

        self._complete(result, job_id, result_uri)
        self.logger.info(f"Job {job_id or '<unknown>'} completed (is_error={result.is_error})")
        return result

    def submit_with_polling(
        self,
        cancel_token: Optional[CancellationToken] = None,
        policy: Optional[PollPolicy] = None
    ) -> ContainerResult:
        """
        Create the job, then check its status until it completes.

        Args:
            cancel_token: Optional handle to stop polling from another thread
            policy: Poll interval and limits (defaults from config)

        Returns:
            Result envelope built from the completing status response

        Raises:
            CancelledError: If cancel_token was cancelled
            PollTimeoutError: If the policy's limits were exceeded
            RequestError, ParseError, TransportError: From any request
        """
        self.validate()
        self._begin_submission()
        self.logger.info(f"Creating job for product {self.product_id}")

        policy = policy or self.default_policy()

        try:
            response = self._post_submission(self.config.create_job_path)
            job_id = extract_job_id(response)
            status_path = self.config.status_path_for(job_id)

            self._start_polling(job_id)
            self.logger.info(
                f"Job {job_id} created, polling every {policy.interval}s"
            )

            poller = Poller(policy, cancel_token=cancel_token, logger=self.logger)
            final = poller.run(
                check=lambda: self._client.get(status_path),
                is_done=is_completed,
                on_check=self._record_check,
            )
            result = ContainerResult.from_dict(final)
        except Exception as e:
            self._fail(e)
            self.logger.error(f"Job submission with polling failed: {e}")
            raise

        self._complete(result, job_id, _result_uri_from(final) or status_path)
        self.logger.info(
            f"Job {job_id} completed after {poller.checks} checks "
            f"(is_error={result.is_error})"
        )
        return result

    def start_polling(
        self,
        executor: Optional[Executor] = None,
        policy: Optional[PollPolicy] = None
    ) -> PollingTask:
        """
        Run submit_with_polling on a worker thread.

        Args:
            executor: Executor to run on (a single-thread pool if None)
            policy: Poll interval and limits

        Returns:
            Task handle with cancel() and result()
        """
        token = CancellationToken()
        own_executor = executor is None
        if own_executor:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='job-poll')

        future = executor.submit(self.submit_with_polling, token, policy)

        if own_executor:
            executor.shutdown(wait=False)

        return PollingTask(future, token)

    def fetch_result(self) -> ContainerResult:
        """
        Return the cached result of a completed submission.

        Does not contact the service.

        Raises:
            NotReadyError: If the job has not completed or has no result location
        """
        with self._lock:
            if (
                self._state.value != COMPLETED_STATUS
                or not self._result_uri
                or self._result is None
            ):
                raise NotReadyError("Result not available yet.")
            return self._result

    def default_policy(self) -> PollPolicy:
        """Poll policy from config."""
        return PollPolicy(
            interval=self.config.poll_interval,
            max_checks=self.config.max_poll_checks,
            timeout=self.config.poll_timeout,
        )

    def __repr__(self) -> str:
        return (
            f"Job(product_id={self.product_id!r}, name={getattr(self.metadata, 'name', None)!r}, "
            f"state={self.state.value})"
        )
