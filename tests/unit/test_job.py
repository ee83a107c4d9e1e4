"""
Unit tests for the job lifecycle.
"""

import io
from concurrent.futures import ThreadPoolExecutor

import pytest
from unittest.mock import Mock

from ondemand_jobs.application.job import Job, extract_job_id, is_completed
from ondemand_jobs.application.polling import CancellationToken, PollPolicy
from ondemand_jobs.domain.models import Metadata, PathMapping, JobState
from ondemand_jobs.domain.exceptions import (
    CancelledError,
    NotReadyError,
    ParseError,
    PollTimeoutError,
    RequestError,
    TransportError,
    ValidationError,
)


@pytest.fixture
def metadata():
    """Metadata with two input mappings."""
    return Metadata(
        version="1",
        mime_type="text/csv",
        name="orders",
        mapping=[PathMapping("a", "b"), PathMapping("c", "d", "0")],
        data="a,c\n1,2",
        group_id="grp-1",
    )


@pytest.fixture
def http_client():
    """Mocked IHttpClient."""
    return Mock()


@pytest.fixture
def job(metadata, http_client, config):
    """Job over the mocked client."""
    return Job(
        api_key="key-123",
        product_id="prod-9",
        metadata=metadata,
        file=b"a,c\n1,2",
        client=http_client,
        config=config,
    )


def pending(job_id="job-42"):
    return {"completed": False, "Data": {"Id": job_id, "Status": "Processing"},
            "IsError": False, "ErrorMessage": None}


class TestJobRequest:
    """Test request building shared by both paths."""

    def test_build_form_fields(self, job):
        """Test that credentials and metadata end up in the form."""
        fields = job.build_form_fields()

        assert fields["apiKey"] == "key-123"
        assert fields["productId"] == "prod-9"
        assert fields["mimeType"] == "text/csv"
        assert fields["groupId"] == "grp-1"
        assert len(fields["mapping"]) == 2
        assert fields["outputMapping"] == []

    def test_bytes_file_part(self, job, http_client, envelope):
        """Test that raw bytes are sent under the default file name."""
        http_client.post_multipart.return_value = envelope

        job.submit_without_polling()

        files = http_client.post_multipart.call_args.kwargs['files']
        assert files == {'file': ('upload.bin', b"a,c\n1,2", 'text/csv')}

    def test_path_file_part_is_closed(self, job, http_client, envelope, tmp_path):
        """Test that a path payload is opened for the request and closed after."""
        source = tmp_path / "orders.csv"
        source.write_bytes(b"a,c\n1,2")
        job.file = source
        seen = {}

        def post(path, fields, files=None):
            name, handle, mime = files['file']
            seen['name'] = name
            seen['content'] = handle.read()
            seen['handle'] = handle
            return envelope

        http_client.post_multipart.side_effect = post

        job.submit_without_polling()

        assert seen['name'] == "orders.csv"
        assert seen['content'] == b"a,c\n1,2"
        assert seen['handle'].closed

    def test_file_object_part(self, job, http_client, envelope):
        """Test that an open file object is passed through."""
        buffer = io.BytesIO(b"x")
        job.file = buffer
        http_client.post_multipart.return_value = envelope

        job.submit_without_polling()

        name, handle, _ = http_client.post_multipart.call_args.kwargs['files']['file']
        assert name == "upload.bin"
        assert handle is buffer

    def test_resubmitted_stream_is_rewound(self, job, http_client, envelope):
        """Test that a second attempt uploads the same bytes as the first."""
        buffer = io.BytesIO(b"header\npayload")
        buffer.read(7)
        job.file = buffer
        uploads = []

        def post(path, fields, files=None):
            uploads.append(files['file'][1].read())
            if len(uploads) == 1:
                raise TransportError("connection reset")
            return envelope

        http_client.post_multipart.side_effect = post

        with pytest.raises(TransportError):
            job.submit_without_polling()
        job.submit_without_polling()

        assert uploads == [b"payload", b"payload"]

    def test_config_taken_from_client(self, metadata, config, envelope):
        """Test that a job without explicit config uses the client's."""
        client = Mock(config=config)
        client.post_multipart.return_value = envelope

        job = Job("key-123", "prod-9", metadata, b"x", client=client)
        job.submit_without_polling()

        assert job.config is config
        assert client.post_multipart.call_args.args[0] == config.submit_path

    @pytest.mark.parametrize("field,value", [
        ("api_key", ""),
        ("api_key", "   "),
        ("product_id", ""),
        ("product_id", None),
        ("metadata", {"name": "x"}),
        ("file", None),
    ])
    def test_validation(self, job, http_client, field, value):
        """Test that unfit jobs are rejected before any request."""
        setattr(job, field, value)

        with pytest.raises(ValidationError):
            job.submit_without_polling()

        http_client.post_multipart.assert_not_called()
        assert job.state == JobState.CREATED


class TestSubmitWithoutPolling:
    """Test the single-request path."""

    def test_success(self, job, http_client, envelope, job_payload):
        """Test that the envelope is parsed field by field."""
        http_client.post_multipart.return_value = envelope

        result = job.submit_without_polling()

        assert result.is_error is False
        assert result.data.to_dict()["Id"] == job_payload["Id"]
        assert result.data.name == job_payload["Name"]
        assert result.data.input_file_name == job_payload["InputFileName"]
        assert result.data.input_mime == job_payload["InputMime"]
        assert result.data.billed_usage == job_payload["BilledUsage"]
        assert result.data.record_count == job_payload["RecordCount"]
        assert result.data.record_group_count == job_payload["RecordGroupCount"]
        assert result.data.processing_time_ms == job_payload["ProcessingTimeMS"]
        assert result.data.status == job_payload["Status"]
        assert result.data.error_message == job_payload["ErrorMessage"]
        assert result.data.version_number == job_payload["VersionNumber"]

        assert http_client.post_multipart.call_args.args[0] == "/submit-job"
        assert job.state == JobState.COMPLETED
        assert job.job_id == "job-42"
        assert job.result_uri == "/job-42"

    def test_request_error(self, job, http_client):
        """Test that a non-success status fails with the status text."""
        http_client.post_multipart.side_effect = RequestError(
            503, "Service Unavailable", "try later"
        )

        with pytest.raises(RequestError) as exc_info:
            job.submit_without_polling()

        assert exc_info.value.status_text == "Service Unavailable"
        snapshot = job.snapshot()
        assert snapshot.state == JobState.FAILED
        assert "Service Unavailable" in snapshot.error

    def test_malformed_envelope(self, job, http_client):
        """Test that a non-envelope body fails with ParseError."""
        http_client.post_multipart.return_value = ["unexpected"]

        with pytest.raises(ParseError):
            job.submit_without_polling()

        assert job.state == JobState.FAILED

    def test_can_submit_again(self, job, http_client, envelope):
        """Test that a failed job can be resubmitted."""
        http_client.post_multipart.side_effect = [
            TransportError("connection reset"),
            envelope,
        ]

        with pytest.raises(TransportError):
            job.submit_without_polling()
        result = job.submit_without_polling()

        assert result.succeeded
        assert job.snapshot().error is None


class TestSubmitWithPolling:
    """Test the create-then-poll path."""

    def test_resolves_after_third_check(self, job, http_client, envelope):
        """Test that polling waits for completed=True and uses that response."""
        final = dict(envelope, completed=True)
        final["Data"] = dict(envelope["Data"], RecordCount=999)
        http_client.post_multipart.return_value = {"jobId": "job-42"}
        http_client.get.side_effect = [pending(), pending(), final]

        result = job.submit_with_polling()

        assert http_client.get.call_count == 3
        assert http_client.get.call_args.args[0] == "/job-42"
        assert http_client.post_multipart.call_args.args[0] == "/create-job"
        assert result.data.record_count == 999

        snapshot = job.snapshot()
        assert snapshot.state == JobState.COMPLETED
        assert snapshot.checks == 3
        assert snapshot.job_id == "job-42"
        assert snapshot.result_uri == "/job-42"

    def test_result_uri_from_response(self, job, http_client, envelope):
        """Test that a server-provided result location is kept."""
        http_client.post_multipart.return_value = "job-42"
        http_client.get.return_value = dict(
            envelope, completed=True, resultUri="/results/job-42"
        )

        job.submit_with_polling()

        assert job.result_uri == "/results/job-42"

    def test_check_error_aborts(self, job, http_client):
        """Test that one failing check fails the whole submission."""
        http_client.post_multipart.return_value = {"jobId": "job-42"}
        http_client.get.side_effect = [pending(), TransportError("connection lost")]

        with pytest.raises(TransportError):
            job.submit_with_polling()

        assert http_client.get.call_count == 2
        assert job.state == JobState.FAILED
        with pytest.raises(NotReadyError):
            job.fetch_result()

    def test_create_request_error(self, job, http_client):
        """Test that a rejected create request never polls."""
        http_client.post_multipart.side_effect = RequestError(401, "Unauthorized", "bad key")

        with pytest.raises(RequestError):
            job.submit_with_polling()

        http_client.get.assert_not_called()
        assert job.state == JobState.FAILED

    def test_missing_job_id(self, job, http_client):
        """Test that a create response without an id raises ParseError."""
        http_client.post_multipart.return_value = {"accepted": True}

        with pytest.raises(ParseError):
            job.submit_with_polling()

        http_client.get.assert_not_called()

    def test_policy_limit(self, job, http_client):
        """Test that max_checks bounds an endless job."""
        http_client.post_multipart.return_value = {"jobId": "job-42"}
        http_client.get.return_value = pending()

        with pytest.raises(PollTimeoutError):
            job.submit_with_polling(policy=PollPolicy(interval=0, max_checks=4))

        assert http_client.get.call_count == 4
        assert job.state == JobState.FAILED

    def test_cancelled(self, job, http_client):
        """Test that a cancelled token rejects with CancelledError."""
        http_client.post_multipart.return_value = {"jobId": "job-42"}
        token = CancellationToken()
        token.cancel()

        with pytest.raises(CancelledError):
            job.submit_with_polling(cancel_token=token)

        http_client.get.assert_not_called()
        assert job.state == JobState.FAILED

    def test_polling_state_visible(self, job, http_client, envelope):
        """Test that the job reports POLLING while checks run."""
        states = []

        def check(path):
            states.append(job.state)
            return dict(envelope, completed=True)

        http_client.post_multipart.return_value = {"jobId": "job-42"}
        http_client.get.side_effect = check

        job.submit_with_polling()

        assert states == [JobState.POLLING]

    def test_start_polling_in_background(self, job, http_client, envelope):
        """Test the background task handle."""
        http_client.post_multipart.return_value = {"jobId": "job-42"}
        http_client.get.side_effect = [pending(), dict(envelope, completed=True)]

        with ThreadPoolExecutor(max_workers=1) as executor:
            task = job.start_polling(executor=executor)
            result = task.result(timeout=5)

        assert task.done()
        assert result.data.id == "job-42"

    def test_cancel_background_task(self, job, http_client):
        """Test that cancelling the task rejects its result."""
        http_client.post_multipart.return_value = {"jobId": "job-42"}
        http_client.get.return_value = pending()

        task = job.start_polling(policy=PollPolicy(interval=60))
        task.cancel()

        with pytest.raises(CancelledError):
            task.result(timeout=5)


class TestFetchResult:
    """Test cached result access."""

    def test_before_submission(self, job, http_client):
        """Test that fetching before completion raises NotReadyError."""
        with pytest.raises(NotReadyError):
            job.fetch_result()

        http_client.get.assert_not_called()

    def test_after_completion_uses_cache(self, job, http_client, envelope):
        """Test that the cached result is returned without a request."""
        http_client.post_multipart.return_value = {"jobId": "job-42"}
        http_client.get.return_value = dict(envelope, completed=True)
        result = job.submit_with_polling()
        calls_before = http_client.get.call_count

        assert job.status == "completed"
        assert job.fetch_result() is result
        assert http_client.get.call_count == calls_before

    def test_no_result_location(self, job, http_client):
        """Test that a completed job without a location is not ready."""
        http_client.post_multipart.return_value = {
            "Data": None, "IsError": True, "ErrorMessage": "unsupported mime"
        }

        result = job.submit_without_polling()

        assert result.is_error
        assert job.state == JobState.COMPLETED
        with pytest.raises(NotReadyError):
            job.fetch_result()


class TestHelpers:
    """Test response helpers."""

    @pytest.mark.parametrize("response,expected", [
        ("abc", "abc"),
        (17, "17"),
        ({"jobId": "j1"}, "j1"),
        ({"id": 5}, "5"),
        ({"Id": "J"}, "J"),
        ({"Data": {"Id": "nested"}}, "nested"),
    ])
    def test_extract_job_id(self, response, expected):
        """Test the accepted create-job response shapes."""
        assert extract_job_id(response) == expected

    @pytest.mark.parametrize("response", [None, True, "", {}, {"Data": {}}, []])
    def test_extract_job_id_rejects(self, response):
        """Test responses without an identifier."""
        with pytest.raises(ParseError):
            extract_job_id(response)

    def test_is_completed(self):
        """Test the completion flag."""
        assert is_completed({"completed": True}) is True
        assert is_completed({"completed": False}) is False
        assert is_completed({}) is False
        with pytest.raises(ParseError):
            is_completed("done")
