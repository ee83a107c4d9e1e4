import sys
import os
from unittest.mock import Mock

import pytest

# Ensure src/ is on sys.path so 'ondemand_jobs' is importable without install
SRC = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src'))
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from ondemand_jobs.infrastructure.config.loader import ClientConfig  # noqa: E402


def make_response(status_code=200, json_data=None, reason='OK', invalid_json=False):
    """Build a mock requests.Response."""
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.reason = reason
    if invalid_json:
        response.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def config():
    """Client config with polling made instant."""
    return ClientConfig(
        base_url="https://api.example.com",
        api_key="test_api_key_123",
        poll_interval=0,
    )


@pytest.fixture
def job_payload():
    """Job fields as the service sends them."""
    return {
        "Id": "job-42",
        "CreatedDateUtc": "2024-05-01T10:00:00Z",
        "LastUpdatedUtc": "2024-05-01T10:05:30Z",
        "Name": "invoices-may",
        "InputFileName": "invoices.csv",
        "InputMime": "text/csv",
        "BilledUsage": 1.5,
        "RecordCount": 120,
        "RecordGroupCount": 4,
        "ProcessingTimeMS": 3120,
        "Status": "Completed",
        "ErrorMessage": None,
        "VersionNumber": "3",
    }


@pytest.fixture
def envelope(job_payload):
    """Successful result envelope."""
    return {"Data": job_payload, "IsError": False, "ErrorMessage": None}
