"""Application layer package."""

from ondemand_jobs.application.job import Job, extract_job_id, is_completed
from ondemand_jobs.application.polling import (
    CancellationToken,
    PollPolicy,
    Poller,
    PollingTask,
)

__all__ = [
    "Job",
    "extract_job_id",
    "is_completed",
    "CancellationToken",
    "PollPolicy",
    "Poller",
    "PollingTask",
]
