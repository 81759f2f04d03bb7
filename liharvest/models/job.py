"""Scraping job ledger models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class JobKind(str, Enum):
    """What a job scrapes."""
    POST_COMMENTS = "post_comments"
    PROFILE_DETAILS = "profile_details"
    MIXED = "mixed"


class JobStatus(str, Enum):
    """Job lifecycle status."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class Job(BaseModel):
    """One user-initiated scrape request."""

    id: str
    user_id: str
    api_key_id: str | None = None
    job_type: JobKind
    input_url: str
    status: JobStatus
    results_count: int = 0
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None
