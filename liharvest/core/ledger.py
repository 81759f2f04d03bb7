"""Job ledger: lifecycle record of every scrape request."""

from datetime import datetime, timezone
from typing import Iterable

from liharvest.exceptions import JobStateError, NotFoundError
from liharvest.logging import get_logger
from liharvest.models.job import Job, JobKind, JobStatus
from liharvest.store.base import JobRepository


class JobLedger:
    """Creates and transitions job rows. Terminal rows are frozen."""

    def __init__(self, repository: JobRepository, history_limit: int = 50):
        self._repo = repository
        self.history_limit = history_limit
        self._log = get_logger("ledger")

    async def create_job(
        self,
        kind: JobKind,
        target: str | Iterable[str],
        owner_id: str,
        api_key_id: str | None = None,
    ) -> Job:
        """
        Insert a job row in the running state.

        Args:
            kind: Job kind
            target: Post URL, or profile URLs (stored comma-joined)
            owner_id: Requesting user
            api_key_id: Stored key the job runs with, if any
        """
        input_url = target if isinstance(target, str) else ",".join(target)
        job = await self._repo.insert_job(owner_id, JobKind(kind), input_url, JobStatus.RUNNING, api_key_id)
        self._log.info("job_created", job_id=job.id, kind=job.job_type.value, owner_id=owner_id)
        return job

    async def get_job(self, job_id: str, owner_id: str | None = None) -> Job:
        """
        Fetch a job, optionally checking ownership.

        Raises:
            NotFoundError: Missing, or owned by someone else
        """
        job = await self._repo.get_job(job_id)
        if job is None or (owner_id is not None and job.user_id != owner_id):
            raise NotFoundError(f"Job {job_id} not found")
        return job

    async def update_job(
        self,
        job_id: str,
        status: JobStatus,
        results_count: int | None = None,
        error_message: str | None = None,
    ) -> Job:
        """
        Transition a job.

        Terminal statuses stamp ``completed_at``. Of two racing transitions
        on an open job exactly one wins; the other raises JobStateError.

        Raises:
            NotFoundError: Unknown job
            JobStateError: Job is already completed, failed or cancelled
        """
        status = JobStatus(status)
        fields: dict = {"status": status}
        if results_count is not None:
            fields["results_count"] = results_count
        if error_message:
            fields["error_message"] = error_message
        if status.is_terminal:
            fields["completed_at"] = datetime.now(timezone.utc)

        try:
            job = await self._repo.update_job(job_id, require_open=True, **fields)
        except JobStateError:
            self._log.warning("job_update_rejected", job_id=job_id, status=status.value)
            raise
        self._log.info(
            "job_updated",
            job_id=job_id,
            status=status.value,
            results_count=results_count,
            error=error_message,
        )
        return job

    async def cancel_job(self, job_id: str, owner_id: str) -> Job:
        """
        Mark a job cancelled. The remote run, if any, keeps going; the
        running job notices the cancellation at its next phase boundary.
        """
        await self.get_job(job_id, owner_id)
        return await self.update_job(job_id, JobStatus.CANCELLED, error_message="Job cancelled by user")

    async def is_cancelled(self, job_id: str) -> bool:
        job = await self.get_job(job_id)
        return job.status == JobStatus.CANCELLED

    async def list_jobs(self, owner_id: str, limit: int | None = None) -> list[Job]:
        """Newest jobs of a user, capped at the history limit by default."""
        return await self._repo.list_jobs(owner_id, limit or self.history_limit)
