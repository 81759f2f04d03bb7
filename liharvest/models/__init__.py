"""Pydantic models for liharvest."""

from liharvest.models.profile import CachedProfile, StoredProfile
from liharvest.models.job import Job, JobKind, JobStatus
from liharvest.models.comment import CommentActor, CommentRecord
from liharvest.models.run import ExternalRun, RunStatus
from liharvest.models.credential import ApiKey
from liharvest.models.result import JobResult, ProfileResolution

__all__ = [
    "CachedProfile",
    "StoredProfile",
    "Job",
    "JobKind",
    "JobStatus",
    "CommentActor",
    "CommentRecord",
    "ExternalRun",
    "RunStatus",
    "ApiKey",
    "JobResult",
    "ProfileResolution",
]
