"""Job result wrapper models."""

from typing import Any

from pydantic import BaseModel

from liharvest.models.job import Job


class ProfileResolution(BaseModel):
    """Merged output of a cache-aware profile lookup."""

    profiles: list[dict[str, Any]] = []
    cache_hits: int = 0
    scraped: int = 0
    requested: int = 0


class JobResult(BaseModel):
    """Wrapper for a finished job."""

    job: Job
    comments: list[dict[str, Any]] = []
    profiles: list[dict[str, Any]] = []
    profile_urls: list[str] = []
    cache_hits: int = 0
    scraped: int = 0
    duration_ms: float = 0.0
