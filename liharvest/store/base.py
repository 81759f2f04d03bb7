"""Abstract repository interfaces for the shared store."""

from abc import ABC, abstractmethod
from typing import Any

from liharvest.models.credential import ApiKey
from liharvest.models.job import Job, JobKind, JobStatus
from liharvest.models.profile import CachedProfile, StoredProfile


class ProfileRepository(ABC):
    """
    Shared profile cache plus the per-user index over it.

    Cached payloads are keyed by canonical URL only, never by user; users
    reach them through their own StoredProfile links.
    """

    @abstractmethod
    async def get_profile(self, linkedin_url: str) -> CachedProfile | None:
        """
        Look up a cached profile.

        Args:
            linkedin_url: Canonical profile URL

        Returns:
            CachedProfile or None on a miss
        """
        ...

    @abstractmethod
    async def upsert_profile(self, linkedin_url: str, profile_data: dict[str, Any]) -> CachedProfile:
        """
        Insert or overwrite the payload for a canonical URL.

        Args:
            linkedin_url: Canonical profile URL
            profile_data: Raw payload from the profile actor

        Returns:
            The stored row
        """
        ...

    @abstractmethod
    async def link_profile(
        self,
        user_id: str,
        global_profile_id: str,
        tags: list[str] | None = None,
    ) -> StoredProfile:
        """
        Add a cached profile to a user's index.

        Args:
            user_id: Owner
            global_profile_id: CachedProfile id
            tags: Replace the link's tags; None keeps existing tags
        """
        ...

    @abstractmethod
    async def list_user_profiles(self, user_id: str) -> list[StoredProfile]:
        """A user's indexed profiles, most recently updated first."""
        ...

    @abstractmethod
    async def list_profiles(self, limit: int | None = None) -> list[CachedProfile]:
        """All cached profiles, most recently updated first."""
        ...

    @abstractmethod
    async def unlink_profiles(self, user_id: str, stored_ids: list[str]) -> int:
        """Remove links from a user's index. Returns rows removed."""
        ...

    @abstractmethod
    async def delete_profiles(self, profile_ids: list[str]) -> int:
        """Delete cached profiles (and every link to them). Returns rows removed."""
        ...


class JobRepository(ABC):
    """Job ledger rows and the comment rows a job produced."""

    @abstractmethod
    async def insert_job(
        self,
        user_id: str,
        job_type: JobKind,
        input_url: str,
        status: JobStatus,
        api_key_id: str | None = None,
    ) -> Job:
        ...

    @abstractmethod
    async def update_job(self, job_id: str, *, require_open: bool = False, **fields: Any) -> Job:
        """
        Overwrite columns of a job row.

        With ``require_open`` the write only applies while the row is not
        completed, failed or cancelled; the check and the write are one
        statement.

        Raises:
            NotFoundError: No job with this id
            JobStateError: ``require_open`` and the row is already terminal
        """
        ...

    @abstractmethod
    async def get_job(self, job_id: str) -> Job | None:
        ...

    @abstractmethod
    async def list_jobs(self, user_id: str, limit: int | None = None) -> list[Job]:
        """A user's jobs, newest first."""
        ...

    @abstractmethod
    async def save_comments(self, job_id: str, post_url: str, comments: list[dict[str, Any]]) -> int:
        ...

    @abstractmethod
    async def list_comments(self, job_id: str) -> list[dict[str, Any]]:
        ...


class CredentialRepository(ABC):
    """Per-user scraping API tokens."""

    @abstractmethod
    async def add_key(self, user_id: str, key_name: str, api_key: str) -> ApiKey:
        ...

    @abstractmethod
    async def get_key(self, key_id: str, user_id: str) -> ApiKey | None:
        ...

    @abstractmethod
    async def get_active_key(self, user_id: str) -> ApiKey | None:
        """Newest active key of a user."""
        ...

    @abstractmethod
    async def list_keys(self, user_id: str) -> list[ApiKey]:
        ...

    @abstractmethod
    async def set_key_active(self, key_id: str, user_id: str, active: bool) -> ApiKey:
        ...

    @abstractmethod
    async def delete_key(self, key_id: str, user_id: str) -> bool:
        ...


class HarvestStore(ProfileRepository, JobRepository, CredentialRepository):
    """One backend serving all three repositories."""

    @abstractmethod
    async def close(self) -> None:
        """Cleanup connections and resources."""
        ...

    async def __aenter__(self) -> "HarvestStore":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - cleanup."""
        await self.close()
