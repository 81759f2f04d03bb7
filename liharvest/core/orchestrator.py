"""Job orchestrator - coordinates ledger, profile cache and remote runs."""

import time
from typing import Any, Callable, Iterable

from liharvest.config import HarvestConfig
from liharvest.client.apify import ApifyClient
from liharvest.core.gateway import ProfileCacheGateway, record_url
from liharvest.core.ledger import JobLedger
from liharvest.core.progress import JobProgress, ProgressCallback, Stage
from liharvest.core.urls import (
    canonicalize_url,
    extract_commenter_urls,
    require_post_url,
    require_profile_urls,
)
from liharvest.exceptions import (
    CredentialError,
    HarvestError,
    InvalidInputError,
    JobCancelledError,
    JobStateError,
    StoreError,
)
from liharvest.logging import configure_logging, get_logger, job_context
from liharvest.models.credential import ApiKey
from liharvest.models.job import Job, JobKind, JobStatus
from liharvest.models.profile import CachedProfile, StoredProfile
from liharvest.models.result import JobResult, ProfileResolution
from liharvest.store.base import HarvestStore
from liharvest.store.sqlite_store import SQLiteStore

ClientFactory = Callable[[str, HarvestConfig], ApifyClient]


def _default_client_factory(token: str, config: HarvestConfig) -> ApifyClient:
    return ApifyClient(token, config)


class Harvester:
    """
    High-level interface: run scrape jobs with profile caching and a job ledger.

    Example:
        async with Harvester() as harvester:
            result = await harvester.run_job("mixed", post_url, owner_id="alice")
            print(len(result.profiles), result.cache_hits)
    """

    def __init__(
        self,
        config: HarvestConfig | None = None,
        store: HarvestStore | None = None,
        client_factory: ClientFactory | None = None,
    ):
        """
        Initialize harvester.

        Args:
            config: HarvestConfig instance, uses defaults if None
            store: Shared store, a SQLiteStore at config.sqlite_path if None
            client_factory: Builds a remote API client from a token
        """
        self.config = config or HarvestConfig()
        self._store = store
        self._owns_store = store is None
        self._client_factory = client_factory or _default_client_factory
        self._gateway: ProfileCacheGateway | None = None
        self._ledger: JobLedger | None = None
        self._log = get_logger("harvester")

    async def __aenter__(self) -> "Harvester":
        """Async context manager entry - initialize resources."""
        configure_logging(self.config)

        if self._store is None:
            self._store = SQLiteStore(self.config.sqlite_path)
        self._gateway = ProfileCacheGateway(self._store)
        self._ledger = JobLedger(self._store, self.config.job_history_limit)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - cleanup resources."""
        if self._store and self._owns_store:
            await self._store.close()
            self._store = None

    def _require_open(self) -> None:
        if self._store is None or self._ledger is None or self._gateway is None:
            raise HarvestError("Harvester is not open; use 'async with Harvester()'")

    @property
    def store(self) -> HarvestStore:
        self._require_open()
        return self._store

    @property
    def ledger(self) -> JobLedger:
        self._require_open()
        return self._ledger

    @property
    def gateway(self) -> ProfileCacheGateway:
        self._require_open()
        return self._gateway

    # -- input checks --------------------------------------------------------

    @staticmethod
    def _validate_target(kind: JobKind, target: str | Iterable[str]) -> str | list[str]:
        if kind == JobKind.PROFILE_DETAILS:
            return require_profile_urls(target)
        if not isinstance(target, str):
            raise InvalidInputError(f"A {kind.value} job takes a single post URL")
        return require_post_url(target)

    async def _resolve_token(
        self,
        owner_id: str,
        api_key_id: str | None,
        api_token: str | None,
    ) -> tuple[str, str | None]:
        """Explicit token, else the selected or newest active stored key, else config."""
        if api_token and api_token.strip():
            return api_token.strip(), None

        if api_key_id:
            key = await self.store.get_key(api_key_id, owner_id)
            if key is None:
                raise CredentialError("Invalid API key selected")
            if not key.is_active:
                raise CredentialError(f"API key '{key.key_name}' is disabled")
            return key.api_key, key.id

        key = await self.store.get_active_key(owner_id)
        if key is not None:
            return key.api_key, key.id

        if self.config.apify_token:
            return self.config.apify_token, None

        raise CredentialError("Please select an Apify API key first")

    # -- job flow ------------------------------------------------------------

    async def _check_cancelled(self, job: Job) -> None:
        if await self.ledger.is_cancelled(job.id):
            raise JobCancelledError(f"Job {job.id} cancelled by user")

    async def _complete(self, job: Job, results_count: int, progress: JobProgress, message: str) -> Job:
        try:
            job = await self.ledger.update_job(job.id, JobStatus.COMPLETED, results_count)
        except JobStateError as e:
            raise JobCancelledError(f"Job {job.id} cancelled by user") from e
        progress.advance(Stage.COMPLETED, 100, message)
        return job

    async def _mark_failed(self, job: Job, error: Exception) -> None:
        if isinstance(error, JobCancelledError):
            return
        message = str(error) or error.__class__.__name__
        try:
            await self.ledger.update_job(job.id, JobStatus.FAILED, error_message=message)
        except (JobStateError, StoreError) as e:
            self._log.warning("job_fail_update_skipped", job_id=job.id, error=str(e))

    async def run_job(
        self,
        kind: JobKind | str,
        target: str | Iterable[str],
        owner_id: str | None = None,
        api_key_id: str | None = None,
        api_token: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> JobResult:
        """
        Run one scrape job end to end.

        Args:
            kind: post_comments, profile_details or mixed
            target: Post URL, or profile URL(s) for profile_details
            owner_id: Requesting user (config.default_owner_id if None)
            api_key_id: Stored key to use
            api_token: Raw token, takes precedence over stored keys
            on_progress: Called with (stage, percent, message)

        Returns:
            JobResult with the completed job row and scraped data

        Raises:
            InvalidInputError / CredentialError: Before any job row is written
            HarvestError: Any failure during the run; the job is marked failed
        """
        try:
            kind = JobKind(kind)
        except ValueError as e:
            raise InvalidInputError(f"Unknown job kind: {kind}") from e

        owner_id = owner_id or self.config.default_owner_id
        checked_target = self._validate_target(kind, target)
        token, key_id = await self._resolve_token(owner_id, api_key_id, api_token)

        progress = JobProgress(on_progress)
        progress.start("Initializing scraping process...")
        start = time.perf_counter()
        job: Job | None = None

        try:
            job = await self.ledger.create_job(kind, checked_target, owner_id, key_id)

            with job_context(job.id, kind.value, owner_id):
                async with self._client_factory(token, self.config) as client:
                    if kind == JobKind.POST_COMMENTS:
                        result = await self._run_post_comments(client, job, checked_target, progress)
                    elif kind == JobKind.PROFILE_DETAILS:
                        result = await self._run_profile_details(client, job, checked_target, progress)
                    else:
                        result = await self._run_mixed(client, job, checked_target, progress)

        except Exception as e:
            self._log.error(
                "job_failed",
                job_id=job.id if job else None,
                kind=kind.value,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            if not progress.is_terminal:
                progress.fail(str(e) or "Scraping failed")
            if job is not None:
                await self._mark_failed(job, e)
            raise

        result.duration_ms = (time.perf_counter() - start) * 1000
        self._log.info(
            "job_complete",
            job_id=result.job.id,
            kind=kind.value,
            results_count=result.job.results_count,
            cache_hits=result.cache_hits,
            scraped=result.scraped,
            duration_ms=result.duration_ms,
        )
        return result

    async def _run_post_comments(
        self,
        client: ApifyClient,
        job: Job,
        post_url: str,
        progress: JobProgress,
    ) -> JobResult:
        progress.advance(Stage.SCRAPING_COMMENTS, 25, "Extracting comments from LinkedIn post...")
        comments = await client.scrape_post_comments(post_url)
        await self._check_cancelled(job)

        progress.advance(Stage.SAVING_DATA, 75, "Processing comment data...")
        await self.store.save_comments(job.id, post_url, comments)

        job = await self._complete(job, len(comments), progress, "Comments extracted successfully!")
        return JobResult(job=job, comments=comments)

    async def _run_profile_details(
        self,
        client: ApifyClient,
        job: Job,
        profile_urls: list[str],
        progress: JobProgress,
    ) -> JobResult:
        progress.advance(Stage.SCRAPING_PROFILES, 25, "Checking existing profiles in database...")
        resolution = await self.gateway.resolve_profiles(
            profile_urls, client.scrape_profiles, job.user_id, progress=progress
        )
        await self._check_cancelled(job)

        progress.advance(Stage.SAVING_DATA, 75, "Saving profile data...")
        job = await self._complete(
            job, len(resolution.profiles), progress, "Profile details scraped successfully!"
        )
        return JobResult(
            job=job,
            profiles=resolution.profiles,
            profile_urls=profile_urls,
            cache_hits=resolution.cache_hits,
            scraped=resolution.scraped,
        )

    async def _run_mixed(
        self,
        client: ApifyClient,
        job: Job,
        post_url: str,
        progress: JobProgress,
    ) -> JobResult:
        progress.advance(Stage.SCRAPING_COMMENTS, 20, "Extracting comments from LinkedIn post...")
        comments = await client.scrape_post_comments(post_url)
        await self._check_cancelled(job)

        progress.advance(Stage.EXTRACTING_PROFILES, 40, "Extracting profile URLs from comments...")
        profile_urls = extract_commenter_urls(comments, self.config.mixed_profile_limit)

        resolution = ProfileResolution()
        if profile_urls:
            progress.advance(
                Stage.SCRAPING_PROFILES, 60, f"Checking and scraping {len(profile_urls)} profiles..."
            )
            resolution = await self.gateway.resolve_profiles(
                profile_urls, client.scrape_profiles, job.user_id, progress=progress
            )
            await self._check_cancelled(job)

        progress.advance(Stage.SAVING_DATA, 85, "Saving all data...")
        await self.store.save_comments(job.id, post_url, comments)

        job = await self._complete(job, len(profile_urls), progress, "Mixed scraping completed successfully!")
        return JobResult(
            job=job,
            comments=comments,
            profiles=resolution.profiles,
            profile_urls=profile_urls,
            cache_hits=resolution.cache_hits,
            scraped=resolution.scraped,
        )

    # -- profile actions -----------------------------------------------------

    async def scrape_selected_profiles(
        self,
        profile_urls: Iterable[str],
        owner_id: str | None = None,
        api_key_id: str | None = None,
        api_token: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> JobResult:
        """Run a profile_details job over URLs picked from earlier results."""
        return await self.run_job(
            JobKind.PROFILE_DETAILS,
            list(profile_urls),
            owner_id=owner_id,
            api_key_id=api_key_id,
            api_token=api_token,
            on_progress=on_progress,
        )

    async def refresh_profiles(
        self,
        profile_urls: Iterable[str],
        owner_id: str | None = None,
        api_key_id: str | None = None,
        api_token: str | None = None,
    ) -> ProfileResolution:
        """Re-scrape profiles even when cached, overwriting the cached payloads."""
        owner_id = owner_id or self.config.default_owner_id
        urls = require_profile_urls(list(profile_urls))
        token, _ = await self._resolve_token(owner_id, api_key_id, api_token)

        async with self._client_factory(token, self.config) as client:
            return await self.gateway.resolve_profiles(
                urls, client.scrape_profiles, owner_id, force_refresh=True
            )

    async def store_profiles(
        self,
        profiles: Iterable[dict[str, Any]],
        owner_id: str | None = None,
        tags: list[str] | None = None,
    ) -> list[StoredProfile]:
        """Save profile payloads into the shared cache and tag them for a user."""
        owner_id = owner_id or self.config.default_owner_id
        stored = []
        for profile in profiles:
            raw_url = record_url(profile)
            if not raw_url:
                continue
            cached = await self.store.upsert_profile(canonicalize_url(raw_url), profile)
            stored.append(await self.store.link_profile(
                owner_id, cached.id, list(tags) if tags is not None else None
            ))

        self._log.info("profiles_stored", owner_id=owner_id, count=len(stored), tags=tags or [])
        return stored

    async def list_profiles(self, owner_id: str | None = None) -> list[StoredProfile] | list[CachedProfile]:
        """A user's indexed profiles, or every cached profile when owner_id is None."""
        if owner_id is None:
            return await self.store.list_profiles()
        return await self.store.list_user_profiles(owner_id)

    async def delete_profiles(self, stored_ids: list[str], owner_id: str | None = None) -> int:
        """Remove profiles from a user's index. The shared cache keeps them."""
        owner_id = owner_id or self.config.default_owner_id
        removed = await self.store.unlink_profiles(owner_id, stored_ids)
        self._log.info("profiles_unlinked", owner_id=owner_id, removed=removed)
        return removed

    async def purge_profiles(self, profile_ids: list[str]) -> int:
        """Delete cached profiles for everyone."""
        removed = await self.store.delete_profiles(profile_ids)
        self._log.info("profiles_purged", removed=removed)
        return removed

    # -- jobs ----------------------------------------------------------------

    async def get_job(self, job_id: str, owner_id: str | None = None) -> Job:
        return await self.ledger.get_job(job_id, owner_id)

    async def list_jobs(self, owner_id: str | None = None, limit: int | None = None) -> list[Job]:
        return await self.ledger.list_jobs(owner_id or self.config.default_owner_id, limit)

    async def cancel_job(self, job_id: str, owner_id: str | None = None) -> Job:
        return await self.ledger.cancel_job(job_id, owner_id or self.config.default_owner_id)

    async def get_job_comments(self, job_id: str, owner_id: str | None = None) -> list[dict[str, Any]]:
        await self.ledger.get_job(job_id, owner_id)
        return await self.store.list_comments(job_id)

    # -- api keys ------------------------------------------------------------

    async def add_api_key(self, key_name: str, api_key: str, owner_id: str | None = None) -> ApiKey:
        if not key_name or not key_name.strip():
            raise InvalidInputError("Key name is required")
        if not api_key or not api_key.strip():
            raise InvalidInputError("API key is required")
        owner_id = owner_id or self.config.default_owner_id
        return await self.store.add_key(owner_id, key_name.strip(), api_key.strip())

    async def list_api_keys(self, owner_id: str | None = None) -> list[ApiKey]:
        return await self.store.list_keys(owner_id or self.config.default_owner_id)

    async def set_api_key_active(self, key_id: str, active: bool, owner_id: str | None = None) -> ApiKey:
        return await self.store.set_key_active(key_id, owner_id or self.config.default_owner_id, active)

    async def delete_api_key(self, key_id: str, owner_id: str | None = None) -> bool:
        return await self.store.delete_key(key_id, owner_id or self.config.default_owner_id)
