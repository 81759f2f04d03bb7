"""Cache-aware profile resolution."""

from typing import Any, Awaitable, Callable, Iterable

from liharvest.core.progress import JobProgress
from liharvest.core.urls import canonicalize_url, dedupe_urls
from liharvest.exceptions import StoreError
from liharvest.logging import get_logger
from liharvest.models.profile import CachedProfile
from liharvest.models.result import ProfileResolution
from liharvest.store.base import ProfileRepository

ScrapeFn = Callable[[list[str]], Awaitable[list[dict[str, Any]]]]


def record_url(record: dict[str, Any]) -> str | None:
    """URL a profile record reports for itself."""
    return record.get("linkedinUrl") or record.get("linkedin_url") or None


class ProfileCacheGateway:
    """
    Splits requested profile URLs into cache hits and misses, scrapes the
    misses in one batch and writes them back to the shared cache.

    The cache lookup is global: a profile scraped by any user is a hit for
    every user. Only the per-user index link is tied to the requester.
    """

    def __init__(self, repository: ProfileRepository):
        self._repo = repository
        self._log = get_logger("gateway")

    async def _lookup(self, url: str) -> CachedProfile | None:
        try:
            return await self._repo.get_profile(url)
        except StoreError as e:
            self._log.warning("cache_lookup_failed", url=url, error=str(e))
            return None

    async def _persist(self, url: str, record: dict[str, Any], owner_id: str) -> None:
        try:
            cached = await self._repo.upsert_profile(url, record)
            await self._repo.link_profile(owner_id, cached.id)
        except StoreError as e:
            self._log.error("profile_save_failed", url=url, error=str(e))

    async def resolve_profiles(
        self,
        urls: Iterable[str],
        scrape_fn: ScrapeFn,
        owner_id: str,
        force_refresh: bool = False,
        progress: JobProgress | None = None,
    ) -> ProfileResolution:
        """
        Resolve profile payloads, scraping only what the cache lacks.

        Args:
            urls: Requested profile URLs (canonicalised and de-duplicated here)
            scrape_fn: Coroutine scraping a batch of URLs into records
            owner_id: User the freshly scraped profiles are indexed under
            force_refresh: Skip lookups and re-scrape every URL
            progress: Optional tracker for status messages

        Returns:
            ProfileResolution with cache hits first, then fresh records
        """
        requested = dedupe_urls(urls)
        profiles: list[dict[str, Any]] = []
        to_scrape: list[str] = []
        hit_urls: set[str] = set()

        if progress:
            progress.note("Checking database for existing profiles...")

        for url in requested:
            cached = None if force_refresh else await self._lookup(url)
            if cached is not None:
                self._log.debug("cache_hit", url=url)
                profiles.append(cached.profile_data)
                hit_urls.add(url)
            else:
                to_scrape.append(url)

        scraped = 0
        if to_scrape:
            if progress:
                progress.note(
                    f"Scraping {len(to_scrape)} new profiles "
                    f"(saved {len(hit_urls)} API calls)..."
                )
            records = await scrape_fn(to_scrape)

            if progress:
                progress.note("Saving new profiles...")

            seen: set[str] = set(hit_urls)
            for record in records:
                raw_url = record_url(record)
                if not raw_url:
                    self._log.warning("profile_without_url", keys=sorted(record)[:10])
                    continue
                key = canonicalize_url(raw_url)
                if key in seen:
                    continue
                seen.add(key)

                await self._persist(key, record, owner_id)
                profiles.append(record)
                scraped += 1

        self._log.info(
            "profiles_resolved",
            requested=len(requested),
            cache_hits=len(hit_urls),
            scraped=scraped,
            force_refresh=force_refresh,
        )
        if progress:
            progress.note(f"Completed! Saved {len(hit_urls)} API calls by using cached profiles.")

        return ProfileResolution(
            profiles=profiles,
            cache_hits=len(hit_urls),
            scraped=scraped,
            requested=len(requested),
        )
