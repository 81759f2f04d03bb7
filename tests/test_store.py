"""Unit tests for the SQLite store - temporary database, no internet."""

import pytest

from liharvest.exceptions import InvalidInputError, JobStateError, NotFoundError, StoreError
from liharvest.models.job import JobKind, JobStatus
from liharvest.store.sqlite_store import SQLiteStore

ALICE_URL = "https://www.linkedin.com/in/alice"
BOB_URL = "https://www.linkedin.com/in/bob"


@pytest.fixture
def store(tmp_path):
    """Create a temporary SQLite store for testing."""
    return SQLiteStore(str(tmp_path / "test_store.db"))


class TestProfileCache:
    """Shared profile cache rows."""

    @pytest.mark.asyncio
    async def test_miss_returns_none(self, store):
        async with store:
            assert await store.get_profile(ALICE_URL) is None

    @pytest.mark.asyncio
    async def test_upsert_then_lookup(self, store):
        async with store:
            saved = await store.upsert_profile(ALICE_URL, {"fullName": "Alice", "headline": "CTO"})
            cached = await store.get_profile(ALICE_URL)

            assert cached is not None
            assert cached.id == saved.id
            assert cached.profile_data == {"fullName": "Alice", "headline": "CTO"}

    @pytest.mark.asyncio
    async def test_upsert_overwrites_same_url(self, store):
        async with store:
            first = await store.upsert_profile(ALICE_URL, {"headline": "old"})
            second = await store.upsert_profile(ALICE_URL, {"headline": "new"})

            assert second.id == first.id
            assert second.profile_data == {"headline": "new"}
            assert second.last_updated >= first.last_updated
            assert len(await store.list_profiles()) == 1

    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, tmp_path):
        path = str(tmp_path / "persist.db")
        async with SQLiteStore(path) as store:
            await store.upsert_profile(ALICE_URL, {"fullName": "Alice"})
        async with SQLiteStore(path) as store:
            cached = await store.get_profile(ALICE_URL)
            assert cached.profile_data["fullName"] == "Alice"

    @pytest.mark.asyncio
    async def test_delete_profiles_cascades_links(self, store):
        async with store:
            cached = await store.upsert_profile(ALICE_URL, {})
            await store.link_profile("u1", cached.id)

            assert await store.delete_profiles([cached.id]) == 1
            assert await store.get_profile(ALICE_URL) is None
            assert await store.list_user_profiles("u1") == []


class TestUserIndex:
    """Per-user stored profile links."""

    @pytest.mark.asyncio
    async def test_link_and_list(self, store):
        async with store:
            cached = await store.upsert_profile(ALICE_URL, {"fullName": "Alice"})
            stored = await store.link_profile("u1", cached.id, ["lead"])

            assert stored.global_profile_id == cached.id
            assert stored.linkedin_url == ALICE_URL
            assert stored.tags == ["lead"]

            rows = await store.list_user_profiles("u1")
            assert [r.id for r in rows] == [stored.id]
            assert await store.list_user_profiles("u2") == []

    @pytest.mark.asyncio
    async def test_relink_keeps_tags_unless_given(self, store):
        async with store:
            cached = await store.upsert_profile(ALICE_URL, {})
            await store.link_profile("u1", cached.id, ["lead"])

            kept = await store.link_profile("u1", cached.id)
            assert kept.tags == ["lead"]

            replaced = await store.link_profile("u1", cached.id, ["customer"])
            assert replaced.tags == ["customer"]
            assert len(await store.list_user_profiles("u1")) == 1

    @pytest.mark.asyncio
    async def test_link_unknown_profile(self, store):
        async with store:
            with pytest.raises(StoreError):
                await store.link_profile("u1", "missing")

    @pytest.mark.asyncio
    async def test_unlink_only_touches_owner(self, store):
        async with store:
            alice = await store.upsert_profile(ALICE_URL, {})
            bob = await store.upsert_profile(BOB_URL, {})
            mine = await store.link_profile("u1", alice.id)
            theirs = await store.link_profile("u2", bob.id)

            assert await store.unlink_profiles("u1", [mine.id, theirs.id]) == 1
            assert await store.list_user_profiles("u1") == []
            assert len(await store.list_user_profiles("u2")) == 1
            # Shared cache is untouched
            assert await store.get_profile(ALICE_URL) is not None


class TestJobs:
    """Job rows and their comments."""

    @pytest.mark.asyncio
    async def test_insert_and_get(self, store):
        async with store:
            job = await store.insert_job("u1", JobKind.MIXED, "https://x", JobStatus.RUNNING)
            fetched = await store.get_job(job.id)

            assert fetched.status == JobStatus.RUNNING
            assert fetched.job_type == JobKind.MIXED
            assert fetched.results_count == 0
            assert fetched.completed_at is None

    @pytest.mark.asyncio
    async def test_update_fields(self, store):
        async with store:
            job = await store.insert_job("u1", JobKind.POST_COMMENTS, "https://x", JobStatus.RUNNING)
            updated = await store.update_job(job.id, status=JobStatus.COMPLETED, results_count=7)

            assert updated.status == JobStatus.COMPLETED
            assert updated.results_count == 7

    @pytest.mark.asyncio
    async def test_require_open_skips_terminal_rows(self, store):
        async with store:
            job = await store.insert_job("u1", JobKind.POST_COMMENTS, "https://x", JobStatus.RUNNING)
            await store.update_job(job.id, require_open=True, status=JobStatus.CANCELLED)

            with pytest.raises(JobStateError):
                await store.update_job(
                    job.id, require_open=True, status=JobStatus.COMPLETED, results_count=3
                )
            row = await store.get_job(job.id)
            assert row.status == JobStatus.CANCELLED
            assert row.results_count == 0

    @pytest.mark.asyncio
    async def test_update_missing_job(self, store):
        async with store:
            with pytest.raises(NotFoundError):
                await store.update_job("missing", status=JobStatus.FAILED)

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_columns(self, store):
        async with store:
            job = await store.insert_job("u1", JobKind.POST_COMMENTS, "https://x", JobStatus.RUNNING)
            with pytest.raises(ValueError):
                await store.update_job(job.id, user_id="someone-else")

    @pytest.mark.asyncio
    async def test_list_jobs_newest_first(self, store):
        async with store:
            first = await store.insert_job("u1", JobKind.POST_COMMENTS, "https://a", JobStatus.RUNNING)
            second = await store.insert_job("u1", JobKind.POST_COMMENTS, "https://b", JobStatus.RUNNING)
            await store.insert_job("u2", JobKind.POST_COMMENTS, "https://c", JobStatus.RUNNING)

            jobs = await store.list_jobs("u1")
            assert [j.id for j in jobs] == [second.id, first.id]
            assert len(await store.list_jobs("u1", limit=1)) == 1

    @pytest.mark.asyncio
    async def test_comments_round_trip(self, store):
        comments = [{"id": "c1", "commentary": "hi"}, {"id": "c2", "commentary": "yo"}]
        async with store:
            job = await store.insert_job("u1", JobKind.POST_COMMENTS, "https://x", JobStatus.RUNNING)
            assert await store.save_comments(job.id, "https://x", comments) == 2
            assert await store.list_comments(job.id) == comments


class TestApiKeys:
    """Stored API keys."""

    @pytest.mark.asyncio
    async def test_add_and_get(self, store):
        async with store:
            key = await store.add_key("u1", "main", "apify_api_1234")
            fetched = await store.get_key(key.id, "u1")

            assert fetched.key_name == "main"
            assert fetched.is_active is True
            assert await store.get_key(key.id, "u2") is None

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, store):
        async with store:
            await store.add_key("u1", "main", "a")
            with pytest.raises(InvalidInputError):
                await store.add_key("u1", "main", "b")
            # Same name for another user is fine
            await store.add_key("u2", "main", "c")

    @pytest.mark.asyncio
    async def test_active_key_skips_disabled(self, store):
        async with store:
            older = await store.add_key("u1", "old", "a")
            newer = await store.add_key("u1", "new", "b")

            assert (await store.get_active_key("u1")).id == newer.id
            await store.set_key_active(newer.id, "u1", False)
            assert (await store.get_active_key("u1")).id == older.id
            await store.set_key_active(older.id, "u1", False)
            assert await store.get_active_key("u1") is None

    @pytest.mark.asyncio
    async def test_set_active_missing_key(self, store):
        async with store:
            with pytest.raises(NotFoundError):
                await store.set_key_active("missing", "u1", True)

    @pytest.mark.asyncio
    async def test_delete_key(self, store):
        async with store:
            key = await store.add_key("u1", "main", "a")
            assert await store.delete_key(key.id, "u2") is False
            assert await store.delete_key(key.id, "u1") is True
            assert await store.list_keys("u1") == []
