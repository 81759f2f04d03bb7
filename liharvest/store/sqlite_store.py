"""SQLite-backed store using aiosqlite."""

import json
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

import aiosqlite

from liharvest.exceptions import InvalidInputError, JobStateError, NotFoundError, StoreError
from liharvest.models.credential import ApiKey
from liharvest.models.job import Job, JobKind, JobStatus
from liharvest.models.profile import CachedProfile, StoredProfile
from liharvest.store.base import HarvestStore

SCHEMA = """
CREATE TABLE IF NOT EXISTS global_profiles (
    id TEXT PRIMARY KEY,
    linkedin_url TEXT NOT NULL UNIQUE,
    profile_data TEXT NOT NULL,
    last_updated TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_global_profiles_updated ON global_profiles(last_updated);

CREATE TABLE IF NOT EXISTS user_stored_profiles (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    global_profile_id TEXT NOT NULL REFERENCES global_profiles(id) ON DELETE CASCADE,
    tags TEXT NOT NULL DEFAULT '[]',
    stored_at TEXT NOT NULL,
    UNIQUE (user_id, global_profile_id)
);
CREATE INDEX IF NOT EXISTS idx_user_stored_profiles_user ON user_stored_profiles(user_id);

CREATE TABLE IF NOT EXISTS scraping_jobs (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    api_key_id TEXT,
    job_type TEXT NOT NULL CHECK (job_type IN ('post_comments', 'profile_details', 'mixed')),
    input_url TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'running', 'completed', 'failed', 'cancelled')),
    results_count INTEGER NOT NULL DEFAULT 0,
    error_message TEXT,
    created_at TEXT NOT NULL,
    completed_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_scraping_jobs_user ON scraping_jobs(user_id, created_at);

CREATE TABLE IF NOT EXISTS job_comments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    job_id TEXT NOT NULL REFERENCES scraping_jobs(id) ON DELETE CASCADE,
    post_url TEXT NOT NULL,
    comment_id TEXT,
    payload TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_job_comments_job ON job_comments(job_id);

CREATE TABLE IF NOT EXISTS api_keys (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    key_name TEXT NOT NULL,
    api_key TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (user_id, key_name)
);
"""

_JOB_COLUMNS = {"status", "results_count", "error_message", "completed_at", "api_key_id"}
_TERMINAL_SQL = ", ".join(f"'{s.value}'" for s in JobStatus if s.is_terminal)

_USER_PROFILE_SELECT = """
    SELECT usp.id, usp.user_id, usp.global_profile_id, usp.tags, usp.stored_at,
           gp.linkedin_url, gp.profile_data, gp.last_updated
    FROM user_stored_profiles usp
    JOIN global_profiles gp ON gp.id = usp.global_profile_id
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def _placeholders(values: list[Any]) -> str:
    return ", ".join("?" for _ in values)


class SQLiteStore(HarvestStore):
    """Local store for the profile cache, job ledger and API keys."""

    def __init__(self, db_path: str = ".liharvest.db"):
        """
        Initialize SQLite store.

        Args:
            db_path: Path to SQLite database file (":memory:" works too)
        """
        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def _ensure_db(self) -> aiosqlite.Connection:
        """Ensure database connection and schema exist."""
        if self._db is None:
            with self._errors("open store"):
                self._db = await aiosqlite.connect(self.db_path)
                self._db.row_factory = aiosqlite.Row
                await self._db.execute("PRAGMA foreign_keys = ON")
                await self._db.executescript(SCHEMA)
                await self._db.commit()
        return self._db

    @contextmanager
    def _errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except aiosqlite.Error as e:
            raise StoreError(f"{operation} failed: {e}") from e

    async def close(self) -> None:
        """Close database connection."""
        if self._db is not None:
            await self._db.close()
            self._db = None

    # -- row mapping ---------------------------------------------------------

    @staticmethod
    def _to_cached(row: aiosqlite.Row) -> CachedProfile:
        return CachedProfile(
            id=row["id"],
            linkedin_url=row["linkedin_url"],
            profile_data=json.loads(row["profile_data"]),
            last_updated=row["last_updated"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _to_stored(row: aiosqlite.Row) -> StoredProfile:
        return StoredProfile(
            id=row["id"],
            user_id=row["user_id"],
            global_profile_id=row["global_profile_id"],
            linkedin_url=row["linkedin_url"],
            profile_data=json.loads(row["profile_data"]),
            tags=json.loads(row["tags"]),
            stored_at=row["stored_at"],
            last_updated=row["last_updated"],
        )

    @staticmethod
    def _to_job(row: aiosqlite.Row) -> Job:
        return Job(**dict(row))

    @staticmethod
    def _to_key(row: aiosqlite.Row) -> ApiKey:
        data = dict(row)
        data["is_active"] = bool(data["is_active"])
        return ApiKey(**data)

    async def _fetchone(self, sql: str, params: tuple = ()) -> aiosqlite.Row | None:
        db = await self._ensure_db()
        async with db.execute(sql, params) as cursor:
            return await cursor.fetchone()

    async def _fetchall(self, sql: str, params: tuple = ()) -> list[aiosqlite.Row]:
        db = await self._ensure_db()
        async with db.execute(sql, params) as cursor:
            return list(await cursor.fetchall())

    # -- profiles ------------------------------------------------------------

    async def get_profile(self, linkedin_url: str) -> CachedProfile | None:
        with self._errors("profile lookup"):
            row = await self._fetchone(
                "SELECT * FROM global_profiles WHERE linkedin_url = ?", (linkedin_url,)
            )
        return self._to_cached(row) if row else None

    async def upsert_profile(self, linkedin_url: str, profile_data: dict[str, Any]) -> CachedProfile:
        db = await self._ensure_db()
        now = _now()
        with self._errors("profile upsert"):
            await db.execute(
                """
                INSERT INTO global_profiles (id, linkedin_url, profile_data, last_updated, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(linkedin_url) DO UPDATE SET
                    profile_data = excluded.profile_data,
                    last_updated = excluded.last_updated
                """,
                (_new_id(), linkedin_url, json.dumps(profile_data), now, now),
            )
            await db.commit()
            row = await self._fetchone(
                "SELECT * FROM global_profiles WHERE linkedin_url = ?", (linkedin_url,)
            )
        return self._to_cached(row)

    async def link_profile(
        self,
        user_id: str,
        global_profile_id: str,
        tags: list[str] | None = None,
    ) -> StoredProfile:
        db = await self._ensure_db()
        on_conflict = "stored_at = excluded.stored_at"
        if tags is not None:
            on_conflict += ", tags = excluded.tags"

        with self._errors("profile link"):
            await db.execute(
                f"""
                INSERT INTO user_stored_profiles (id, user_id, global_profile_id, tags, stored_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id, global_profile_id) DO UPDATE SET {on_conflict}
                """,
                (_new_id(), user_id, global_profile_id, json.dumps(tags or []), _now()),
            )
            await db.commit()
            row = await self._fetchone(
                _USER_PROFILE_SELECT + " WHERE usp.user_id = ? AND usp.global_profile_id = ?",
                (user_id, global_profile_id),
            )
        if row is None:
            raise NotFoundError(f"Profile {global_profile_id} not found")
        return self._to_stored(row)

    async def list_user_profiles(self, user_id: str) -> list[StoredProfile]:
        with self._errors("user profile listing"):
            rows = await self._fetchall(
                _USER_PROFILE_SELECT + " WHERE usp.user_id = ? ORDER BY gp.last_updated DESC",
                (user_id,),
            )
        return [self._to_stored(row) for row in rows]

    async def list_profiles(self, limit: int | None = None) -> list[CachedProfile]:
        sql = "SELECT * FROM global_profiles ORDER BY last_updated DESC"
        params: tuple = ()
        if limit:
            sql += " LIMIT ?"
            params = (limit,)
        with self._errors("profile listing"):
            rows = await self._fetchall(sql, params)
        return [self._to_cached(row) for row in rows]

    async def unlink_profiles(self, user_id: str, stored_ids: list[str]) -> int:
        if not stored_ids:
            return 0
        db = await self._ensure_db()
        with self._errors("profile unlink"):
            cursor = await db.execute(
                f"DELETE FROM user_stored_profiles WHERE user_id = ? AND id IN ({_placeholders(stored_ids)})",
                (user_id, *stored_ids),
            )
            await db.commit()
        return cursor.rowcount

    async def delete_profiles(self, profile_ids: list[str]) -> int:
        if not profile_ids:
            return 0
        db = await self._ensure_db()
        with self._errors("profile delete"):
            cursor = await db.execute(
                f"DELETE FROM global_profiles WHERE id IN ({_placeholders(profile_ids)})",
                tuple(profile_ids),
            )
            await db.commit()
        return cursor.rowcount

    # -- jobs ----------------------------------------------------------------

    async def insert_job(
        self,
        user_id: str,
        job_type: JobKind,
        input_url: str,
        status: JobStatus,
        api_key_id: str | None = None,
    ) -> Job:
        db = await self._ensure_db()
        job_id = _new_id()
        with self._errors("job insert"):
            await db.execute(
                """
                INSERT INTO scraping_jobs (id, user_id, api_key_id, job_type, input_url, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (job_id, user_id, api_key_id, JobKind(job_type).value, input_url, JobStatus(status).value, _now()),
            )
            await db.commit()
        return await self.get_job(job_id)

    async def update_job(self, job_id: str, *, require_open: bool = False, **fields: Any) -> Job:
        unknown = set(fields) - _JOB_COLUMNS
        if unknown:
            raise ValueError(f"Unknown job columns: {sorted(unknown)}")

        values = {
            key: (value.value if isinstance(value, JobStatus) else value)
            for key, value in fields.items()
        }
        if isinstance(values.get("completed_at"), datetime):
            values["completed_at"] = values["completed_at"].isoformat()

        db = await self._ensure_db()
        changed = None
        if values:
            assignments = ", ".join(f"{key} = ?" for key in values)
            sql = f"UPDATE scraping_jobs SET {assignments} WHERE id = ?"
            if require_open:
                sql += f" AND status NOT IN ({_TERMINAL_SQL})"
            with self._errors("job update"):
                cursor = await db.execute(sql, (*values.values(), job_id))
                changed = cursor.rowcount
                await db.commit()

        job = await self.get_job(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        if require_open and (changed == 0 or (changed is None and job.status.is_terminal)):
            raise JobStateError(f"Job {job_id} is already {job.status.value}")
        return job

    async def get_job(self, job_id: str) -> Job | None:
        with self._errors("job lookup"):
            row = await self._fetchone("SELECT * FROM scraping_jobs WHERE id = ?", (job_id,))
        return self._to_job(row) if row else None

    async def list_jobs(self, user_id: str, limit: int | None = None) -> list[Job]:
        sql = "SELECT * FROM scraping_jobs WHERE user_id = ? ORDER BY created_at DESC"
        params: tuple = (user_id,)
        if limit:
            sql += " LIMIT ?"
            params = (user_id, limit)
        with self._errors("job listing"):
            rows = await self._fetchall(sql, params)
        return [self._to_job(row) for row in rows]

    async def save_comments(self, job_id: str, post_url: str, comments: list[dict[str, Any]]) -> int:
        if not comments:
            return 0
        db = await self._ensure_db()
        now = _now()
        with self._errors("comment save"):
            await db.executemany(
                """
                INSERT INTO job_comments (job_id, post_url, comment_id, payload, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (job_id, post_url, comment.get("id"), json.dumps(comment), now)
                    for comment in comments
                ],
            )
            await db.commit()
        return len(comments)

    async def list_comments(self, job_id: str) -> list[dict[str, Any]]:
        with self._errors("comment listing"):
            rows = await self._fetchall(
                "SELECT payload FROM job_comments WHERE job_id = ? ORDER BY id", (job_id,)
            )
        return [json.loads(row["payload"]) for row in rows]

    # -- api keys ------------------------------------------------------------

    async def add_key(self, user_id: str, key_name: str, api_key: str) -> ApiKey:
        db = await self._ensure_db()
        key_id = _new_id()
        now = _now()
        try:
            await db.execute(
                """
                INSERT INTO api_keys (id, user_id, key_name, api_key, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, 1, ?, ?)
                """,
                (key_id, user_id, key_name, api_key, now, now),
            )
            await db.commit()
        except aiosqlite.IntegrityError as e:
            raise InvalidInputError(f"An API key named '{key_name}' already exists") from e
        except aiosqlite.Error as e:
            raise StoreError(f"api key insert failed: {e}") from e
        return await self.get_key(key_id, user_id)

    async def get_key(self, key_id: str, user_id: str) -> ApiKey | None:
        with self._errors("api key lookup"):
            row = await self._fetchone(
                "SELECT * FROM api_keys WHERE id = ? AND user_id = ?", (key_id, user_id)
            )
        return self._to_key(row) if row else None

    async def get_active_key(self, user_id: str) -> ApiKey | None:
        with self._errors("api key lookup"):
            row = await self._fetchone(
                """
                SELECT * FROM api_keys WHERE user_id = ? AND is_active = 1
                ORDER BY created_at DESC LIMIT 1
                """,
                (user_id,),
            )
        return self._to_key(row) if row else None

    async def list_keys(self, user_id: str) -> list[ApiKey]:
        with self._errors("api key listing"):
            rows = await self._fetchall(
                "SELECT * FROM api_keys WHERE user_id = ? ORDER BY created_at DESC", (user_id,)
            )
        return [self._to_key(row) for row in rows]

    async def set_key_active(self, key_id: str, user_id: str, active: bool) -> ApiKey:
        db = await self._ensure_db()
        with self._errors("api key update"):
            await db.execute(
                "UPDATE api_keys SET is_active = ?, updated_at = ? WHERE id = ? AND user_id = ?",
                (int(active), _now(), key_id, user_id),
            )
            await db.commit()
        key = await self.get_key(key_id, user_id)
        if key is None:
            raise NotFoundError(f"API key {key_id} not found")
        return key

    async def delete_key(self, key_id: str, user_id: str) -> bool:
        db = await self._ensure_db()
        with self._errors("api key delete"):
            cursor = await db.execute(
                "DELETE FROM api_keys WHERE id = ? AND user_id = ?", (key_id, user_id)
            )
            await db.commit()
        return cursor.rowcount > 0
