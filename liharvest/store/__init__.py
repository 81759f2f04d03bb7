"""Store implementations."""

from liharvest.store.base import (
    CredentialRepository,
    HarvestStore,
    JobRepository,
    ProfileRepository,
)
from liharvest.store.sqlite_store import SQLiteStore

__all__ = [
    "CredentialRepository",
    "HarvestStore",
    "JobRepository",
    "ProfileRepository",
    "SQLiteStore",
]
