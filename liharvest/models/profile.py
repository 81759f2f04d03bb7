"""Profile cache models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class CachedProfile(BaseModel):
    """Shared profile row, one per canonical LinkedIn URL across all users."""

    id: str
    linkedin_url: str
    profile_data: dict[str, Any]
    last_updated: datetime
    created_at: datetime


class StoredProfile(BaseModel):
    """A user's link to a cached profile, with that user's tags."""

    id: str
    user_id: str
    global_profile_id: str
    linkedin_url: str
    profile_data: dict[str, Any]
    tags: list[str] = []
    stored_at: datetime
    last_updated: datetime
