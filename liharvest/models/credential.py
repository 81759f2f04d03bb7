"""API credential model."""

from datetime import datetime

from pydantic import BaseModel


class ApiKey(BaseModel):
    """A named scraping API token owned by one user."""

    id: str
    user_id: str
    key_name: str
    api_key: str
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    @property
    def masked(self) -> str:
        """Token with everything but the last four characters hidden."""
        if len(self.api_key) <= 4:
            return "*" * len(self.api_key)
        return "*" * (len(self.api_key) - 4) + self.api_key[-4:]
