"""Configuration management using Pydantic Settings."""

from enum import Enum

from pydantic_settings import BaseSettings


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


class HarvestConfig(BaseSettings):
    """Configuration for the liharvest job runner."""

    # Remote scraping API
    apify_base_url: str = "https://api.apify.com"
    apify_token: str | None = None
    comments_actor_id: str = "ZI6ykbLlGS3APaPE8"
    profiles_actor_id: str = "2SyF0bVxmgGr8IVCZ"
    request_timeout_seconds: float = 60.0

    # Run polling
    poll_interval_seconds: float = 5.0
    run_timeout_seconds: float = 600.0

    # Retry settings
    retry_enabled: bool = True
    max_retries: int = 3
    retry_backoff_base: float = 1.0
    retry_backoff_factor: float = 2.0

    # Job limits
    mixed_profile_limit: int = 50
    job_history_limit: int = 50

    # Store settings
    sqlite_path: str = ".liharvest.db"
    default_owner_id: str = "local"

    # Logging
    log_level: str = "INFO"
    log_format: LogFormat = LogFormat.CONSOLE

    model_config = {
        "env_prefix": "LIHARVEST_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }
