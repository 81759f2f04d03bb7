"""FastAPI web server for liharvest."""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from liharvest import Harvester, HarvestConfig, JobKind, __version__
from liharvest.core.exporter import to_dict
from liharvest.exceptions import (
    CredentialError,
    HarvestError,
    InvalidInputError,
    JobCancelledError,
    JobStateError,
    NotFoundError,
    RemoteError,
)
from liharvest.logging import get_logger
from liharvest.models.credential import ApiKey


# Request/Response models
class JobRequest(BaseModel):
    """Request body for starting a scrape job."""

    job_type: JobKind = Field(..., description="post_comments, profile_details or mixed")
    url: Optional[str] = Field(default=None, description="LinkedIn post URL")
    profile_urls: list[str] = Field(
        default_factory=list,
        description="Profile URLs for profile_details jobs",
    )
    api_key_id: Optional[str] = Field(default=None, description="Stored API key to use")
    api_token: Optional[str] = Field(default=None, description="Raw Apify token, overrides stored keys")


class StoreProfilesRequest(BaseModel):
    """Request body for tagging profiles into the caller's list."""
    tags: Optional[list[str]] = Field(None, description="Replaces existing tags; omit to keep them")
    profiles: list[dict[str, Any]] = Field(..., min_length=1)
    tags: list[str] = Field(default_factory=list)


class RefreshProfilesRequest(BaseModel):
    """Request body for forcing a re-scrape of cached profiles."""

    profile_urls: list[str] = Field(..., min_length=1)
    api_key_id: Optional[str] = None
    api_token: Optional[str] = None


class DeleteProfilesRequest(BaseModel):
    """Request body for removing stored profiles."""

    ids: list[str] = Field(..., min_length=1)
    purge: bool = Field(
        default=False,
        description="Delete from the shared cache for everyone instead of just the caller's list",
    )


class ApiKeyRequest(BaseModel):
    """Request body for storing an API key."""

    key_name: str = Field(..., min_length=1)
    api_key: str = Field(..., min_length=1)


class ApiKeyUpdate(BaseModel):
    """Request body for enabling or disabling an API key."""

    is_active: bool


class ApiKeyResponse(BaseModel):
    """Stored API key with the token masked."""

    id: str
    key_name: str
    api_key: str
    is_active: bool
    created_at: datetime

    @classmethod
    def from_key(cls, key: ApiKey) -> "ApiKeyResponse":
        return cls(
            id=key.id,
            key_name=key.key_name,
            api_key=key.masked,
            is_active=key.is_active,
            created_at=key.created_at,
        )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


class ConfigResponse(BaseModel):
    """Current harvester configuration with detailed descriptions."""

    apify_base_url: str = Field(
        ...,
        description="Base URL of the Apify v2 API.",
        json_schema_extra={"example": "https://api.apify.com"},
    )
    comments_actor_id: str = Field(
        ...,
        description="Actor used to scrape the comments of a post.",
    )
    profiles_actor_id: str = Field(
        ...,
        description="Actor used to scrape profile details.",
    )
    token_configured: bool = Field(
        ...,
        description="Whether a fallback Apify token is set in the environment. "
        "The token itself is never returned.",
    )
    poll_interval_seconds: float = Field(
        ...,
        description="Seconds between run status checks.",
        json_schema_extra={"example": 5.0},
    )
    run_timeout_seconds: float = Field(
        ...,
        description="Maximum time to wait for a remote run before giving up.",
        json_schema_extra={"example": 600.0},
    )
    retry_enabled: bool = Field(
        ...,
        description="Enable automatic retry on transient failures (5xx, timeouts, network errors).",
        json_schema_extra={"example": True},
    )
    max_retries: int = Field(
        ...,
        description="Total attempts per remote request. Range: 1-10.",
        json_schema_extra={"example": 3},
    )
    mixed_profile_limit: int = Field(
        ...,
        description="Maximum number of commenter profiles scraped by a mixed job.",
        json_schema_extra={"example": 50},
    )
    log_level: str = Field(
        ...,
        description="Logging verbosity level. Options: 'DEBUG', 'INFO', 'WARNING', 'ERROR'.",
        json_schema_extra={"example": "INFO", "enum": ["DEBUG", "INFO", "WARNING", "ERROR"]},
    )


# Global harvester instance
_harvester: Optional[Harvester] = None
log = get_logger("api")

# Most specific first; CredentialError is an InvalidInputError
_STATUS_CODES: list[tuple[type[HarvestError], int]] = [
    (CredentialError, 401),
    (InvalidInputError, 400),
    (NotFoundError, 404),
    (JobStateError, 409),
    (JobCancelledError, 409),
    (RemoteError, 502),
]


def status_for(error: HarvestError) -> int:
    """HTTP status code for a harvester error."""
    for error_type, status_code in _STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage harvester lifecycle."""
    global _harvester
    _harvester = Harvester(HarvestConfig())
    await _harvester.__aenter__()
    yield
    await _harvester.__aexit__(None, None, None)
    _harvester = None


def get_harvester() -> Harvester:
    if _harvester is None:
        raise HTTPException(status_code=503, detail="Harvester not ready")
    return _harvester


# Create FastAPI app
app = FastAPI(
    title="liharvest API",
    description="LinkedIn comment and profile harvester API",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(HarvestError)
async def harvest_error_handler(request: Request, exc: HarvestError):
    status_code = status_for(exc)
    if status_code >= 500:
        log.error("request_failed", path=request.url.path, error=str(exc), error_type=exc.__class__.__name__)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """Check API health status."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now().isoformat(),
    )


@app.get(
    "/api/config",
    response_model=ConfigResponse,
    tags=["System"],
    summary="Get default configuration",
)
async def get_default_config():
    """
    Get default harvester configuration.

    **Configuration can also be set via environment variables** with the `LIHARVEST_` prefix:
    - `LIHARVEST_APIFY_TOKEN=...`
    - `LIHARVEST_MIXED_PROFILE_LIMIT=25`
    - `LIHARVEST_SQLITE_PATH=/data/liharvest.db`
    """
    config = HarvestConfig()
    return ConfigResponse(
        apify_base_url=config.apify_base_url,
        comments_actor_id=config.comments_actor_id,
        profiles_actor_id=config.profiles_actor_id,
        token_configured=bool(config.apify_token),
        poll_interval_seconds=config.poll_interval_seconds,
        run_timeout_seconds=config.run_timeout_seconds,
        retry_enabled=config.retry_enabled,
        max_retries=config.max_retries,
        mixed_profile_limit=config.mixed_profile_limit,
        log_level=config.log_level,
    )


@app.post("/api/jobs", tags=["Jobs"])
async def create_job(
    request: JobRequest,
    owner_id: Optional[str] = Query(None, description="Owner id"),
    harvester: Harvester = Depends(get_harvester),
):
    """
    Run a scrape job and wait for it to finish.

    post_comments and mixed jobs take `url`; profile_details takes `profile_urls`
    (or a comma-separated list in `url`).
    """
    if request.job_type == JobKind.PROFILE_DETAILS:
        target = request.profile_urls or (request.url or "")
    else:
        target = request.url or ""

    result = await harvester.run_job(
        request.job_type,
        target,
        owner_id=owner_id,
        api_key_id=request.api_key_id,
        api_token=request.api_token,
    )
    return to_dict(result)


@app.get("/api/jobs", tags=["Jobs"])
async def list_jobs(
    owner_id: Optional[str] = Query(None, description="Owner id"),
    limit: int = Query(50, ge=1, le=500),
    harvester: Harvester = Depends(get_harvester),
):
    """Most recent jobs for the owner, newest first."""
    jobs = await harvester.list_jobs(owner_id, limit)
    return [job.model_dump(mode="json") for job in jobs]


@app.get("/api/jobs/{job_id}", tags=["Jobs"])
async def get_job(
    job_id: str,
    owner_id: Optional[str] = Query(None, description="Owner id"),
    harvester: Harvester = Depends(get_harvester),
):
    job = await harvester.get_job(job_id, owner_id or harvester.config.default_owner_id)
    return job.model_dump(mode="json")


@app.post("/api/jobs/{job_id}/cancel", tags=["Jobs"])
async def cancel_job(
    job_id: str,
    owner_id: Optional[str] = Query(None, description="Owner id"),
    harvester: Harvester = Depends(get_harvester),
):
    job = await harvester.cancel_job(job_id, owner_id)
    return job.model_dump(mode="json")


@app.get("/api/jobs/{job_id}/comments", tags=["Jobs"])
async def get_job_comments(
    job_id: str,
    owner_id: Optional[str] = Query(None, description="Owner id"),
    harvester: Harvester = Depends(get_harvester),
):
    comments = await harvester.get_job_comments(job_id, owner_id or harvester.config.default_owner_id)
    return {"job_id": job_id, "total": len(comments), "comments": comments}


@app.get("/api/profiles", tags=["Profiles"])
async def list_profiles(
    owner_id: Optional[str] = Query(None, description="Owner id"),
    all_profiles: bool = Query(False, alias="all", description="Return the whole shared cache"),
    harvester: Harvester = Depends(get_harvester),
):
    """The owner's stored profiles, or every cached profile with `all=true`."""
    if all_profiles:
        rows = await harvester.list_profiles()
    else:
        rows = await harvester.list_profiles(owner_id or harvester.config.default_owner_id)
    return {"total": len(rows), "profiles": [row.model_dump(mode="json") for row in rows]}


@app.post("/api/profiles/store", tags=["Profiles"])
async def store_profiles(
    request: StoreProfilesRequest,
    owner_id: Optional[str] = Query(None, description="Owner id"),
    harvester: Harvester = Depends(get_harvester),
):
    stored = await harvester.store_profiles(request.profiles, owner_id, request.tags)
    return {"stored": len(stored), "profiles": [row.model_dump(mode="json") for row in stored]}


@app.post("/api/profiles/refresh", tags=["Profiles"])
async def refresh_profiles(
    request: RefreshProfilesRequest,
    owner_id: Optional[str] = Query(None, description="Owner id"),
    harvester: Harvester = Depends(get_harvester),
):
    """Re-scrape profiles even when cached."""
    resolution = await harvester.refresh_profiles(
        request.profile_urls,
        owner_id=owner_id,
        api_key_id=request.api_key_id,
        api_token=request.api_token,
    )
    return resolution.model_dump(mode="json")


@app.delete("/api/profiles", tags=["Profiles"])
async def delete_profiles(
    request: DeleteProfilesRequest,
    owner_id: Optional[str] = Query(None, description="Owner id"),
    harvester: Harvester = Depends(get_harvester),
):
    if request.purge:
        removed = await harvester.purge_profiles(request.ids)
    else:
        removed = await harvester.delete_profiles(request.ids, owner_id)
    return {"removed": removed}


@app.get("/api/keys", response_model=list[ApiKeyResponse], tags=["Keys"])
async def list_keys(
    owner_id: Optional[str] = Query(None, description="Owner id"),
    harvester: Harvester = Depends(get_harvester),
):
    keys = await harvester.list_api_keys(owner_id)
    return [ApiKeyResponse.from_key(key) for key in keys]


@app.post("/api/keys", response_model=ApiKeyResponse, status_code=201, tags=["Keys"])
async def add_key(
    request: ApiKeyRequest,
    owner_id: Optional[str] = Query(None, description="Owner id"),
    harvester: Harvester = Depends(get_harvester),
):
    key = await harvester.add_api_key(request.key_name, request.api_key, owner_id)
    return ApiKeyResponse.from_key(key)


@app.patch("/api/keys/{key_id}", response_model=ApiKeyResponse, tags=["Keys"])
async def update_key(
    key_id: str,
    request: ApiKeyUpdate,
    owner_id: Optional[str] = Query(None, description="Owner id"),
    harvester: Harvester = Depends(get_harvester),
):
    key = await harvester.set_api_key_active(key_id, request.is_active, owner_id)
    return ApiKeyResponse.from_key(key)


@app.delete("/api/keys/{key_id}", tags=["Keys"])
async def delete_key(
    key_id: str,
    owner_id: Optional[str] = Query(None, description="Owner id"),
    harvester: Harvester = Depends(get_harvester),
):
    if not await harvester.delete_api_key(key_id, owner_id):
        raise HTTPException(status_code=404, detail=f"API key {key_id} not found")
    return {"deleted": key_id}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
