"""Apify REST client: start actor runs, poll them, read their datasets."""

import asyncio
import time
from typing import Any, Awaitable, Callable

import httpx

from liharvest.config import HarvestConfig
from liharvest.client.retry import RetryPolicy
from liharvest.exceptions import (
    ConfigError,
    CredentialError,
    InvalidInputError,
    RemoteClientError,
    RemoteConnectionError,
    RemoteError,
    RemoteServerError,
    RemoteTimeoutError,
    RunAbortedError,
    RunFailedError,
    RunTimeoutError,
    TransientRemoteError,
)
from liharvest.logging import get_logger
from liharvest.models.run import ExternalRun, RunStatus


class ApifyClient:
    """
    Thin async client over the Apify v2 API.

    Example:
        async with ApifyClient(token) as client:
            comments = await client.scrape_post_comments(post_url)
    """

    def __init__(
        self,
        token: str,
        config: HarvestConfig | None = None,
        retry: RetryPolicy | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        clock: Callable[[], float] | None = None,
    ):
        """
        Initialize the client.

        Args:
            token: Apify API token, sent as a bearer token on every call
            config: HarvestConfig instance, uses defaults if None
            retry: Retry policy, built from config if None
            http_client: Pre-built httpx client (tests inject a MockTransport one)
            sleep: Coroutine used between status polls
            clock: Monotonic clock used for the polling ceiling
        """
        if not token or not token.strip():
            raise CredentialError("An Apify API token is required")

        self.config = config or HarvestConfig()
        if self.config.poll_interval_seconds <= 0 or self.config.run_timeout_seconds <= 0:
            raise ConfigError("poll_interval_seconds and run_timeout_seconds must be positive")
        self._token = token.strip()
        self._retry = retry or RetryPolicy.from_config(self.config)
        self._http = http_client
        self._owns_http = http_client is None
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic
        self._log = get_logger("apify")

    async def __aenter__(self) -> "ApifyClient":
        self._ensure_http()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.request_timeout_seconds),
            )
        return self._http

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    # -- transport ---------------------------------------------------------

    async def _send(self, method: str, path: str, json_body: Any = None) -> Any:
        """Single HTTP attempt, mapping failures onto the exception hierarchy."""
        http = self._ensure_http()
        url = f"{self.config.apify_base_url.rstrip('/')}{path}"
        headers = {"Authorization": f"Bearer {self._token}"}

        start = time.perf_counter()
        try:
            # httpx limits each phase separately; this caps the whole exchange
            response = await asyncio.wait_for(
                http.request(method, url, json=json_body, headers=headers),
                self.config.request_timeout_seconds,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise RemoteTimeoutError(
                "Apify API request timeout. The service may be slow to respond."
            ) from e
        except httpx.TransportError as e:
            raise RemoteConnectionError(f"Cannot reach Apify API: {e}") from e

        self._log.debug(
            "apify_call",
            method=method,
            path=path,
            status=response.status_code,
            duration_ms=(time.perf_counter() - start) * 1000,
        )

        if response.is_client_error:
            raise RemoteClientError(
                f"Apify API error {response.status_code}: {response.reason_phrase}",
                response.status_code,
            )
        if response.is_server_error:
            raise RemoteServerError(
                f"Apify API error {response.status_code}: {response.reason_phrase}",
                response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(f"Apify API returned invalid JSON for {path}") from e

    async def _request(self, method: str, path: str, json_body: Any = None) -> Any:
        return await self._retry.run(self._send, method, path, json_body)

    @staticmethod
    def _parse_run(payload: Any) -> ExternalRun:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict) or not data.get("id") or not data.get("defaultDatasetId"):
            raise RemoteError("Apify API response is missing the run or dataset id")
        return ExternalRun(
            run_id=data["id"],
            dataset_id=data["defaultDatasetId"],
            status=data.get("status") or RunStatus.READY.value,
        )

    # -- runs ----------------------------------------------------------------

    async def start_comments_run(self, post_url: str) -> ExternalRun:
        """Start the comments actor for one post."""
        if not post_url or not post_url.strip():
            raise InvalidInputError("A post URL is required")

        payload = await self._request(
            "POST",
            f"/v2/acts/{self.config.comments_actor_id}/runs",
            {"posts": [post_url.strip()]},
        )
        run = self._parse_run(payload)
        self._log.info("run_started", actor="comments", run_id=run.run_id)
        return run

    async def start_profiles_run(self, urls: list[str]) -> ExternalRun:
        """Start the profile actor for a batch of profile URLs."""
        if not urls:
            raise InvalidInputError("At least one profile URL is required")

        payload = await self._request(
            "POST",
            f"/v2/acts/{self.config.profiles_actor_id}/runs",
            {"profileUrls": list(urls)},
        )
        run = self._parse_run(payload)
        self._log.info("run_started", actor="profiles", run_id=run.run_id, profiles=len(urls))
        return run

    async def get_run_status(self, run_id: str) -> str:
        """Current status string of a run."""
        payload = await self._request("GET", f"/v2/actor-runs/{run_id}")
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict) or "status" not in data:
            raise RemoteError(f"Apify API returned no status for run {run_id}")
        return data["status"]

    async def await_completion(self, run_id: str) -> str:
        """
        Poll a run until it reaches a terminal status.

        Transient status-check failures are logged and polling continues
        until the ceiling; a 4xx from the status endpoint propagates.

        Returns:
            The SUCCEEDED status

        Raises:
            RunFailedError: Run ended FAILED or TIMED-OUT
            RunAbortedError: Run ended ABORTED
            RunTimeoutError: No terminal status within run_timeout_seconds
        """
        deadline = self._clock() + self.config.run_timeout_seconds
        self._log.info("run_waiting", run_id=run_id)

        while self._clock() < deadline:
            try:
                status = await self.get_run_status(run_id)
            except TransientRemoteError as e:
                self._log.warning("run_status_unavailable", run_id=run_id, error=str(e))
            else:
                self._log.debug("run_status", run_id=run_id, status=status)
                if status == RunStatus.SUCCEEDED.value:
                    self._log.info("run_succeeded", run_id=run_id)
                    return status
                if status in (RunStatus.FAILED.value, RunStatus.TIMED_OUT.value):
                    raise RunFailedError(f"Apify run {run_id} failed ({status})")
                if status == RunStatus.ABORTED.value:
                    raise RunAbortedError(f"Apify run {run_id} was aborted")

            await self._sleep(self.config.poll_interval_seconds)

        raise RunTimeoutError(
            f"Apify run {run_id} timed out after "
            f"{self.config.run_timeout_seconds / 60:g} minutes"
        )

    async def fetch_results(self, dataset_id: str) -> list[dict[str, Any]]:
        """All items of a finished run's dataset, in one call."""
        payload = await self._request("GET", f"/v2/datasets/{dataset_id}/items")
        if not isinstance(payload, list):
            raise RemoteError(f"Apify dataset {dataset_id} did not return a list")

        items = [item for item in payload if isinstance(item, dict)]
        self._log.info("dataset_fetched", dataset_id=dataset_id, items=len(items))
        return items

    # -- convenience -------------------------------------------------------

    async def scrape_post_comments(self, post_url: str) -> list[dict[str, Any]]:
        """Start, wait for and read a comments run."""
        run = await self.start_comments_run(post_url)
        await self.await_completion(run.run_id)
        return await self.fetch_results(run.dataset_id)

    async def scrape_profiles(self, urls: list[str]) -> list[dict[str, Any]]:
        """Start, wait for and read a profiles run."""
        run = await self.start_profiles_run(urls)
        await self.await_completion(run.run_id)
        return await self.fetch_results(run.dataset_id)
