"""Retry policy applied to every remote API call."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from liharvest.config import HarvestConfig
from liharvest.exceptions import TransientRemoteError
from liharvest.logging import get_logger

T = TypeVar("T")

_log = get_logger("retry")


def is_transient(exc: BaseException) -> bool:
    """Timeouts, connection failures and 5xx responses are retried; 4xx never."""
    return isinstance(exc, TransientRemoteError)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff.

    Attempt ``n`` (1-based) that fails with a retryable error waits
    ``base_delay * multiplier ** (n - 1)`` seconds before attempt ``n + 1``.
    With the defaults that is 1s then 2s, three attempts in total.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    retry_on: Callable[[BaseException], bool] = is_transient
    sleep: Callable[[float], Awaitable[Any]] = field(
        default=asyncio.sleep, repr=False, compare=False
    )

    @classmethod
    def from_config(cls, config: HarvestConfig) -> "RetryPolicy":
        """Build the policy from the retry section of the config."""
        return cls(
            max_attempts=max(1, config.max_retries) if config.retry_enabled else 1,
            base_delay=config.retry_backoff_base,
            multiplier=config.retry_backoff_factor,
        )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt``."""
        return self.base_delay * (self.multiplier ** (attempt - 1))

    async def run(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Await ``fn(*args, **kwargs)``, retrying retryable failures.

        Raises:
            The last exception once attempts are exhausted, or the first
            non-retryable exception immediately.
        """
        attempt = 1
        while True:
            try:
                return await fn(*args, **kwargs)
            except Exception as e:
                if attempt >= self.max_attempts or not self.retry_on(e):
                    raise
                delay = self.delay_for(attempt)
                _log.warning(
                    "retrying_request",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    delay_seconds=delay,
                    error=str(e),
                )
                await self.sleep(delay)
                attempt += 1
