"""Structlog configuration for liharvest."""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog

from liharvest.config import HarvestConfig, LogFormat

# Event keys that may carry an Apify token
SECRET_KEYS = frozenset({"token", "api_token", "api_key", "authorization"})


def mask_secret(value: str) -> str:
    """Keep the last four characters of a secret."""
    return f"****{value[-4:]}" if len(value) > 4 else "****"


def redact_secrets(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Structlog processor masking token-like values before rendering."""
    for key in SECRET_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str) and value:
            event_dict[key] = mask_secret(value)
    return event_dict


def configure_logging(config: HarvestConfig | None = None) -> None:
    """
    Configure structlog with appropriate processors and output format.

    Args:
        config: HarvestConfig instance, uses defaults if None
    """
    config = config or HarvestConfig()
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    # httpx logs every Apify request (bearer header excluded) at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if config.log_format == LogFormat.JSON:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors += [structlog.dev.set_exc_info, structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def job_context(job_id: str, kind: str, owner_id: str) -> Iterator[None]:
    """
    Tag every log line emitted inside the block with the job it belongs to.

    Ledger, gateway and Apify client lines of one run can then be grouped
    by ``job_id`` even when the service runs several jobs at once.
    """
    with structlog.contextvars.bound_contextvars(job_id=job_id, job_kind=kind, owner_id=owner_id):
        yield


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """
    Get a configured structlog logger.

    Args:
        name: Optional logger name for context

    Returns:
        Configured structlog BoundLogger
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger
