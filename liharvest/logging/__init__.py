"""Logging helpers."""

from liharvest.logging.setup import configure_logging, get_logger, job_context, redact_secrets

__all__ = ["configure_logging", "get_logger", "job_context", "redact_secrets"]
