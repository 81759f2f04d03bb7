"""Unit tests for logging setup."""

import structlog

from liharvest.config import HarvestConfig, LogFormat
from liharvest.logging import configure_logging, get_logger, job_context, redact_secrets


class TestRedaction:
    def test_token_masked(self):
        event = redact_secrets(None, "info", {"event": "x", "api_token": "apify_api_secret1234"})
        assert event["api_token"] == "****1234"

    def test_short_token_fully_masked(self):
        assert redact_secrets(None, "info", {"token": "abc"})["token"] == "****"

    def test_other_keys_untouched(self):
        event = {"event": "job_created", "job_id": "j1", "token": None}
        assert redact_secrets(None, "info", dict(event)) == event


class TestJobContext:
    def test_binds_and_clears(self):
        with job_context("j1", "mixed", "u1"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["job_id"] == "j1"
            assert bound["job_kind"] == "mixed"
            assert bound["owner_id"] == "u1"
        assert "job_id" not in structlog.contextvars.get_contextvars()


class TestConfigureLogging:
    def test_json_output(self, capsys):
        configure_logging(HarvestConfig(log_format=LogFormat.JSON))
        with job_context("j1", "post_comments", "u1"):
            get_logger("test").info("run_started", api_key="apify_api_secret1234")

        out = capsys.readouterr().out
        assert '"job_id": "j1"' in out
        assert "secret" not in out
        structlog.reset_defaults()
