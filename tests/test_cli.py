"""Unit tests for the CLI - Typer CliRunner, mocked remote client."""

import asyncio
import json

import pytest
from typer.testing import CliRunner
from unittest.mock import AsyncMock

import liharvest.cli as cli_module
from liharvest import __version__
from liharvest.cli import _expand_id, app
from liharvest.config import HarvestConfig
from liharvest.core.orchestrator import Harvester
from liharvest.exceptions import InvalidInputError

POST_URL = "https://www.linkedin.com/posts/alice_activity-1"
A = "https://www.linkedin.com/in/alice"

runner = CliRunner()


class FakeClient:
    def __init__(self):
        self.scrape_post_comments = AsyncMock(return_value=[
            {"id": "c1", "commentary": "hello", "actor": {"linkedinUrl": A}},
        ])
        self.scrape_profiles = AsyncMock(
            side_effect=lambda urls: [{"linkedinUrl": u, "fullName": "Alice Example"} for u in urls]
        )

    def factory(self, token, config):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


@pytest.fixture
def fake_client(tmp_path, monkeypatch):
    client = FakeClient()
    monkeypatch.setenv("LIHARVEST_SQLITE_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("LIHARVEST_APIFY_TOKEN", "env-token")
    monkeypatch.delenv("APIFY_TOKEN", raising=False)
    monkeypatch.setattr(
        cli_module,
        "Harvester",
        lambda config: Harvester(config, client_factory=client.factory),
    )
    return client


class TestVersion:
    def test_version_flag(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestJobCommands:
    def test_comments(self, fake_client):
        result = runner.invoke(app, ["comments", POST_URL])
        assert result.exit_code == 0
        assert "post_comments" in result.output
        assert "completed" in result.output
        fake_client.scrape_post_comments.assert_awaited_once_with(POST_URL)

    def test_comments_invalid_url(self, fake_client):
        result = runner.invoke(app, ["comments", "https://example.com/x"])
        assert result.exit_code == 1
        assert "Not a LinkedIn post URL" in result.output
        fake_client.scrape_post_comments.assert_not_awaited()

    def test_profiles_with_output(self, fake_client, tmp_path):
        out = tmp_path / "result.json"
        result = runner.invoke(app, ["profiles", A, "--quiet", "--output", str(out)])

        assert result.exit_code == 0
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["job"]["job_type"] == "profile_details"
        assert data["profiles"][0]["fullName"] == "Alice Example"

    def test_mixed(self, fake_client):
        result = runner.invoke(app, ["mixed", POST_URL])
        assert result.exit_code == 0
        assert "0 from cache, 1 scraped" in result.output
        fake_client.scrape_profiles.assert_awaited_once_with([A])

    def test_jobs_empty(self, fake_client):
        result = runner.invoke(app, ["jobs"])
        assert result.exit_code == 0
        assert "No jobs yet" in result.output

    def test_jobs_after_run(self, fake_client):
        runner.invoke(app, ["comments", POST_URL, "--quiet"])
        result = runner.invoke(app, ["jobs"])
        assert result.exit_code == 0
        assert "post_comments" in result.output

    def test_cancel_unknown_job(self, fake_client):
        result = runner.invoke(app, ["cancel", "missing"])
        assert result.exit_code == 1
        assert "not found" in result.output


class TestProfileCommands:
    def test_cached_export(self, fake_client, tmp_path):
        runner.invoke(app, ["profiles", A, "--quiet"])
        out = tmp_path / "profiles.json"

        result = runner.invoke(app, ["cached", "--output", str(out)])

        assert result.exit_code == 0
        payload = json.loads(out.read_text(encoding="utf-8"))
        assert payload["profiles_count"] == 1

    def test_cached_empty(self, fake_client):
        result = runner.invoke(app, ["cached"])
        assert result.exit_code == 0
        assert "No stored profiles" in result.output

    def test_forget(self, fake_client, tmp_path):
        runner.invoke(app, ["profiles", A, "--quiet"])
        out = tmp_path / "profiles.json"
        runner.invoke(app, ["cached", "--output", str(out)])
        stored_id = json.loads(out.read_text(encoding="utf-8"))["profiles"][0]["id"]

        result = runner.invoke(app, ["forget", stored_id])
        assert result.exit_code == 0
        assert "Removed 1 profiles" in result.output


class TestKeyCommands:
    def test_key_lifecycle(self, fake_client):
        result = runner.invoke(app, ["keys", "add", "main", "apify_api_secret1234"])
        assert result.exit_code == 0
        assert "Stored key 'main'" in result.output
        key_id = result.output.rsplit("(", 1)[1].split(")", 1)[0]

        result = runner.invoke(app, ["keys", "list"])
        assert result.exit_code == 0
        assert "secret" not in result.output

        result = runner.invoke(app, ["keys", "disable", key_id])
        assert result.exit_code == 0
        assert "disabled" in result.output

        result = runner.invoke(app, ["keys", "remove", key_id])
        assert result.exit_code == 0
        assert "Key removed" in result.output

    def test_keys_list_empty(self, fake_client):
        result = runner.invoke(app, ["keys", "list"])
        assert "No API keys stored" in result.output

    def test_remove_unknown_key(self, fake_client):
        result = runner.invoke(app, ["keys", "remove", "missing"])
        assert result.exit_code == 1


def _stored_jobs():
    async def run():
        async with Harvester(HarvestConfig()) as harvester:
            return await harvester.list_jobs()

    return asyncio.run(run())


class TestShortIds:
    def test_expand_unique_prefix(self):
        assert _expand_id("abcd1234", ["abcd1234-0000", "ffff0000-0000"]) == "abcd1234-0000"

    def test_unknown_prefix_passes_through(self):
        assert _expand_id("missing", ["abcd1234-0000"]) == "missing"

    def test_ambiguous_prefix(self):
        with pytest.raises(InvalidInputError):
            _expand_id("ab", ["abcd-1", "abef-2"])

    def test_cancel_accepts_short_id(self, fake_client):
        runner.invoke(app, ["comments", POST_URL, "--quiet"])
        job_id = _stored_jobs()[0].id

        result = runner.invoke(app, ["cancel", job_id[:8]])

        # Resolved to the finished job rather than reported missing
        assert result.exit_code == 1
        assert "already completed" in result.output

    def test_forget_accepts_short_id(self, fake_client, tmp_path):
        runner.invoke(app, ["profiles", A, "--quiet"])
        out = tmp_path / "profiles.json"
        runner.invoke(app, ["cached", "--output", str(out)])
        stored_id = json.loads(out.read_text(encoding="utf-8"))["profiles"][0]["id"]

        result = runner.invoke(app, ["forget", stored_id[:8]])
        assert result.exit_code == 0
        assert "Removed 1 profiles" in result.output
