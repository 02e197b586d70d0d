"""Tests for the email-assistant CLI."""

import json

import pytest
from typer.testing import CliRunner

from email_assistant import __version__
from email_assistant.cli import app
from email_assistant.config import get_settings

runner = CliRunner()


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    monkeypatch.setenv("EMAIL_ASSISTANT_API_TOKEN", "supersecrettoken")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestCli:
    """Tests for CLI commands."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"email-assistant {__version__}" in result.output

    def test_config_json_masks_token(self):
        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["api_token"] == "supe***"
        assert "supersecrettoken" not in result.output

    def test_config_table(self):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "grace_period_seconds" in result.output

    def test_config_json_lists_every_setting(self):
        result = runner.invoke(app, ["config", "--json"])
        assert set(json.loads(result.output)) == {
            "api_url", "api_token", "request_timeout", "grace_period_seconds",
            "check_interval_hours", "host", "port", "cors_origins", "log_level",
        }
