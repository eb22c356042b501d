"""Tests for context-import config subcommands."""

import json

from typer.testing import CliRunner

from ctximport.cli.main import app
from ctximport.utils.config import load_global_config

runner = CliRunner()


class TestConfigSetGet:
    def test_set_and_get(self):
        result = runner.invoke(app, ["config", "set", "jira.base_url", "https://acme.atlassian.net"])
        assert result.exit_code == 0

        result = runner.invoke(app, ["config", "get", "jira.base_url", "--format", "text"])
        assert result.exit_code == 0
        assert "https://acme.atlassian.net" in result.output

    def test_set_and_get_json(self):
        runner.invoke(app, ["config", "set", "jira.max_results", "40"])
        result = runner.invoke(app, ["config", "get", "jira.max_results", "--format", "json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data == {"key": "jira.max_results", "value": 40}

    def test_value_typed_on_disk(self):
        runner.invoke(app, ["config", "set", "email.process_threads", "off"])
        assert load_global_config() == {"email": {"process_threads": False}}

    def test_secret_masked(self):
        runner.invoke(app, ["config", "set", "git.token", "ghp_secret"])
        result = runner.invoke(app, ["config", "get", "git.token", "--format", "json"])
        assert json.loads(result.output)["value"] == "********"
        assert load_global_config()["git"]["token"] == "ghp_secret"

    def test_unset_key(self):
        result = runner.invoke(app, ["config", "get", "git.default_branch", "--format", "json"])
        assert result.exit_code == 0
        assert json.loads(result.output)["value"] is None

    def test_invalid_key(self):
        result = runner.invoke(app, ["config", "set", "nonexistent", "value"])
        assert result.exit_code == 1

    def test_invalid_value(self):
        result = runner.invoke(app, ["config", "set", "text.chunk_size", "big"])
        assert result.exit_code == 1
        assert load_global_config() == {}


class TestConfigList:
    def test_list_json(self):
        runner.invoke(app, ["config", "set", "jira.username", "ann@acme.io"])
        runner.invoke(app, ["config", "set", "jira.api_token", "t0ken"])
        result = runner.invoke(app, ["config", "list", "--format", "json"])
        assert result.exit_code == 0
        assert json.loads(result.output) == {"jira.username": "ann@acme.io", "jira.api_token": "********"}

    def test_list_empty(self):
        result = runner.invoke(app, ["config", "list", "--format", "text"])
        assert result.exit_code == 0
        assert "No configuration set" in result.output
