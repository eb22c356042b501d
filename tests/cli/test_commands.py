"""Integration tests for CLI commands via typer.testing.CliRunner."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from ctximport.cli.main import app
from ctximport.core.schema import ConnectionStatus
from ctximport.sources.jira import JiraImporter

runner = CliRunner()


def _json(result):
    """Parse the JSON document in a command's output, skipping prompts and log lines before it."""
    lines = result.output.splitlines()
    for i, line in enumerate(lines):
        if line.strip() in ("{", "[", "{}", "[]"):
            return json.loads("\n".join(lines[i:]))
    raise AssertionError(f"no JSON in output: {result.output!r}")


class TestJira:
    def test_templates_by_category(self):
        result = runner.invoke(app, ["jira", "templates", "--category", "development", "--format", "json"])
        assert result.exit_code == 0
        rows = _json(result)
        assert rows
        assert all(row["category"] == "development" for row in rows)

    def test_templates_check_adds_column(self):
        result = runner.invoke(app, ["jira", "templates", "--popular", "--check", "--format", "json"])
        assert result.exit_code == 0
        assert all("valid" in row for row in _json(result))

    def test_unknown_category(self):
        result = runner.invoke(app, ["jira", "templates", "--category", "finance"])
        assert result.exit_code == 1

    def test_search_without_credentials(self):
        result = runner.invoke(app, ["jira", "search", "project = PROJ"])
        assert result.exit_code == 1

    def test_connection_uses_env_credentials(self, monkeypatch):
        monkeypatch.setenv("JIRA_BASE_URL", "https://acme.atlassian.net")
        monkeypatch.setenv("JIRA_USERNAME", "ann@acme.io")
        monkeypatch.setenv("JIRA_API_TOKEN", "secret")
        status = ConnectionStatus(success=True, details={"user": {"displayName": "Ann"}})
        with patch.object(JiraImporter, "test_connection", AsyncMock(return_value=status)):
            result = runner.invoke(app, ["jira", "test", "--format", "json"])
        assert result.exit_code == 0
        assert _json(result)["details"]["user"]["displayName"] == "Ann"

    def test_connection_failure_exits(self, monkeypatch):
        monkeypatch.setenv("JIRA_BASE_URL", "https://acme.atlassian.net")
        monkeypatch.setenv("JIRA_USERNAME", "ann@acme.io")
        status = ConnectionStatus(success=False, error="Authentication failed")
        with patch.object(JiraImporter, "test_connection", AsyncMock(return_value=status)):
            result = runner.invoke(app, ["jira", "test", "--token", "bad"])
        assert result.exit_code == 1


class TestGit:
    def test_grab_with_explicit_repo(self):
        result = runner.invoke(
            app,
            ["git", "search", "--grab", "--repo-url", "https://github.com/acme/widgets", "--format", "json"],
        )
        assert result.exit_code == 0
        data = _json(result)
        assert data["total"] == 1
        assert data["items"][0]["id"] == "repo-acme-widgets"

    def test_grab_uses_clone_remote(self, github_clone, monkeypatch):
        monkeypatch.chdir(github_clone)
        result = runner.invoke(app, ["git", "search", "--grab", "--format", "json"])
        assert result.exit_code == 0
        assert _json(result)["items"][0]["content"]["owner"] == "acme"

    def test_no_repo_configured(self, tmp_path, monkeypatch):
        plain = tmp_path / "plain"
        plain.mkdir()
        monkeypatch.chdir(plain)
        result = runner.invoke(app, ["git", "search", "--grab"])
        assert result.exit_code == 1


class TestEmail:
    def test_providers(self):
        result = runner.invoke(app, ["email", "providers", "--format", "json"])
        assert result.exit_code == 0
        rows = _json(result)
        assert [r["type"] for r in rows] == ["outlook", "gmail", "imap", "exchange"]
        assert rows[2]["auth"] == "password"


class TestText:
    def test_text_argument(self):
        result = runner.invoke(app, ["text", "# Notes\n\nbody", "--tag", "meeting", "--format", "json"])
        assert result.exit_code == 0
        data = _json(result)
        assert data["source"] == "text"
        assert data["items"][0]["title"] == "Notes"
        assert data["items"][0]["tags"] == ["text", "markdown", "meeting"]

    def test_text_from_stdin(self):
        result = runner.invoke(app, ["text", "--as", "plain", "--format", "json"], input="hello from stdin")
        assert result.exit_code == 0
        assert _json(result)["items"][0]["content"]["raw_text"] == "hello from stdin"

    def test_chunk_size_option(self):
        text = "\n".join(f"line {i}" for i in range(30))
        result = runner.invoke(app, ["text", text, "--chunk-size", "50", "--format", "json"])
        assert result.exit_code == 0
        assert _json(result)["total"] > 1

    def test_empty_text_fails(self):
        result = runner.invoke(app, ["text", "   ", "--format", "json"])
        assert result.exit_code == 1
        assert _json(result)["success"] is False

    def test_unknown_text_format(self):
        result = runner.invoke(app, ["text", "hi", "--as", "yaml"])
        assert result.exit_code == 1


class TestFile:
    def test_import_files(self, tmp_path):
        good = tmp_path / "notes.txt"
        good.write_text("hello")
        bad = tmp_path / "blob.bin"
        bad.write_bytes(b"\x00\x01")

        result = runner.invoke(app, ["file", str(good), str(bad), "--format", "json"])

        assert result.exit_code == 0
        data = _json(result)
        assert [i["title"] for i in data["items"]] == ["File: notes"]
        assert data["errors"][0].startswith("blob.bin:")

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["file", str(tmp_path / "nope.txt")])
        assert result.exit_code == 1


class TestExpand:
    @pytest.fixture
    def json_array(self, tmp_path):
        path = tmp_path / "people.json"
        path.write_text('[{"name": "Ann"}, {"name": "Bob"}, {"name": "Cy"}]')
        return path

    def test_json_array_split(self, json_array):
        result = runner.invoke(app, ["expand", str(json_array), "--yes", "--format", "json"])
        assert result.exit_code == 0
        data = _json(result)
        assert data["total"] == 3
        assert [i["metadata"]["entry_index"] for i in data["items"]] == [1, 2, 3]
        assert data["metadata"]["original_file"] == "people.json"

    def test_csv_split(self, tmp_path):
        path = tmp_path / "rows.csv"
        path.write_text("name,role\nAnn,dev\nBob,qa\n")
        result = runner.invoke(app, ["expand", str(path), "--yes", "--format", "json"])
        assert result.exit_code == 0
        data = _json(result)
        assert [i["metadata"]["row_number"] for i in data["items"]] == [1, 2]
        assert json.loads(data["items"][0]["content"]) == {"name": "Ann", "role": "dev"}

    def test_declined_keeps_original(self, json_array):
        result = runner.invoke(app, ["expand", str(json_array), "--format", "json"], input="n\n")
        assert result.exit_code == 0
        data = _json(result)
        assert data["total"] == 1
        assert data["items"][0]["content"]["content_type"] == "json"

    def test_nothing_to_split(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("just prose")
        result = runner.invoke(app, ["expand", str(path), "--yes", "--format", "json"])
        assert result.exit_code == 0
        assert _json(result)["total"] == 1
