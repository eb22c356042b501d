"""Shared fixtures: temp git repos, isolated config, fake HTTP transports."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

import git
import httpx
import pytest

from ctximport.core.schema import ContextItem, SourceKind


@pytest.fixture
def tmp_git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository."""
    repo = git.Repo.init(tmp_path)
    # Need at least one commit for HEAD to be valid
    readme = tmp_path / "README.md"
    readme.write_text("# Test\n")
    repo.index.add(["README.md"])
    repo.index.commit("initial")
    return tmp_path


@pytest.fixture
def github_clone(tmp_git_repo: Path) -> Path:
    """Git repo whose origin points at GitHub."""
    repo = git.Repo(tmp_git_repo)
    repo.create_remote("origin", "git@github.com:acme/widgets.git")
    return tmp_git_repo


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep ~/.config writes and credential env vars out of the tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setattr(Path, "home", lambda: home)
    for var in ("JIRA_BASE_URL", "JIRA_USERNAME", "JIRA_API_TOKEN", "GITHUB_TOKEN", "REPO_URL", "DEFAULT_BRANCH"):
        monkeypatch.delenv(var, raising=False)
    return home


class RecordingTransport:
    """httpx.MockTransport wrapper that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        self.transport = httpx.MockTransport(record)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport)


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], RecordingTransport]:
    return RecordingTransport


@pytest.fixture
def json_response() -> Callable[..., httpx.Response]:
    def _respond(data, status: int = 200, headers: dict | None = None) -> httpx.Response:
        return httpx.Response(
            status,
            content=json.dumps(data),
            headers={"Content-Type": "application/json", **(headers or {})},
        )

    return _respond


@pytest.fixture
def make_item() -> Callable[..., ContextItem]:
    def _make(content="", title="Sample", item_id="item-1", **metadata) -> ContextItem:
        return ContextItem(
            id=item_id,
            title=title,
            content=content,
            metadata=metadata,
            source=SourceKind.file,
            type="file_text",
            tags=["file"],
        )

    return _make
