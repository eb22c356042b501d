"""GitHub repository importer via the REST API.

Runs code search scoped to one repository, fetches the blob behind each of
the top hits and turns it into a context item. The GRAB_REPO sentinel
skips search and returns a single reference to the whole repository.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re
from pathlib import Path
from typing import Any, Mapping

import git
import httpx
from pydantic import BaseModel, Field, ValidationError

from ctximport.core.errors import ConfigError, ContextImportError, FieldError, RemoteAPIError
from ctximport.core.preview import content_hash, dedupe_tags, make_preview
from ctximport.core.schema import (
    GIT_FILE,
    GIT_REPOSITORY,
    ConnectionStatus,
    ContextItem,
    ImportResult,
    SourceKind,
)
from ctximport.queries.code_search import (
    GRAB_REPO,
    CodeSearch,
    build_code_query,
    coerce_search,
    is_grab_repo,
)
from ctximport.sources.base import load_config
from ctximport.sources.http import DEFAULT_TIMEOUT, RateLimit, client_session, get_json, int_field

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"

# Only the top hits get their content fetched
MAX_FILES = 10
# Content kept per file, in characters
CONTENT_LIMIT = 5000

BINARY_PLACEHOLDER = "[Binary file content]"

_HEADERS = {
    "Accept": "application/vnd.github.v3+json",
    "User-Agent": "context-import",
}

_REMOTE_RE = re.compile(r"github\.com[:/]([^/\s]+)/([^/\s]+?)(?:\.git)?(?:[/\s]|$)")

_PATH_TAGS = {
    "/docs/": "docs",
    "/api/": "api",
    "/config/": "config",
    "README": "readme",
    "CHANGELOG": "changelog",
}

_KEYWORD_TAGS = {
    "api": "api-docs",
    "install": "installation",
    "config": "configuration",
    "troubleshoot": "troubleshooting",
}


class GitHubConfig(BaseModel):
    repo_url: str = Field(min_length=1)
    default_branch: str = "main"
    token: str | None = None
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)


class GitHubImporter:
    """Import documentation and code files from one GitHub repository."""

    source = SourceKind.git

    def __init__(
        self,
        config: GitHubConfig | Mapping[str, Any],
        client: httpx.AsyncClient | None = None,
    ):
        self.config = load_config(GitHubConfig, config, "git")
        parsed = parse_github_url(self.config.repo_url)
        if parsed is None:
            raise ConfigError(
                "git",
                [FieldError("repo_url", f"not a GitHub repository URL: {self.config.repo_url}")],
            )
        self.owner, self.repo = parsed
        self.branch = self.config.default_branch
        self.rate_limit = RateLimit()
        self._client = client

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    async def search(
        self,
        params: str | CodeSearch | Mapping[str, Any] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ImportResult:
        query: str | None = None
        try:
            search = coerce_search(params)
            if is_grab_repo(search):
                return self.grab_repository()

            query = build_code_query(self.owner, self.repo, search)
            logger.info("GitHub query: %s", query)
            async with client_session(self._client) as client:
                data = await get_json(
                    client,
                    f"{API_URL}/search/code",
                    params={"q": query, "sort": "indexed", "order": "desc"},
                    headers=self._headers(),
                    timeout=self.config.timeout,
                    cancel=cancel,
                    rate_limit=self.rate_limit,
                )
                if not isinstance(data, dict):
                    raise RemoteAPIError(200, "code search response is not a JSON object")
                hits = data.get("items")
                items, errors = await self._fetch_files(client, hits if isinstance(hits, list) else [], cancel)
        except (ContextImportError, ValidationError) as e:
            logger.error("GitHub import failed: %s", e)
            return ImportResult.failed(SourceKind.git, str(e), query=query)

        total = int_field(data, "total_count", len(items))
        return ImportResult(
            success=True,
            source=SourceKind.git,
            query=query,
            total=total,
            items=items,
            errors=errors,
            metadata={
                "repository": self.full_name,
                "branch": self.branch,
                "total_files": total,
                "rate_limit_remaining": self.rate_limit.remaining,
            },
        )

    def grab_repository(self) -> ImportResult:
        """One synthetic item referencing the whole repository; nothing is fetched."""
        clone_url = f"https://github.com/{self.full_name}.git"
        ssh_url = f"git@github.com:{self.full_name}.git"
        item = ContextItem(
            id=f"repo-{self.owner}-{self.repo}",
            title=f"Repository: {self.full_name}",
            description=f"Complete repository clone/reference for {self.full_name}",
            content={
                "repo_url": self.config.repo_url,
                "clone_url": clone_url,
                "ssh_url": ssh_url,
                "owner": self.owner,
                "repo": self.repo,
                "branch": self.branch,
                "grab_type": "entire_repository",
            },
            metadata={
                "source": "git",
                "repo": self.full_name,
                "branch": self.branch,
                "clone_url": clone_url,
                "ssh_url": ssh_url,
                "grab_type": "entire_repository",
            },
            source=SourceKind.git,
            type=GIT_REPOSITORY,
            preview=f"Repository: {self.full_name} - Complete codebase for context",
            tags=["git", "repository", "full-clone", "context"],
            size_bytes=0,
        )
        return ImportResult(
            success=True,
            source=SourceKind.git,
            query=GRAB_REPO,
            total=1,
            items=[item],
            metadata={
                "repository": self.full_name,
                "branch": self.branch,
                "grab_type": "entire_repository",
            },
        )

    async def test_connection(self) -> ConnectionStatus:
        try:
            async with client_session(self._client) as client:
                repo = await get_json(
                    client,
                    f"{API_URL}/repos/{self.full_name}",
                    headers=self._headers(),
                    timeout=self.config.timeout,
                    rate_limit=self.rate_limit,
                )
        except ContextImportError as e:
            return ConnectionStatus(success=False, error=str(e))
        return ConnectionStatus(
            success=True,
            details={
                "repository": {
                    "name": repo.get("full_name"),
                    "description": repo.get("description"),
                    "language": repo.get("language"),
                    "stars": repo.get("stargazers_count"),
                    "url": repo.get("html_url"),
                }
            },
        )

    # -- Internal helpers --

    def _headers(self) -> dict[str, str]:
        headers = dict(_HEADERS)
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    async def _fetch_files(
        self,
        client: httpx.AsyncClient,
        hits: list[dict],
        cancel: asyncio.Event | None,
    ) -> tuple[list[ContextItem], list[str]]:
        """Fetch blobs one at a time; a file that fails is skipped, not fatal."""
        items: list[ContextItem] = []
        errors: list[str] = []
        for hit in hits[:MAX_FILES]:
            if not isinstance(hit, dict):
                errors.append(f"Skipped malformed search hit: {hit!r}")
                continue
            path = hit.get("path", "?")
            try:
                blob = await get_json(
                    client,
                    hit["url"],
                    headers=self._headers(),
                    timeout=self.config.timeout,
                    cancel=cancel,
                    rate_limit=self.rate_limit,
                )
                items.append(transform_blob(hit, blob, self.owner, self.repo, self.branch))
            except (ContextImportError, KeyError, TypeError, AttributeError) as e:
                logger.warning("Skipping %s: %s", path, e)
                errors.append(f"{path}: {e}")
        return items, errors


# -- Transformation --


def transform_blob(hit: dict, blob: dict, owner: str, repo: str, branch: str) -> ContextItem:
    """Convert a code-search hit plus its fetched blob into a context item."""
    path = hit["path"]
    content = decode_blob(blob)
    full_name = f"{owner}/{repo}"
    size = blob.get("size") or len(content)
    details = {
        "repo": full_name,
        "branch": branch,
        "path": path,
        "sha": hit.get("sha"),
        "size": blob.get("size"),
        "html_url": hit.get("html_url"),
        "raw_url": blob.get("download_url"),
    }
    return ContextItem(
        id=f"git-{content_hash(f'{full_name}:{branch}:{path}', 12)}",
        title=f"{hit.get('name', path)} ({path})",
        description=f"File from {full_name} repository",
        content={"name": hit.get("name"), "content": content[:CONTENT_LIMIT], **details},
        metadata={"source": "git", **details, "truncated": len(content) > CONTENT_LIMIT},
        source=SourceKind.git,
        type=GIT_FILE,
        preview=file_preview(content, path),
        tags=file_tags(path, content),
        size_bytes=size,
    )


def decode_blob(blob: dict) -> str:
    """Decode base64 blob content; undecodable or non-UTF-8 data gets a placeholder."""
    raw = blob.get("content")
    if not raw or blob.get("encoding") != "base64":
        return raw or ""
    try:
        return base64.b64decode(raw).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return BINARY_PLACEHOLDER


def file_preview(content: str, path: str) -> str:
    if not content:
        return make_preview(f"File: {path}")
    text = re.sub(r"```[\s\S]*?```", "[code block]", content)
    text = re.sub(r"#{1,6}\s*", "", text)
    text = re.sub(r"\n+", " ", text).strip()
    return make_preview(text or f"Documentation file: {path}")


def file_tags(path: str, content: str) -> list[str]:
    tags = ["git", "documentation"]
    tags.extend(tag for marker, tag in _PATH_TAGS.items() if marker in path)
    if "." in path:
        tags.append(f"ext-{path.rsplit('.', 1)[1].lower()}")
    lowered = content.lower()
    tags.extend(tag for keyword, tag in _KEYWORD_TAGS.items() if keyword in lowered)
    return dedupe_tags(tags)


def parse_github_url(url: str) -> tuple[str, str] | None:
    """Extract (owner, repo) from an HTTPS or SSH GitHub URL.

    Handles:
      git@github.com:owner/repo.git
      https://github.com/owner/repo.git
      https://github.com/owner/repo
    """
    m = _REMOTE_RE.search(url.strip() + " ")
    if not m:
        return None
    return m.group(1), m.group(2)


def detect_remote_url(path: Path | None = None, remote: str = "origin") -> str | None:
    """Return the GitHub URL of a local clone's remote, if there is one."""
    try:
        repo = git.Repo(path or Path.cwd(), search_parent_directories=True)
    except (git.InvalidGitRepositoryError, git.NoSuchPathError):
        return None
    names = [remote] + [r.name for r in repo.remotes if r.name != remote]
    for name in names:
        try:
            urls = list(repo.remote(name).urls)
        except ValueError:
            continue
        for url in urls:
            if parse_github_url(url):
                return url
    return None
