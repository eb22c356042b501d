"""GitHub subcommands: search, test."""

from __future__ import annotations

import logging
from typing import Optional

import typer

from ctximport.cli._shared import FORMAT_OPTION, finish, get_importer, run
from ctximport.core.schema import SourceKind
from ctximport.queries.code_search import GRAB_REPO, CodeSearch
from ctximport.sources.github import detect_remote_url
from ctximport.utils.config import resolve_source_settings
from ctximport.utils.output import error, output, success

logger = logging.getLogger(__name__)

git_app = typer.Typer(no_args_is_help=True)

REPO_OPTION = typer.Option(None, "--repo-url", "-r", help="Defaults to REPO_URL or this clone's GitHub remote")
BRANCH_OPTION = typer.Option(None, "--branch", "-b")
TOKEN_OPTION = typer.Option(None, "--token", help="GitHub token (or GITHUB_TOKEN)")


def _overrides(repo_url: str | None, branch: str | None, token: str | None) -> dict:
    overrides = {"repo_url": repo_url, "default_branch": branch, "token": token}
    if repo_url is None and not resolve_source_settings("git").get("repo_url"):
        detected = detect_remote_url()
        if detected:
            logger.info("Using repository from git remote: %s", detected)
            overrides["repo_url"] = detected
    return overrides


@git_app.command("search")
def git_search(
    query: Optional[str] = typer.Argument(None, help="Raw code-search query"),
    path: Optional[str] = typer.Option(None, "--path"),
    filename: Optional[str] = typer.Option(None, "--filename"),
    extension: Optional[str] = typer.Option(None, "--extension", "-e"),
    content: Optional[str] = typer.Option(None, "--content"),
    grab: bool = typer.Option(False, "--grab", help="Reference the whole repository instead of searching"),
    repo_url: Optional[str] = REPO_OPTION,
    branch: Optional[str] = BRANCH_OPTION,
    token: Optional[str] = TOKEN_OPTION,
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Import documentation files matching a code search (default: docs and READMEs)."""
    search = CodeSearch(
        query=GRAB_REPO if grab else query,
        path=path,
        filename=filename,
        extension=extension,
        content=content,
    )
    importer = get_importer(SourceKind.git, _overrides(repo_url, branch, token))
    finish(run(importer.search(search)), fmt)


@git_app.command("test")
def git_test(
    repo_url: Optional[str] = REPO_OPTION,
    branch: Optional[str] = BRANCH_OPTION,
    token: Optional[str] = TOKEN_OPTION,
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Check that the repository is reachable."""
    importer = get_importer(SourceKind.git, _overrides(repo_url, branch, token))
    status = run(importer.test_connection())
    if fmt == "json":
        output(status, fmt="json")
    elif status.success:
        repo = status.details.get("repository", {})
        success(f"Found {repo.get('name')} ({repo.get('language') or 'unknown language'})")
    if not status.success:
        if fmt != "json":
            error(status.error or "connection failed")
        raise typer.Exit(1)
