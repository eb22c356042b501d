"""Jira subcommands: search, bulk, test, templates."""

from __future__ import annotations

from typing import Optional

import typer
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

from ctximport.cli._shared import FORMAT_OPTION, finish, get_importer, run
from ctximport.core.schema import SourceKind
from ctximport.queries.jql import JiraFilter, build_jql, validate_jql
from ctximport.queries.templates import (
    CATEGORIES,
    JQL_TEMPLATES,
    popular_templates,
    search_templates,
    templates_by_category,
)
from ctximport.utils.output import error, output, output_table, success

jira_app = typer.Typer(no_args_is_help=True)

BASE_URL_OPTION = typer.Option(None, "--base-url", help="Jira site, e.g. https://acme.atlassian.net")
USERNAME_OPTION = typer.Option(None, "--username", "-u", help="Account email")
TOKEN_OPTION = typer.Option(None, "--token", help="API token (or JIRA_API_TOKEN)")


def _credentials(base_url: str | None, username: str | None, token: str | None) -> dict:
    return {"base_url": base_url, "username": username, "api_token": token}


@jira_app.command("search")
def jira_search(
    jql: Optional[str] = typer.Argument(None, help="Raw JQL; overrides the filter options"),
    assignee: Optional[str] = typer.Option(None, "--assignee", help="'currentUser()' or a name"),
    status: Optional[str] = typer.Option(None, "--status"),
    priority: Optional[str] = typer.Option(None, "--priority"),
    project: Optional[str] = typer.Option(None, "--project", "-p"),
    labels: Optional[list[str]] = typer.Option(None, "--label", "-l", help="Repeatable"),
    max_results: Optional[int] = typer.Option(None, "--max-results", "-n"),
    start_at: int = typer.Option(0, "--start-at"),
    base_url: Optional[str] = BASE_URL_OPTION,
    username: Optional[str] = USERNAME_OPTION,
    token: Optional[str] = TOKEN_OPTION,
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Search issues with a filter or raw JQL."""
    flt = JiraFilter(
        query=jql,
        assignee=assignee,
        status=status,
        priority=priority,
        project=project,
        labels=labels or [],
        max_results=max_results,
        start_at=start_at,
    )
    importer = get_importer(SourceKind.jira, _credentials(base_url, username, token))
    finish(run(importer.search(flt)), fmt)


@jira_app.command("bulk")
def jira_bulk(
    jql: Optional[str] = typer.Argument(None, help="Raw JQL (default: my open issues)"),
    limit: int = typer.Option(1000, "--max", help="Maximum issues to import"),
    batch_size: int = typer.Option(50, "--batch-size"),
    base_url: Optional[str] = BASE_URL_OPTION,
    username: Optional[str] = USERNAME_OPTION,
    token: Optional[str] = TOKEN_OPTION,
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Import every matching issue in sequential batches."""
    importer = get_importer(SourceKind.jira, _credentials(base_url, username, token))
    query = JiraFilter(query=jql) if jql else None

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        transient=True,
    ) as progress:
        task = progress.add_task("Importing issues", total=None)

        def on_progress(current: int, total: int) -> None:
            progress.update(task, completed=current, total=total)

        result = run(
            importer.bulk_import(query, max_results=limit, batch_size=batch_size, on_progress=on_progress)
        )
    finish(result, fmt)


@jira_app.command("test")
def jira_test(
    base_url: Optional[str] = BASE_URL_OPTION,
    username: Optional[str] = USERNAME_OPTION,
    token: Optional[str] = TOKEN_OPTION,
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Check credentials against /myself."""
    importer = get_importer(SourceKind.jira, _credentials(base_url, username, token))
    status = run(importer.test_connection())
    if fmt == "json":
        output(status, fmt="json")
    elif status.success:
        user = status.details.get("user", {})
        success(f"Connected as {user.get('displayName')} <{user.get('emailAddress')}>")
    if not status.success:
        if fmt != "json":
            error(status.error or "connection failed")
        raise typer.Exit(1)


@jira_app.command("templates")
def jira_templates(
    category: Optional[str] = typer.Option(None, "--category", "-c", help=f"One of: {', '.join(CATEGORIES)}"),
    text: Optional[str] = typer.Option(None, "--search", "-s", help="Match name or description"),
    popular: bool = typer.Option(False, "--popular", help="Only popular templates"),
    check: bool = typer.Option(False, "--check", help="Validate each template's JQL"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """List built-in JQL query templates."""
    if category and category not in CATEGORIES:
        error(f"Unknown category: {category}. Valid: {', '.join(CATEGORIES)}")
        raise typer.Exit(1)

    templates = templates_by_category(category) if category else list(JQL_TEMPLATES)
    if popular:
        keep = {t.id for t in popular_templates()}
        templates = [t for t in templates if t.id in keep]
    if text:
        keep = {t.id for t in search_templates(text)}
        templates = [t for t in templates if t.id in keep]

    rows = []
    for t in templates:
        row = {"id": t.id, "name": t.name, "category": t.category, "query": t.query}
        if check:
            row["valid"] = validate_jql(build_jql(JiraFilter(query=t.query))).valid
        rows.append(row)
    columns = ["id", "name", "category", "query"] + (["valid"] if check else [])
    output_table(rows, columns, fmt=fmt)
