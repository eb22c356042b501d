"""Jira issue importer over the REST API v3.

Builds and validates JQL, pages through /rest/api/3/search and turns each
issue (with its attachment metadata) into a context item. Bulk mode walks
the result set batch by batch and keeps whatever it has collected when a
batch fails.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
from typing import Any, Mapping

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator

from ctximport.core.errors import ContextImportError
from ctximport.core.preview import (
    collapse_whitespace,
    dedupe_tags,
    make_preview,
    serialized_size,
    slug_tag,
)
from ctximport.core.schema import (
    JIRA_TICKET,
    ConnectionStatus,
    ContextItem,
    ImportResult,
    ProgressCallback,
    SourceKind,
)
from ctximport.queries.jql import JiraFilter, build_jql, coerce_filter, ensure_valid_jql
from ctximport.sources.base import load_config
from ctximport.sources.http import DEFAULT_TIMEOUT, client_session, get_json, int_field

logger = logging.getLogger(__name__)

# Fields requested from the search endpoint; keeps payloads bounded
DEFAULT_FIELDS = "key,summary,description,status,priority,assignee,created,updated,labels,attachment"

DEFAULT_BATCH_SIZE = 50
DEFAULT_BULK_LIMIT = 1000

_JIRA_MARKUP_RE = re.compile(r"\{[^}]*\}")


class JiraConfig(BaseModel):
    base_url: str = Field(min_length=1)
    username: str = Field(min_length=1)
    api_token: str = Field(min_length=1)
    max_results: int = Field(default=20, ge=1, le=1000)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    fields: str = DEFAULT_FIELDS

    @field_validator("base_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("must start with http:// or https://")
        return value


class JiraImporter:
    """Search Jira and normalize issues into context items."""

    source = SourceKind.jira

    def __init__(
        self,
        config: JiraConfig | Mapping[str, Any],
        client: httpx.AsyncClient | None = None,
    ):
        self.config = load_config(JiraConfig, config, "jira")
        self._client = client
        self._auth = httpx.BasicAuth(self.config.username, self.config.api_token)

    async def search(
        self,
        params: str | JiraFilter | Mapping[str, Any] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ImportResult:
        """Run one page of a JQL search."""
        jql: str | None = None
        try:
            flt = coerce_filter(params)
            jql = ensure_valid_jql(build_jql(flt))
            logger.info("Jira query: %s", jql)
            max_results = flt.max_results or self.config.max_results

            async with client_session(self._client) as client:
                data = await self._fetch_page(client, jql, flt.start_at, max_results, cancel)
        except (ContextImportError, ValidationError) as e:
            logger.error("Jira import failed: %s", e)
            return ImportResult.failed(SourceKind.jira, str(e), query=jql)

        issues = _issue_list(data)
        items, errors = self._transform_all(issues)
        total = int_field(data, "total", len(issues))
        start_at = int_field(data, "startAt", flt.start_at)
        return ImportResult(
            success=True,
            source=SourceKind.jira,
            query=jql,
            total=total,
            items=items,
            errors=errors,
            metadata={
                "maxResults": data.get("maxResults", max_results),
                "startAt": start_at,
                "isLast": start_at + len(issues) >= total,
            },
        )

    async def bulk_import(
        self,
        query: str | JiraFilter | Mapping[str, Any] | None = None,
        max_results: int = DEFAULT_BULK_LIMIT,
        batch_size: int = DEFAULT_BATCH_SIZE,
        on_progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ImportResult:
        """Fetch up to ``max_results`` issues in sequential batches.

        Batches are requested in increasing startAt order and the next one
        starts only after ``on_progress(current, total)`` has returned. A
        failing batch ends the loop; everything accumulated so far is
        returned with success=False.
        """
        accumulated: list[ContextItem] = []
        errors: list[str] = []
        start_at = 0
        total_results = 0
        batches = 0
        jql: str | None = None
        try:
            jql = ensure_valid_jql(build_jql(query))
            logger.info("Jira bulk import (max %d, batch %d): %s", max_results, batch_size, jql)
            async with client_session(self._client) as client:
                while len(accumulated) < max_results:
                    remaining = max_results - len(accumulated)
                    page = await self._fetch_page(
                        client, jql, start_at, min(batch_size, remaining), cancel
                    )
                    batches += 1
                    issues = _issue_list(page)
                    total_results = int_field(page, "total", start_at + len(issues))

                    items, batch_errors = self._transform_all(issues)
                    accumulated.extend(items[:remaining])
                    errors.extend(batch_errors)
                    start_at += len(issues)

                    await _notify(on_progress, len(accumulated), min(total_results, max_results))
                    if not issues or start_at >= total_results:
                        break
        except (ContextImportError, ValidationError) as e:
            logger.error(
                "Jira bulk import stopped after %d batches (%d items kept): %s",
                batches, len(accumulated), e,
            )
            result = ImportResult.failed(
                SourceKind.jira,
                str(e),
                query=jql,
                items=accumulated,
                metadata={"startAt": start_at, "totalResults": total_results, "batches": batches},
            )
            result.errors = errors
            return result

        return ImportResult(
            success=True,
            source=SourceKind.jira,
            query=jql,
            total=len(accumulated),
            items=accumulated,
            errors=errors,
            metadata={
                "startAt": start_at,
                "totalResults": total_results,
                "batches": batches,
                "isLast": start_at >= total_results,
            },
        )

    async def test_connection(self) -> ConnectionStatus:
        try:
            async with client_session(self._client) as client:
                user = await get_json(
                    client,
                    f"{self.config.base_url}/rest/api/3/myself",
                    headers={"Accept": "application/json"},
                    auth=self._auth,
                    timeout=self.config.timeout,
                )
        except ContextImportError as e:
            return ConnectionStatus(success=False, error=f"Connection failed: {e}")
        return ConnectionStatus(
            success=True,
            details={
                "user": {
                    "displayName": user.get("displayName"),
                    "emailAddress": user.get("emailAddress"),
                    "accountId": user.get("accountId"),
                }
            },
        )

    # -- Internal helpers --

    async def _fetch_page(
        self,
        client: httpx.AsyncClient,
        jql: str,
        start_at: int,
        max_results: int,
        cancel: asyncio.Event | None,
    ) -> dict:
        data = await get_json(
            client,
            f"{self.config.base_url}/rest/api/3/search",
            params={
                "jql": jql,
                "startAt": start_at,
                "maxResults": max_results,
                "fields": self.config.fields,
            },
            headers={"Accept": "application/json"},
            auth=self._auth,
            timeout=self.config.timeout,
            cancel=cancel,
        )
        return data if isinstance(data, dict) else {}

    def _transform_all(self, issues: list[dict]) -> tuple[list[ContextItem], list[str]]:
        items: list[ContextItem] = []
        errors: list[str] = []
        for issue in issues:
            try:
                items.append(transform_issue(issue, self.config.base_url))
            except (KeyError, TypeError, AttributeError, ValueError) as e:
                key = issue.get("key", "?") if isinstance(issue, dict) else "?"
                logger.warning("Skipping Jira issue %s: %s", key, e)
                errors.append(f"{key}: {e}")
        return items, errors


def _issue_list(page: dict) -> list[dict]:
    issues = page.get("issues")
    return issues if isinstance(issues, list) else []


async def _notify(callback: ProgressCallback | None, current: int, total: int) -> None:
    """Run the progress callback; anything it raises stops the bulk loop as a pipeline error."""
    if callback is None:
        return
    try:
        outcome = callback(current, total)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception as e:
        raise ContextImportError(f"Progress callback failed: {e}") from e


# -- Transformation --


def transform_issue(issue: dict, base_url: str) -> ContextItem:
    """Convert one raw Jira issue into a context item."""
    key = issue["key"]
    fields = issue.get("fields") or {}
    summary = fields.get("summary") or ""
    description = description_text(fields.get("description"))
    status = _name(fields.get("status"))
    priority = _name(fields.get("priority"))
    assignee = (fields.get("assignee") or {}).get("displayName")
    labels = fields.get("labels") or []
    attachments = [attachment_metadata(a) for a in fields.get("attachment") or []]

    return ContextItem(
        id=key,
        title=f"{key}: {summary}",
        description=description or summary,
        content={
            "key": key,
            "summary": summary,
            "description": description,
            "status": status,
            "priority": priority,
            "assignee": assignee,
            "created": fields.get("created"),
            "updated": fields.get("updated"),
            "labels": labels,
            "attachments": attachments,
            "raw": issue,
        },
        metadata={
            "source": "jira",
            "ticket_id": key,
            "jira_url": f"{base_url}/browse/{key}",
            "priority": priority,
            "status": status,
            "assignee": assignee or "Unassigned",
            "created": fields.get("created"),
            "updated": fields.get("updated"),
            "labels": labels,
            "has_attachments": bool(attachments),
            "attachment_count": len(attachments),
        },
        source=SourceKind.jira,
        type=JIRA_TICKET,
        preview=issue_preview(summary, description),
        tags=issue_tags(priority, status, labels, bool(attachments)),
        size_bytes=serialized_size(issue),
    )


def description_text(description: Any) -> str:
    """Plain text of a description, flattening Atlassian Document Format if needed."""
    if description is None:
        return ""
    if isinstance(description, str):
        return description
    if isinstance(description, dict):
        parts: list[str] = []
        _collect_adf_text(description, parts)
        return "\n".join(p for p in parts if p).strip()
    return str(description)


def _collect_adf_text(node: dict, parts: list[str]) -> None:
    if node.get("type") == "text":
        if parts:
            parts[-1] += node.get("text", "")
        else:
            parts.append(node.get("text", ""))
        return
    if node.get("type") in ("paragraph", "heading", "listItem", "codeBlock"):
        parts.append("")
    for child in node.get("content") or []:
        if isinstance(child, dict):
            _collect_adf_text(child, parts)


def attachment_metadata(attachment: dict) -> dict:
    return {
        "id": attachment.get("id"),
        "filename": attachment.get("filename"),
        "mime_type": attachment.get("mimeType"),
        "size": attachment.get("size", 0),
        "url": attachment.get("content"),
        "created": attachment.get("created"),
        "author": (attachment.get("author") or {}).get("displayName"),
    }


def issue_preview(summary: str, description: str) -> str:
    preview = summary or "No summary"
    # Drop wiki markup like {code} / {noformat} before summarizing
    cleaned = collapse_whitespace(_JIRA_MARKUP_RE.sub("", description))
    if cleaned:
        preview += ": " + cleaned
    return make_preview(preview)


def issue_tags(
    priority: str | None, status: str | None, labels: list[str], has_attachments: bool
) -> list[str]:
    tags = ["jira"]
    if priority:
        tags.append(slug_tag("priority", priority))
    if status:
        tags.append(slug_tag("status", status))
    tags.extend(f"label-{label.lower()}" for label in labels)
    if has_attachments:
        tags.append("has-attachments")
    return dedupe_tags(tags)


def _name(obj: Any) -> str | None:
    if isinstance(obj, dict):
        return obj.get("name")
    return None
