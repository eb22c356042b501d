"""Pydantic v2 models shared by every importer: context items and results."""

from __future__ import annotations

from enum import Enum
from typing import Any, Awaitable, Callable, Union

from pydantic import BaseModel, Field, field_validator

from ctximport.core.preview import dedupe_tags, utc_now_iso


class SourceKind(str, Enum):
    jira = "jira"
    git = "git"
    email = "email"
    file = "file"
    text = "text"


# Source-qualified item subtypes
JIRA_TICKET = "jira_ticket"
GIT_FILE = "git_file"
GIT_REPOSITORY = "git_repository"
EMAIL_MESSAGE = "email_message"
EMAIL_THREAD = "email_thread"
FILE_TEXT = "file_text"
FILE_IMAGE = "file_image"
FILE_DOCUMENT = "file_document"
TEXT_SNIPPET = "text_snippet"


ProgressCallback = Callable[[int, int], Union[None, Awaitable[None]]]


class ContextItem(BaseModel):
    """The canonical unit every source converges to.

    An item carries everything needed to store or display it without going
    back to the source: ``content`` is the source-native payload and must
    stay JSON-serializable.
    """

    id: str
    title: str
    description: str = ""
    content: Any = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    source: SourceKind
    type: str
    preview: str = ""
    tags: list[str] = Field(default_factory=list)
    added_at: str = Field(default_factory=utc_now_iso)
    size_bytes: int = 0

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, value: list[str]) -> list[str]:
        return dedupe_tags(value)

    @field_validator("preview")
    @classmethod
    def _bounded_preview(cls, value: str) -> str:
        if len(value) > 200:
            raise ValueError("preview must be at most 200 characters")
        return value


class ImportResult(BaseModel):
    """Outcome of one import call.

    ``success=False`` does not mean ``items`` is empty: partial results from
    an interrupted bulk import are kept. Per-item failures that did not stop
    the import land in ``errors``.
    """

    success: bool
    source: SourceKind
    query: str | None = None
    total: int = 0
    items: list[ContextItem] = Field(default_factory=list)
    error: str | None = None
    errors: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def failed(
        cls,
        source: SourceKind,
        message: str,
        *,
        query: str | None = None,
        items: list[ContextItem] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ImportResult:
        items = items or []
        return cls(
            success=False,
            source=source,
            query=query,
            total=len(items),
            items=items,
            error=message,
            metadata=metadata or {},
        )


class ConnectionStatus(BaseModel):
    """Result of a read-only connectivity probe."""

    success: bool
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
