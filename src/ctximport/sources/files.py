"""Local file importer: text, images and office documents.

Each upload is validated (size, MIME allow-list), classified into a file
kind and converted into one context item. A bad file is reported in the
result's ``errors`` and never stops its siblings.
"""

from __future__ import annotations

import base64
import json
import logging
import mimetypes
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, Field

from ctximport.core import detect
from ctximport.core.errors import ContextImportError, FileValidationError
from ctximport.core.preview import (
    collapse_whitespace,
    content_hash,
    dedupe_tags,
    make_preview,
)
from ctximport.core.schema import (
    FILE_DOCUMENT,
    FILE_IMAGE,
    FILE_TEXT,
    ConnectionStatus,
    ContextItem,
    ImportResult,
    SourceKind,
)
from ctximport.sources.base import load_config

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024

DEFAULT_ALLOWED_TYPES = [
    "text/plain",
    "text/markdown",
    "text/csv",
    "application/json",
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    # Many text files are reported with the generic type
    "application/octet-stream",
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
]

_ITEM_TYPES = {
    detect.FILE_TEXT: FILE_TEXT,
    detect.FILE_IMAGE: FILE_IMAGE,
    detect.FILE_DOCUMENT: FILE_DOCUMENT,
}

_MARKDOWN_HEADER_RE = re.compile(r"^(#{1,6})\s+(.+)$")


class FileUpload(BaseModel):
    name: str
    mime_type: str = ""
    data: bytes
    last_modified: datetime | None = None

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: Path | str) -> FileUpload:
        """Read a local file.

        The guessed MIME type is only kept when it is on the default
        allow-list. Guesses like text/x-python or application/yaml are reported
        as application/octet-stream so the extension table classifies them.
        """
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        if mime_type not in DEFAULT_ALLOWED_TYPES:
            mime_type = "application/octet-stream"
        stat = path.stat()
        return cls(
            name=path.name,
            mime_type=mime_type,
            data=path.read_bytes(),
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )


class FileImportOptions(BaseModel):
    max_file_size: int = Field(default=MAX_FILE_SIZE, gt=0)
    allowed_types: list[str] | None = Field(default_factory=lambda: list(DEFAULT_ALLOWED_TYPES))
    extract_metadata: bool = True


class FileImporter:
    """Turn uploaded files into context items."""

    source = SourceKind.file

    def __init__(self, options: FileImportOptions | Mapping[str, Any] | None = None):
        self.options = load_config(FileImportOptions, options, "file")

    async def search(self, params: Iterable[FileUpload] | None = None) -> ImportResult:
        items: list[ContextItem] = []
        errors: list[str] = []
        for upload in params or []:
            try:
                items.append(self.process(upload))
            except ContextImportError as e:
                logger.warning("Rejected file %s: %s", upload.name, e)
                errors.append(f"{upload.name}: {e}")
        return ImportResult(
            success=True,
            source=SourceKind.file,
            total=len(items),
            items=items,
            errors=errors,
            metadata={"processed": len(items), "rejected": len(errors)},
        )

    async def test_connection(self) -> ConnectionStatus:
        # Nothing remote to probe
        return ConnectionStatus(success=True, details={"max_file_size": self.options.max_file_size})

    def validate(self, upload: FileUpload) -> None:
        if upload.size > self.options.max_file_size:
            raise FileValidationError(f"File size exceeds limit: {upload.size} bytes")
        allowed = self.options.allowed_types
        if allowed is None:
            return
        mime = upload.mime_type or "application/octet-stream"
        if mime not in allowed:
            raise FileValidationError(f"File type not allowed: {mime}")

    def process(self, upload: FileUpload) -> ContextItem:
        self.validate(upload)
        kind = detect.resolve_file_kind(upload.mime_type, upload.name)
        return transform_file(upload, kind, extract_metadata=self.options.extract_metadata)


# -- Transformation --


def transform_file(upload: FileUpload, kind: str, extract_metadata: bool = True) -> ContextItem:
    """Build the item for an already-validated upload of the given kind."""
    if kind == detect.FILE_TEXT:
        content = text_content(upload)
        preview = collapse_whitespace(content["raw_text"]) or f"Empty file: {upload.name}"
    elif kind == detect.FILE_IMAGE:
        content = image_content(upload)
        preview = f"Image: {upload.name} ({upload.mime_type or 'unknown type'})"
    else:
        content = document_content(upload)
        preview = f"Document: {upload.name} (text extraction needed)"

    metadata: dict[str, Any] = {
        "source": "file",
        "filename": upload.name,
        "file_type": kind,
        "mime_type": upload.mime_type,
        "file_size": upload.size,
    }
    if extract_metadata:
        metadata["last_modified"] = upload.last_modified.isoformat() if upload.last_modified else None
        metadata["extension"] = detect.file_extension(upload.name) if "." in upload.name else ""

    tags = ["file", f"file-{kind}", content.get("content_type", kind)]
    if "." in upload.name:
        tags.append(f"ext-{detect.file_extension(upload.name)}")

    return ContextItem(
        id=f"file-{content_hash(upload.data)}",
        title=file_title(upload.name),
        description=f"{kind.capitalize()} file {upload.name}",
        content=content,
        metadata=metadata,
        source=SourceKind.file,
        type=_ITEM_TYPES[kind],
        preview=make_preview(preview),
        tags=dedupe_tags(tags),
        size_bytes=upload.size,
    )


def file_title(name: str) -> str:
    stem = re.sub(r"\.[^/.]+$", "", name)
    return f"File: {stem or name}"


def text_content(upload: FileUpload) -> dict:
    text = upload.data.decode("utf-8", errors="replace")
    if upload.mime_type == "application/json" or upload.name.lower().endswith(".json"):
        try:
            return {"raw_text": text, "parsed_json": json.loads(text), "content_type": "json"}
        except ValueError:
            return {"raw_text": text, "content_type": "text", "parse_error": "Invalid JSON format"}
    if upload.name.lower().endswith((".md", ".markdown")):
        return {"raw_text": text, "content_type": "markdown", "headers": markdown_headers(text)}
    return {"raw_text": text, "content_type": "text"}


def image_content(upload: FileUpload) -> dict:
    return {
        "filename": upload.name,
        "content_type": "image",
        "mime_type": upload.mime_type,
        "size": upload.size,
        "base64_data": base64.b64encode(upload.data).decode("ascii"),
    }


def document_content(upload: FileUpload) -> dict:
    return {
        "filename": upload.name,
        "content_type": "document",
        "mime_type": upload.mime_type,
        "size": upload.size,
        "extraction_needed": True,
        "note": "Document text extraction requires additional processing",
    }


def markdown_headers(text: str) -> list[dict]:
    headers = []
    for line in text.split("\n"):
        m = _MARKDOWN_HEADER_RE.match(line)
        if m:
            headers.append({"level": len(m.group(1)), "text": m.group(2).strip()})
    return headers
