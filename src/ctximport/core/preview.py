"""Helpers shared by the per-source transformers: previews, tags, sizes, ids."""

from __future__ import annotations

import hashlib
import json
import re
from datetime import datetime, timezone
from typing import Any, Iterable

PREVIEW_LIMIT = 200
_ELLIPSIS = "..."


def make_preview(text: str, limit: int = PREVIEW_LIMIT) -> str:
    """Return ``text`` unchanged if it fits, else cut it so the result ends in '...'.

    The result never exceeds ``limit`` characters.
    """
    text = text or ""
    if len(text) <= limit:
        return text
    return text[: limit - len(_ELLIPSIS)] + _ELLIPSIS


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def dedupe_tags(tags: Iterable[str]) -> list[str]:
    """Drop empty and repeated tags, keeping first-seen order."""
    seen: dict[str, None] = {}
    for tag in tags:
        if tag and tag not in seen:
            seen[tag] = None
    return list(seen)


def slug_tag(prefix: str, value: str) -> str:
    """Build a tag like 'status-in-progress' from a free-form value."""
    slug = re.sub(r"\s+", "-", value.strip().lower())
    return f"{prefix}-{slug}"


def serialized_size(raw: Any) -> int:
    """Byte size of the compact JSON form of a raw record."""
    if isinstance(raw, bytes):
        return len(raw)
    if isinstance(raw, str):
        return len(raw.encode("utf-8"))
    return len(json.dumps(raw, separators=(",", ":"), default=str).encode("utf-8"))


def content_hash(data: str | bytes, length: int = 16) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()[:length]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
