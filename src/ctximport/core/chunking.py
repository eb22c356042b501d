"""Line-preserving chunker and structured-data (JSON array / CSV) expander.

The chunker is applied automatically to oversized text. Structured
expansion is opt-in: callers check ``offers_split`` and only call
``expand_structured`` once the user has confirmed.
"""

from __future__ import annotations

import csv
import json
import logging
from typing import Any

from ctximport.core.preview import dedupe_tags, make_preview, serialized_size
from ctximport.core.schema import ContextItem

logger = logging.getLogger(__name__)


# -- Line chunker --


def split_lines(text: str, chunk_size: int) -> list[str]:
    """Greedily pack whole lines into chunks of at most ``chunk_size`` chars.

    A line is never split: a single line longer than ``chunk_size`` becomes
    its own oversized chunk. Chunks are not stripped, so
    ``"\\n".join(split_lines(text, n)) == text``.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if not text:
        return []

    chunks: list[str] = []
    current: list[str] = []
    current_len = 0
    for line in text.split("\n"):
        if current and current_len + 1 + len(line) > chunk_size:
            chunks.append("\n".join(current))
            current = [line]
            current_len = len(line)
        else:
            current_len += len(line) + (1 if current else 0)
            current.append(line)
    if current:
        chunks.append("\n".join(current))
    return chunks


def count_words(text: str) -> int:
    return len(text.split())


def chunk_item(item: ContextItem, text: str, chunk_size: int) -> list[ContextItem]:
    """Split ``item`` into ordered part items, one per line-aligned chunk of ``text``.

    When ``item.content`` is a mapping its ``raw_text`` is replaced by the
    chunk; otherwise the chunk becomes the content.
    """
    chunks = split_lines(text, chunk_size)
    total = len(chunks)
    parts: list[ContextItem] = []
    for i, chunk in enumerate(chunks, 1):
        if isinstance(item.content, dict):
            content: Any = {**item.content, "raw_text": chunk}
        else:
            content = chunk
        metadata = {
            **item.metadata,
            "chunk_index": i - 1,
            "total_chunks": total,
            "character_count": len(chunk),
            "word_count": count_words(chunk),
            "line_count": chunk.count("\n") + 1,
        }
        parts.append(
            item.model_copy(
                update={
                    "id": f"{item.id}-part-{i}",
                    "title": f"{item.title} (Part {i}/{total})",
                    "content": content,
                    "metadata": metadata,
                    "preview": make_preview(" ".join(chunk.split())),
                    "tags": dedupe_tags([*item.tags, "chunk", f"part-{i}"]),
                    "size_bytes": serialized_size(chunk),
                },
                deep=True,
            )
        )
    logger.debug("Split %s into %d chunks", item.id, total)
    return parts


# -- Structured-data expansion --


def _text_of(item: ContextItem) -> str | None:
    content = item.content
    if isinstance(content, str):
        return content
    if isinstance(content, dict) and isinstance(content.get("raw_text"), str):
        return content["raw_text"]
    return None


def _non_blank_lines(text: str) -> list[str]:
    return [line for line in text.split("\n") if line.strip()]


def offers_split(item: ContextItem) -> bool:
    """True when the item holds a JSON array of 2+ entries or a CSV with 2+ data rows."""
    text = _text_of(item)
    if text is None:
        return False
    if text.strip().startswith("["):
        try:
            parsed = json.loads(text)
        except ValueError:
            return False
        return isinstance(parsed, list) and len(parsed) > 1
    lines = _non_blank_lines(text)
    return len(lines) > 2 and "," in lines[0]


def expand_structured(item: ContextItem) -> list[ContextItem]:
    """Expand a JSON array or CSV item into one item per record.

    Returns an empty list when the content is not structured data or cannot
    be parsed; the caller then keeps the original item.
    """
    text = _text_of(item)
    if text is None:
        return []
    if text.strip().startswith("["):
        return expand_json_array(item, text)
    if "\n" in text:
        return expand_csv(item, text)
    return []


def _provenance(item: ContextItem) -> Any:
    return item.metadata.get("filename") or item.metadata.get("original_file") or item.title


def _entry_preview(entry: Any) -> str:
    if isinstance(entry, dict):
        pairs = [f"{key}: {entry[key]}" for key in list(entry)[:3]]
        return make_preview(", ".join(pairs))
    return make_preview(str(entry)[:100])


def expand_json_array(item: ContextItem, text: str) -> list[ContextItem]:
    try:
        parsed = json.loads(text)
    except ValueError as e:
        logger.warning("Cannot expand %s: invalid JSON (%s)", item.id, e)
        return []
    if not isinstance(parsed, list):
        return []

    total = len(parsed)
    expanded: list[ContextItem] = []
    for i, entry in enumerate(parsed, 1):
        if isinstance(entry, (dict, list)):
            content = json.dumps(entry, indent=2)
        else:
            content = str(entry)
        expanded.append(
            item.model_copy(
                update={
                    "id": f"{item.id}-{i}",
                    "title": f"{item.title} - Entry {i}",
                    "content": content,
                    "preview": _entry_preview(entry),
                    "metadata": {
                        **item.metadata,
                        "original_file": _provenance(item),
                        "entry_index": i,
                        "total_entries": total,
                    },
                    "size_bytes": serialized_size(entry),
                },
                deep=True,
            )
        )
    return expanded


def expand_csv(item: ContextItem, text: str) -> list[ContextItem]:
    lines = _non_blank_lines(text)
    if len(lines) < 2:
        return []
    try:
        rows = list(csv.reader(lines, skipinitialspace=True))
    except csv.Error as e:
        logger.warning("Cannot expand %s: invalid CSV (%s)", item.id, e)
        return []

    headers = [h.strip() for h in rows[0]]
    data_rows = rows[1:]
    total = len(data_rows)
    expanded: list[ContextItem] = []
    for i, values in enumerate(data_rows, 1):
        values = [v.strip() for v in values]
        record = {
            header: values[idx] if idx < len(values) else ""
            for idx, header in enumerate(headers)
        }
        expanded.append(
            item.model_copy(
                update={
                    "id": f"{item.id}-row-{i}",
                    "title": f"{item.title} - Row {i}",
                    "content": json.dumps(record, indent=2),
                    "preview": make_preview(", ".join(values[:3])),
                    "metadata": {
                        **item.metadata,
                        "original_file": _provenance(item),
                        "row_number": i,
                        "total_rows": total,
                    },
                    "size_bytes": serialized_size(record),
                },
                deep=True,
            )
        )
    return expanded
