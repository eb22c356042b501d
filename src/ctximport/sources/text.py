"""Direct text importer: pasted notes, markdown, JSON or code snippets.

The format is given or detected, a format-specific analyser extracts
structure (headers, links, functions, JSON shape...) and text longer than
``chunk_size`` is split into line-aligned parts.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field, ValidationError

from ctximport.core.chunking import chunk_item, count_words
from ctximport.core.detect import detect_format, detect_language
from ctximport.core.errors import ContextImportError, QueryValidationError
from ctximport.core.preview import collapse_whitespace, content_hash, make_preview, serialized_size
from ctximport.core.schema import TEXT_SNIPPET, ConnectionStatus, ContextItem, ImportResult, SourceKind
from ctximport.sources.base import load_config
from ctximport.sources.files import markdown_headers

logger = logging.getLogger(__name__)

TextFormat = Literal["plain", "markdown", "json", "code", "auto"]

FORMAT_DESCRIPTIONS = {
    "plain": "Plain text content imported directly",
    "markdown": "Markdown document with formatting and structure",
    "json": "JSON data structure with parsed content",
    "code": "Code snippet with syntax analysis",
}

_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_CODE_BLOCK_RE = re.compile(r"```(\w+)?\n([\s\S]*?)```")
_FUNCTION_RES = [
    re.compile(r"function\s+(\w+)"),
    re.compile(r"def\s+(\w+)"),
    re.compile(r"const\s+(\w+)\s*=\s*\("),
    re.compile(r"(\w+)\s*:\s*\("),
]
_IMPORT_RES = [
    re.compile(r"import\s+.*from\s+['\"](.*)['\"]"),
    re.compile(r"import\s+['\"](.*)['\"];"),
    re.compile(r"from\s+(\w+)\s+import"),
    re.compile(r"#include\s+<(.*)>"),
]

TITLE_LIMIT = 50


class TextInput(BaseModel):
    content: str
    title: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    format: TextFormat | None = None


class TextImportOptions(BaseModel):
    max_length: int = Field(default=1_000_000, gt=0)
    auto_detect_format: bool = True
    split_long_text: bool = True
    chunk_size: int = Field(default=50_000, gt=0)


class TextImporter:
    source = SourceKind.text

    def __init__(self, options: TextImportOptions | Mapping[str, Any] | None = None):
        self.options = load_config(TextImportOptions, options, "text")

    async def search(self, params: TextInput | Mapping[str, Any] | str | None = None) -> ImportResult:
        try:
            text_input = _coerce_input(params)
            self.validate(text_input)
            fmt = self.resolve_format(text_input)
            items = self.build_items(text_input, fmt)
        except (ContextImportError, ValidationError) as e:
            logger.error("Text import failed: %s", e)
            return ImportResult.failed(SourceKind.text, f"Text import failed: {e}")

        return ImportResult(
            success=True,
            source=SourceKind.text,
            total=len(items),
            items=items,
            metadata={
                "input_length": len(text_input.content),
                "format": fmt,
                "chunks": len(items),
            },
        )

    async def test_connection(self) -> ConnectionStatus:
        return ConnectionStatus(success=True)

    def validate(self, text_input: TextInput) -> None:
        if not text_input.content.strip():
            raise QueryValidationError(["Text content cannot be empty"])
        if len(text_input.content) > self.options.max_length:
            raise QueryValidationError(
                [f"Text exceeds maximum length: {len(text_input.content)} characters"]
            )

    def resolve_format(self, text_input: TextInput) -> str:
        fmt = text_input.format
        if fmt is None:
            fmt = "auto" if self.options.auto_detect_format else "plain"
        if fmt == "auto":
            return detect_format(text_input.content)
        return fmt

    def build_items(self, text_input: TextInput, fmt: str) -> list[ContextItem]:
        text = text_input.content
        item = ContextItem(
            id=f"text-{content_hash(text)}",
            title=text_input.title or generate_title(text, fmt),
            description=text_input.description or FORMAT_DESCRIPTIONS.get(fmt, ""),
            content=analyse(text, fmt),
            metadata={
                "source": "text",
                "format": fmt,
                "input_type": "direct_text",
                "character_count": len(text),
                "word_count": count_words(text),
                "line_count": text.count("\n") + 1,
            },
            source=SourceKind.text,
            type=TEXT_SNIPPET,
            preview=make_preview(collapse_whitespace(text)),
            tags=["text", fmt, *text_input.tags],
            size_bytes=serialized_size(text),
        )
        if not self.options.split_long_text or len(text) <= self.options.chunk_size:
            return [item]

        if not text_input.title:
            item.title = "Text Import"
        item.metadata["input_type"] = "direct_text_chunk"
        return chunk_item(item, text, self.options.chunk_size)


def _coerce_input(params: TextInput | Mapping[str, Any] | str | None) -> TextInput:
    if isinstance(params, TextInput):
        return params
    if isinstance(params, str):
        return TextInput(content=params)
    return TextInput.model_validate(dict(params or {}))


def generate_title(content: str, fmt: str) -> str:
    first_line = content.split("\n")[0].strip()
    if fmt == "markdown":
        m = re.match(r"^#+\s+(.+)$", first_line)
        if m:
            return m.group(1)
    if len(first_line) > TITLE_LIMIT:
        return first_line[:TITLE_LIMIT] + "..."
    return first_line or f"{fmt.capitalize()} Import"


# -- Analysers --


def analyse(content: str, fmt: str) -> dict:
    if fmt == "json":
        return analyse_json(content)
    if fmt == "markdown":
        return analyse_markdown(content)
    if fmt == "code":
        return analyse_code(content)
    return analyse_plain(content)


def analyse_json(content: str) -> dict:
    try:
        parsed = json.loads(content)
    except ValueError as e:
        return {
            "raw_text": content,
            "content_type": "text",
            "parse_error": "Invalid JSON format",
            "error_message": str(e),
        }
    return {
        "raw_text": content,
        "content_type": "json",
        "parsed_json": parsed,
        "structure": json_structure(parsed),
    }


def json_structure(value: Any) -> dict:
    if isinstance(value, list):
        return {
            "type": "array",
            "length": len(value),
            "item_types": sorted({_json_type(v) for v in value}),
        }
    if isinstance(value, dict):
        return {
            "type": "object",
            "key_count": len(value),
            "keys": list(value),
            "value_types": sorted({_json_type(v) for v in value.values()}),
        }
    return {"type": _json_type(value), "value": value}


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def analyse_markdown(content: str) -> dict:
    headers = markdown_headers(content)
    links = [{"text": m.group(1), "url": m.group(2)} for m in _LINK_RE.finditer(content)]
    blocks = [
        {"language": m.group(1) or "text", "code": m.group(2).strip()}
        for m in _CODE_BLOCK_RE.finditer(content)
    ]
    return {
        "raw_text": content,
        "content_type": "markdown",
        "headers": headers,
        "links": links,
        "code_blocks": blocks,
        "structure": {
            "header_count": len(headers),
            "link_count": len(links),
            "code_block_count": len(blocks),
        },
    }


def _unique_matches(patterns: list[re.Pattern], content: str) -> list[str]:
    found: dict[str, None] = {}
    for pattern in patterns:
        for m in pattern.finditer(content):
            found.setdefault(m.group(1), None)
    return list(found)


def analyse_code(content: str) -> dict:
    functions = _unique_matches(_FUNCTION_RES, content)
    imports = _unique_matches(_IMPORT_RES, content)
    return {
        "raw_text": content,
        "content_type": "code",
        "detected_language": detect_language(content),
        "functions": functions,
        "imports": imports,
        "structure": {
            "function_count": len(functions),
            "import_count": len(imports),
            "line_count": content.count("\n") + 1,
        },
    }


def analyse_plain(content: str) -> dict:
    return {
        "raw_text": content,
        "content_type": "text",
        "structure": {
            "paragraph_count": len(content.split("\n\n")),
            "sentence_count": len(re.split(r"[.!?]+", content)) - 1,
            "word_count": count_words(content),
        },
    }
