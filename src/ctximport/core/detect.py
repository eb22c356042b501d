"""Ordered classifier chains for text format, file kind and code language.

Each chain is a list of (name, predicate) pairs tried in order; the first
predicate that matches wins. Rules are plain functions so they can be
tested one at a time.
"""

from __future__ import annotations

import json
import re
from typing import Callable

from ctximport.core.errors import UnsupportedFileTypeError

Rule = tuple[str, Callable[[str], bool]]


# -- Text format --


def looks_like_json(content: str) -> bool:
    try:
        json.loads(content)
    except (ValueError, TypeError):
        return False
    return True


def looks_like_markdown(content: str) -> bool:
    return any(marker in content for marker in ("# ", "## ", "**", "```"))


def looks_like_code(content: str) -> bool:
    return any(
        marker in content
        for marker in ("function ", "import ", "class ", "def ", "const ", "var ")
    )


FORMAT_RULES: list[Rule] = [
    ("json", looks_like_json),
    ("markdown", looks_like_markdown),
    ("code", looks_like_code),
]

TEXT_FORMATS = ("plain", "markdown", "json", "code")


def first_match(rules: list[Rule], value: str, default: str) -> str:
    for name, predicate in rules:
        if predicate(value):
            return name
    return default


def detect_format(content: str) -> str:
    """Classify pasted text as json, markdown, code or plain (in that priority)."""
    return first_match(FORMAT_RULES, content, "plain")


# -- Code language --

_LANGUAGE_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "javascript": [
        re.compile(r"function\s+\w+"),
        re.compile(r"const\s+\w+\s*="),
        re.compile(r"import\s+.*from"),
    ],
    "python": [
        re.compile(r"def\s+\w+"),
        re.compile(r"import\s+\w+"),
        re.compile(r"from\s+\w+\s+import"),
    ],
    "java": [
        re.compile(r"public\s+class"),
        re.compile(r"public\s+static\s+void"),
        re.compile(r"import\s+java\."),
    ],
    "typescript": [
        re.compile(r"interface\s+\w+"),
        re.compile(r"type\s+\w+\s*="),
        re.compile(r"import\s+.*from.*\.ts"),
    ],
    "css": [re.compile(r"\.\w+\s*\{"), re.compile(r"@media"), re.compile(r"color:")],
    "html": [re.compile(r"<html"), re.compile(r"<div"), re.compile(r"<script")],
    "sql": [
        re.compile(r"SELECT\s+"),
        re.compile(r"FROM\s+"),
        re.compile(r"WHERE\s+", re.IGNORECASE),
    ],
}


def detect_language(content: str) -> str:
    for language, patterns in _LANGUAGE_PATTERNS.items():
        if any(p.search(content) for p in patterns):
            return language
    return "text"


# -- File kind --

FILE_TEXT = "text"
FILE_IMAGE = "image"
FILE_DOCUMENT = "document"

GENERIC_MIME_TYPES = {"application/octet-stream", ""}

_DOCUMENT_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

_EXTENSION_KINDS: dict[str, set[str]] = {
    FILE_TEXT: {
        "md", "markdown", "txt", "json", "csv", "xml", "yaml", "yml", "js", "ts",
        "tsx", "jsx", "css", "scss", "sass", "html", "htm", "py", "rb", "php",
        "java", "c", "cpp", "h", "hpp", "sh", "bash", "zsh", "fish", "ps1", "bat",
        "cmd", "sql", "go", "rs", "swift", "kt", "scala", "clj", "r", "pl", "vue",
        "svelte", "astro", "config", "conf", "ini", "cfg", "env", "log",
        "gitignore", "gitkeep", "dockerfile", "makefile", "readme", "license",
        "changelog", "todo", "notes",
    },
    FILE_IMAGE: {"jpg", "jpeg", "png", "gif", "webp", "svg", "bmp", "ico", "tiff", "tif"},
    FILE_DOCUMENT: {"pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx"},
}

MIME_RULES: list[Rule] = [
    (FILE_TEXT, lambda mime: mime.startswith("text/") or mime == "application/json"),
    (FILE_IMAGE, lambda mime: mime.startswith("image/")),
    (FILE_DOCUMENT, lambda mime: mime in _DOCUMENT_MIME_TYPES),
]


def file_extension(filename: str) -> str:
    """Lower-cased text after the last dot; dotfiles like '.env' yield 'env'."""
    if "." not in filename:
        return filename.lower()
    return filename.rsplit(".", 1)[1].lower()


def kind_from_extension(filename: str) -> str | None:
    ext = file_extension(filename)
    for kind, extensions in _EXTENSION_KINDS.items():
        if ext in extensions:
            return kind
    return None


def resolve_file_kind(mime_type: str, filename: str) -> str:
    """Return 'text', 'image' or 'document' for an upload.

    MIME rules run first. Browsers report many source files as
    application/octet-stream (or nothing), so for those the extension table
    decides. Anything else raises UnsupportedFileTypeError.
    """
    mime_type = (mime_type or "").lower()
    for kind, predicate in MIME_RULES:
        if predicate(mime_type):
            return kind
    if mime_type in GENERIC_MIME_TYPES:
        kind = kind_from_extension(filename)
        if kind is not None:
            return kind
    raise UnsupportedFileTypeError(mime_type, filename)
