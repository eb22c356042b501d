"""Tests for the format, file-kind and language classifier chains."""

from __future__ import annotations

import pytest

from ctximport.core.detect import (
    FILE_DOCUMENT,
    FILE_IMAGE,
    FILE_TEXT,
    detect_format,
    detect_language,
    file_extension,
    first_match,
    resolve_file_kind,
)
from ctximport.core.errors import UnsupportedFileTypeError


class TestDetectFormat:
    @pytest.mark.parametrize(
        "content, expected",
        [
            ('{"a": 1}', "json"),
            ("[1, 2, 3]", "json"),
            ("42", "json"),
            ("# Title\n\nBody", "markdown"),
            ("some **bold** text", "markdown"),
            ("def main():\n    pass", "code"),
            ("const x = 1;", "code"),
            ("Just a note about lunch.", "plain"),
        ],
    )
    def test_classification(self, content, expected):
        assert detect_format(content) == expected

    def test_json_wins_over_markdown(self):
        assert detect_format('{"title": "# heading"}') == "json"

    def test_markdown_wins_over_code(self):
        assert detect_format("# Setup\n\nimport os") == "markdown"


def test_first_match_falls_back_to_default():
    rules = [("never", lambda _: False)]
    assert first_match(rules, "x", "fallback") == "fallback"


class TestResolveFileKind:
    @pytest.mark.parametrize(
        "mime, name, expected",
        [
            ("text/plain", "a.txt", FILE_TEXT),
            ("application/json", "data.json", FILE_TEXT),
            ("image/png", "shot.png", FILE_IMAGE),
            ("application/pdf", "spec.pdf", FILE_DOCUMENT),
            ("application/octet-stream", "notes.md", FILE_TEXT),
            ("", "main.py", FILE_TEXT),
            ("application/octet-stream", "logo.svg", FILE_IMAGE),
            ("application/octet-stream", "slides.pptx", FILE_DOCUMENT),
        ],
    )
    def test_resolves(self, mime, name, expected):
        assert resolve_file_kind(mime, name) == expected

    def test_unknown_extension_rejected(self):
        with pytest.raises(UnsupportedFileTypeError, match="Unsupported file type"):
            resolve_file_kind("application/octet-stream", "archive.bin")

    def test_specific_unknown_mime_not_rescued_by_extension(self):
        with pytest.raises(UnsupportedFileTypeError):
            resolve_file_kind("application/zip", "notes.md")


def test_file_extension():
    assert file_extension("Report.Final.PDF") == "pdf"
    assert file_extension(".env") == "env"
    assert file_extension("Makefile") == "makefile"


class TestDetectLanguage:
    def test_python(self):
        assert detect_language("def handler(event):\n    return event") == "python"

    def test_javascript(self):
        assert detect_language("function render() { return 1 }") == "javascript"

    def test_sql(self):
        assert detect_language("SELECT id FROM users") == "sql"

    def test_fallback(self):
        assert detect_language("nothing recognisable here") == "text"
