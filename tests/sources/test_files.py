"""Tests for the local file importer."""

from __future__ import annotations

import base64
from pathlib import Path

import pytest

from ctximport.core.errors import FileValidationError
from ctximport.core.preview import content_hash
from ctximport.sources.files import (
    FileImporter,
    FileImportOptions,
    FileUpload,
    file_title,
    markdown_headers,
)


def _make_upload(name: str = "notes.txt", data: bytes = b"hello world", mime_type: str = "text/plain") -> FileUpload:
    return FileUpload(name=name, mime_type=mime_type, data=data)


# -- Validation --


class TestValidate:
    def test_size_limit(self):
        importer = FileImporter({"max_file_size": 10})
        with pytest.raises(FileValidationError, match="File size exceeds limit: 11 bytes"):
            importer.validate(_make_upload(data=b"x" * 11))

    def test_type_not_allowed(self):
        importer = FileImporter({"allowed_types": ["text/plain"]})
        with pytest.raises(FileValidationError, match="File type not allowed: image/png"):
            importer.validate(_make_upload(name="a.png", mime_type="image/png"))

    def test_empty_mime_treated_as_generic(self):
        importer = FileImporter({"allowed_types": ["application/octet-stream"]})
        importer.validate(_make_upload(mime_type=""))

    def test_no_allow_list(self):
        FileImporter(FileImportOptions(allowed_types=None)).validate(
            _make_upload(name="a.svg", mime_type="image/svg+xml")
        )


# -- Import --


class TestSearch:
    async def test_generic_mime_resolved_by_extension(self):
        upload = _make_upload("notes.md", b"# Title\n\nBody\n## Sub", "application/octet-stream")
        result = await FileImporter().search([upload])

        assert result.success
        item = result.items[0]
        assert item.type == "file_text"
        assert item.content["content_type"] == "markdown"
        assert item.content["headers"] == [{"level": 1, "text": "Title"}, {"level": 2, "text": "Sub"}]
        assert item.tags == ["file", "file-text", "markdown", "ext-md"]

    async def test_bad_file_does_not_stop_siblings(self):
        uploads = [
            _make_upload("archive.bin", b"\x00\x01", "application/octet-stream"),
            _make_upload("notes.txt"),
        ]
        result = await FileImporter().search(uploads)

        assert result.success
        assert len(result.items) == 1
        assert result.errors == ["archive.bin: Unsupported file type: application/octet-stream"]
        assert result.metadata == {"processed": 1, "rejected": 1}

    async def test_oversized_rejected(self):
        result = await FileImporter({"max_file_size": 4}).search([_make_upload()])
        assert result.items == []
        assert result.errors[0].startswith("notes.txt: File size exceeds limit")

    async def test_empty_batch(self):
        result = await FileImporter().search([])
        assert result.success
        assert result.total == 0

    async def test_connection_always_ok(self):
        status = await FileImporter().test_connection()
        assert status.success


class TestTransform:
    def test_text_item(self):
        upload = _make_upload("notes.txt", b"hello   world\nsecond line")
        item = FileImporter().process(upload)

        assert item.id == f"file-{content_hash(upload.data)}"
        assert item.title == "File: notes"
        assert item.preview == "hello world second line"
        assert item.size_bytes == len(upload.data)
        assert item.metadata["extension"] == "txt"
        assert item.metadata["file_type"] == "text"

    def test_same_bytes_same_id(self):
        importer = FileImporter()
        a = importer.process(_make_upload("a.txt", b"same"))
        b = importer.process(_make_upload("b.txt", b"same"))
        assert a.id == b.id

    def test_valid_json(self):
        item = FileImporter().process(_make_upload("data.json", b'[{"a": 1}]', "application/json"))
        assert item.content["content_type"] == "json"
        assert item.content["parsed_json"] == [{"a": 1}]

    def test_invalid_json_kept_as_text(self):
        item = FileImporter().process(_make_upload("data.json", b"{broken", "application/json"))
        assert item.content["content_type"] == "text"
        assert item.content["parse_error"] == "Invalid JSON format"
        assert item.content["raw_text"] == "{broken"

    def test_image_base64(self):
        data = b"\x89PNG\r\n\x1a\n"
        item = FileImporter().process(_make_upload("logo.png", data, "image/png"))
        assert item.type == "file_image"
        assert item.content["base64_data"] == base64.b64encode(data).decode()
        assert item.preview == "Image: logo.png (image/png)"

    def test_document_flagged_for_extraction(self):
        item = FileImporter().process(_make_upload("spec.pdf", b"%PDF-1.4", "application/pdf"))
        assert item.type == "file_document"
        assert item.content["extraction_needed"] is True
        assert item.preview == "Document: spec.pdf (text extraction needed)"
        assert "ext-pdf" in item.tags

    def test_metadata_extraction_disabled(self):
        item = FileImporter({"extract_metadata": False}).process(_make_upload())
        assert "last_modified" not in item.metadata
        assert "extension" not in item.metadata


def test_from_path(tmp_path: Path):
    path = tmp_path / "README.md"
    path.write_text("# Readme\n")
    upload = FileUpload.from_path(path)
    assert upload.name == "README.md"
    assert upload.data == b"# Readme\n"
    assert upload.size == 9
    assert upload.last_modified is not None


def test_from_path_unknown_extension(tmp_path: Path):
    path = tmp_path / "blob.zzz"
    path.write_bytes(b"\x00")
    assert FileUpload.from_path(path).mime_type == "application/octet-stream"


@pytest.mark.parametrize("name", ["tool.py", "app.js", "page.html", "deploy.yaml", "logo.svg"])
def test_from_path_source_files_accepted(tmp_path: Path, name: str):
    path = tmp_path / name
    path.write_text("x = 1\n")
    upload = FileUpload.from_path(path)
    assert upload.mime_type == "application/octet-stream"
    FileImporter().validate(upload)


async def test_from_path_python_file_imported(tmp_path: Path):
    path = tmp_path / "tool.py"
    path.write_text("def main():\n    return 0\n")

    result = await FileImporter().search([FileUpload.from_path(path)])

    assert result.errors == []
    item = result.items[0]
    assert item.title == "File: tool"
    assert item.content["raw_text"].startswith("def main():")
    assert "ext-py" in item.tags


def test_file_title_without_extension():
    assert file_title("Makefile") == "File: Makefile"


def test_markdown_headers_ignores_hash_without_space():
    assert markdown_headers("#hashtag\n### Real") == [{"level": 3, "text": "Real"}]
