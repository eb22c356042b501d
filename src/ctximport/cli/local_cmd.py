"""Local imports: files, pasted text, and structured-data expansion."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer

from ctximport.cli._shared import FORMAT_OPTION, finish, get_importer, run
from ctximport.core.chunking import expand_structured, offers_split
from ctximport.core.schema import ImportResult, SourceKind
from ctximport.sources.files import FileUpload
from ctximport.sources.text import TextInput
from ctximport.utils.output import error, info


def _uploads(paths: list[Path]) -> list[FileUpload]:
    uploads = []
    for path in paths:
        if not path.is_file():
            error(f"Not a file: {path}")
            raise typer.Exit(1)
        uploads.append(FileUpload.from_path(path))
    return uploads


def import_files(
    paths: list[Path] = typer.Argument(..., help="Files to import"),
    max_size: Optional[int] = typer.Option(None, "--max-size", help="Size ceiling in bytes"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Import local files (text, images, documents)."""
    importer = get_importer(SourceKind.file, {"max_file_size": max_size})
    finish(run(importer.search(_uploads(paths))), fmt)


def import_text(
    content: Optional[str] = typer.Argument(None, help="Text to import; '-' or omitted reads stdin"),
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    tags: Optional[list[str]] = typer.Option(None, "--tag", help="Repeatable"),
    text_format: str = typer.Option("auto", "--as", help="plain, markdown, json, code or auto"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Import pasted text, splitting it into parts when it is long."""
    if content is None or content == "-":
        content = sys.stdin.read()
    if text_format not in ("plain", "markdown", "json", "code", "auto"):
        error(f"Unknown text format: {text_format}")
        raise typer.Exit(1)

    importer = get_importer(SourceKind.text, {"chunk_size": chunk_size})
    text_input = TextInput(
        content=content,
        title=title,
        description=description,
        tags=tags or [],
        format=text_format,
    )
    finish(run(importer.search(text_input)), fmt)


def expand(
    path: Path = typer.Argument(..., help="JSON array or CSV file"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Split without asking"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Import a file and split a JSON array or CSV into one item per entry."""
    importer = get_importer(SourceKind.file)
    result = run(importer.search(_uploads([path])))
    if not result.items:
        finish(result, fmt)
        return

    item = result.items[0]
    if not offers_split(item):
        if fmt != "json":
            info(f"{path.name} has no JSON array or CSV rows to split")
        finish(result, fmt)
        return

    if not yes and not typer.confirm(f"Split {path.name} into separate items?", default=True):
        finish(result, fmt)
        return

    parts = expand_structured(item)
    if not parts:
        error(f"Could not parse {path.name} as a JSON array or CSV")
        raise typer.Exit(1)
    finish(
        ImportResult(
            success=True,
            source=SourceKind.file,
            total=len(parts),
            items=parts,
            metadata={"original_file": path.name, "expanded_from": item.id},
        ),
        fmt,
    )


def register_local_commands(app: typer.Typer) -> None:
    app.command("file")(import_files)
    app.command("text")(import_text)
    app.command("expand")(expand)
