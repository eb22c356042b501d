"""Output formatting utilities: text vs JSON, rich panels and result tables."""

from __future__ import annotations

import json
import sys
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ctximport.core.schema import ImportResult

console = Console()
error_console = Console(stderr=True)


def is_piped() -> bool:
    return not sys.stdout.isatty()


def _resolve(fmt: str | None) -> str:
    if fmt is None:
        return "json" if is_piped() else "text"
    return fmt


def output(data: Any, fmt: str | None = None, title: str | None = None) -> None:
    """Output data in the requested format.

    If fmt is None, auto-detect: json when piped, text for TTY.
    """
    fmt = _resolve(fmt)

    if fmt == "json":
        if isinstance(data, str):
            print(json.dumps({"value": data}))
        elif hasattr(data, "model_dump_json"):
            print(data.model_dump_json(indent=2))
        else:
            print(json.dumps(data, indent=2, default=str))
    else:
        if isinstance(data, str):
            if title:
                console.print(Panel(data, title=title))
            else:
                console.print(data)
        elif hasattr(data, "model_dump_json"):
            console.print_json(data.model_dump_json(indent=2))
        elif isinstance(data, (dict, list)):
            console.print_json(json.dumps(data, default=str))
        else:
            console.print(str(data))


def output_table(rows: list[dict[str, Any]], columns: list[str], fmt: str | None = None, title: str | None = None) -> None:
    if _resolve(fmt) == "json":
        print(json.dumps(rows, indent=2, default=str))
    else:
        table = Table(title=title)
        for col in columns:
            table.add_column(col.replace("_", " ").title())
        for row in rows:
            table.add_row(*[str(row.get(col, "")) for col in columns])
        console.print(table)


def output_result(result: ImportResult, fmt: str | None = None) -> None:
    """Print an import result: full JSON, or a summary table of its items."""
    if _resolve(fmt) == "json":
        print(result.model_dump_json(indent=2))
        return

    rows = [
        {"id": item.id, "type": item.type, "title": item.title, "size": item.size_bytes}
        for item in result.items
    ]
    label = f"{result.source.value}: {len(result.items)} item(s)"
    if result.total != len(result.items):
        label += f" of {result.total}"
    output_table(rows, ["id", "type", "title", "size"], fmt="text", title=label)
    for msg in result.errors:
        warning(msg)
    if not result.success:
        error(result.error or "import failed")


def error(msg: str) -> None:
    error_console.print(f"[red]Error:[/red] {msg}")


def warning(msg: str) -> None:
    error_console.print(f"[yellow]Warning:[/yellow] {msg}")


def success(msg: str) -> None:
    console.print(f"[green]{msg}[/green]")


def info(msg: str) -> None:
    console.print(f"[dim]{msg}[/dim]")
