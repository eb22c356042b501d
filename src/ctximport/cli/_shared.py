"""Shared CLI utilities to avoid circular imports."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, TypeVar

import typer

from ctximport.core.schema import ImportResult, SourceKind
from ctximport.sources.base import Importer
from ctximport.sources.registry import create_importer
from ctximport.utils.config import resolve_source_settings
from ctximport.utils.output import error, output_result

T = TypeVar("T")

FORMAT_OPTION = typer.Option(None, "--format", "-F", help="Output format: json or text")

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        force=True,
    )


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Drive an importer coroutine from a synchronous typer command."""
    return asyncio.run(coro)


def get_importer(source: SourceKind, overrides: dict[str, Any] | None = None, **kwargs: Any) -> Importer:
    """Resolve settings for ``source`` and build its importer, or exit with the config errors."""
    settings = resolve_source_settings(source.value, overrides)
    build = create_importer(source, settings, **kwargs)
    if build.error is not None:
        error(str(build.error))
        raise typer.Exit(1)
    return build.importer


def finish(result: ImportResult, fmt: str | None) -> None:
    output_result(result, fmt)
    if not result.success:
        raise typer.Exit(1)
