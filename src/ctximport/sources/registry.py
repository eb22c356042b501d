"""Importer construction and discovery, keyed by source kind."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from ctximport.core.errors import ConfigError, FieldError
from ctximport.core.schema import SourceKind
from ctximport.sources.base import Importer
from ctximport.sources.email import EmailImporter
from ctximport.sources.files import FileImporter
from ctximport.sources.github import GitHubImporter
from ctximport.sources.jira import JiraImporter
from ctximport.sources.text import TextImporter

logger = logging.getLogger(__name__)

_IMPORTER_CLASSES: dict[SourceKind, type] = {
    SourceKind.jira: JiraImporter,
    SourceKind.git: GitHubImporter,
    SourceKind.email: EmailImporter,
    SourceKind.file: FileImporter,
    SourceKind.text: TextImporter,
}

# Optional operations beyond search/test_connection
_CAPABILITIES: dict[SourceKind, frozenset[str]] = {
    SourceKind.jira: frozenset({"bulk_import"}),
    SourceKind.git: frozenset({"grab_repository"}),
    SourceKind.email: frozenset({"disconnect"}),
    SourceKind.file: frozenset(),
    SourceKind.text: frozenset({"chunking"}),
}


@dataclass
class ImporterBuild:
    """Outcome of ``create_importer``: exactly one of the two fields is set."""

    importer: Importer | None = None
    error: ConfigError | None = None

    @property
    def ok(self) -> bool:
        return self.importer is not None


def create_importer(source: SourceKind | str, settings: Mapping[str, Any] | None = None, **kwargs: Any) -> ImporterBuild:
    """Build an importer for ``source`` without raising.

    ``settings`` is the source's config (or options) mapping; extra keyword
    arguments such as ``client`` or ``transport`` go to the constructor.
    """
    try:
        kind = SourceKind(source)
    except ValueError:
        return ImporterBuild(error=ConfigError(str(source), [FieldError("source", f"unknown source: {source}")]))

    try:
        importer = _IMPORTER_CLASSES[kind](settings or {}, **kwargs)
    except ConfigError as e:
        logger.error("Cannot build %s importer: %s", kind.value, e)
        return ImporterBuild(error=e)
    return ImporterBuild(importer=importer)


def capabilities(source: SourceKind | str) -> frozenset[str]:
    return _CAPABILITIES[SourceKind(source)]


def supports(source: SourceKind | str, capability: str) -> bool:
    return capability in capabilities(source)


def list_sources() -> list[str]:
    return [kind.value for kind in _IMPORTER_CLASSES]
