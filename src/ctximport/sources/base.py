"""Importer protocol and typed configuration helpers shared by all sources."""

from __future__ import annotations

from typing import Any, Mapping, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ValidationError

from ctximport.core.errors import ConfigError
from ctximport.core.schema import ConnectionStatus, ImportResult, SourceKind

ConfigT = TypeVar("ConfigT", bound=BaseModel)


@runtime_checkable
class Importer(Protocol):
    """Interface every source importer implements.

    ``search`` and ``test_connection`` never raise: failures come back in
    the returned result. Only construction may raise ConfigError.
    Importers that page through results also provide ``bulk_import``;
    stateful ones provide ``disconnect``.
    """

    source: SourceKind

    async def search(self, params: Any = None) -> ImportResult:
        """Run one import and return normalized items."""
        ...

    async def test_connection(self) -> ConnectionStatus:
        """Lightweight read-only probe of the source."""
        ...


def load_config(model: type[ConfigT], value: ConfigT | Mapping[str, Any] | None, source: str) -> ConfigT:
    """Validate ``value`` into ``model`` or raise ConfigError listing bad fields."""
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(dict(value or {}))
    except ValidationError as e:
        raise ConfigError.from_validation(source, e) from e
