"""Source importers for Context Import.

Each source (Jira, GitHub, email, local files, pasted text) turns its
native records into ContextItem objects; ``registry.create_importer``
builds one by source kind.
"""

from __future__ import annotations

from ctximport.sources.base import Importer, load_config

__all__ = ["Importer", "load_config"]
