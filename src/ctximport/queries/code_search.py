"""GitHub code-search query builder."""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel

# Query sentinel: skip search and import the whole repository as one reference
GRAB_REPO = "GRAB_REPO"

DEFAULT_DOC_FILTER = "path:docs OR filename:README OR filename:*.md"


class CodeSearch(BaseModel):
    query: str | None = None
    path: str | None = None
    filename: str | None = None
    extension: str | None = None
    content: str | None = None


def coerce_search(params: str | CodeSearch | Mapping[str, Any] | None) -> CodeSearch:
    if params is None:
        return CodeSearch()
    if isinstance(params, CodeSearch):
        return params
    if isinstance(params, str):
        return CodeSearch(query=params)
    return CodeSearch.model_validate(dict(params))


def is_grab_repo(params: str | CodeSearch | Mapping[str, Any] | None) -> bool:
    search = coerce_search(params)
    return bool(search.query) and GRAB_REPO in search.query


def build_code_query(
    owner: str, repo: str, params: str | CodeSearch | Mapping[str, Any] | None = None
) -> str:
    """Scope a search to one repository and add path/filename/extension filters.

    With no filters at all the query targets documentation files.
    """
    search = coerce_search(params)
    scope = f"repo:{owner}/{repo}"
    if search.query:
        return f"{scope} {search.query}"

    conditions = [scope]
    if search.path:
        conditions.append(f"path:{search.path}")
    if search.filename:
        conditions.append(f"filename:{search.filename}")
    if search.extension:
        conditions.append(f"extension:{search.extension.lstrip('.')}")
    if search.content:
        conditions.append(f'"{search.content}"')
    if len(conditions) == 1:
        conditions.append(DEFAULT_DOC_FILTER)
    return " ".join(conditions)
