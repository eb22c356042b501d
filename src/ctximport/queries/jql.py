"""JQL construction, validation and parsing.

``build_jql`` turns a structured filter into JQL; ``parse_jql`` reads the
same shape back. ``validate_jql`` runs before any request reaches Jira.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import BaseModel, Field

from ctximport.core.errors import QueryValidationError

DEFAULT_JQL = "assignee = currentUser() AND status != Done ORDER BY updated DESC"
ORDER_CLAUSE = "ORDER BY updated DESC"
CURRENT_USER = "currentUser()"

# Statements that must never be smuggled into a read-only search
_FORBIDDEN_RE = re.compile(r"\b(DROP|DELETE|INSERT)\b", re.IGNORECASE)

_SIMPLE_FIELDS = ("assignee", "status", "priority", "project")
_CONDITION_RE = re.compile(r'^(\w+) = (currentUser\(\)|"((?:[^"\\]|\\.)*)")$')
_LABEL_RE = re.compile(r'labels = "((?:[^"\\]|\\.)*)"')


class JiraFilter(BaseModel):
    """Structured Jira search. ``query`` (raw JQL) wins over every other field."""

    assignee: str | None = None
    status: str | None = None
    priority: str | None = None
    project: str | None = None
    labels: list[str] = Field(default_factory=list)
    jql: str | None = None
    query: str | None = None
    max_results: int | None = None
    start_at: int = 0


@dataclass
class JqlValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _unquote(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


def coerce_filter(params: str | JiraFilter | Mapping[str, Any] | None) -> JiraFilter:
    if params is None:
        return JiraFilter()
    if isinstance(params, JiraFilter):
        return params
    if isinstance(params, str):
        return JiraFilter(query=params)
    return JiraFilter.model_validate(dict(params))


def build_jql(params: str | JiraFilter | Mapping[str, Any] | None = None) -> str:
    """Translate search parameters into a JQL string."""
    flt = coerce_filter(params)
    if flt.query:
        return flt.query

    conditions: list[str] = []
    if flt.assignee:
        if flt.assignee == CURRENT_USER:
            conditions.append(f"assignee = {CURRENT_USER}")
        else:
            conditions.append(f"assignee = {_quote(flt.assignee)}")
    for name in ("status", "priority", "project"):
        value = getattr(flt, name)
        if value:
            conditions.append(f"{name} = {_quote(value)}")
    if flt.labels:
        labels = " OR ".join(f"labels = {_quote(label)}" for label in flt.labels)
        conditions.append(f"({labels})")
    if flt.jql:
        conditions.append(flt.jql)

    if not conditions:
        return DEFAULT_JQL
    return " AND ".join(conditions) + f" {ORDER_CLAUSE}"


def _split_top_level(jql: str, sep: str = " AND ") -> list[str]:
    """Split on ``sep`` outside quotes and parentheses."""
    parts: list[str] = []
    depth = 0
    in_quotes = False
    start = 0
    i = 0
    while i < len(jql):
        ch = jql[i]
        if in_quotes:
            if ch == "\\":
                i += 2
                continue
            if ch == '"':
                in_quotes = False
        elif ch == '"':
            in_quotes = True
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif depth == 0 and jql.startswith(sep, i):
            parts.append(jql[start:i])
            i += len(sep)
            start = i
            continue
        i += 1
    parts.append(jql[start:])
    return [p.strip() for p in parts if p.strip()]


def parse_jql(jql: str) -> JiraFilter:
    """Read JQL produced by ``build_jql`` back into a JiraFilter.

    Conditions that are not simple ``field = value`` or label groups are
    collected into ``jql`` as a free fragment.
    """
    body = jql.strip()
    if body.endswith(ORDER_CLAUSE):
        body = body[: -len(ORDER_CLAUSE)].strip()

    values: dict[str, Any] = {}
    fragments: list[str] = []
    for part in _split_top_level(body):
        match = _CONDITION_RE.match(part)
        if match and match.group(1) in _SIMPLE_FIELDS and match.group(1) not in values:
            name = match.group(1)
            if match.group(2) == CURRENT_USER:
                if name != "assignee":
                    fragments.append(part)
                    continue
                values[name] = CURRENT_USER
            else:
                values[name] = _unquote(match.group(3))
            continue
        if part.startswith("(") and part.endswith(")") and "labels" not in values:
            inner = _split_top_level(part[1:-1], " OR ")
            labels = [_LABEL_RE.fullmatch(p) for p in inner]
            if labels and all(labels):
                values["labels"] = [_unquote(m.group(1)) for m in labels if m]
                continue
        fragments.append(part)

    if fragments:
        values["jql"] = " AND ".join(fragments)
    return JiraFilter(**values)


def validate_jql(jql: str | None) -> JqlValidation:
    """Check a JQL string for emptiness, mutating keywords and paren balance."""
    errors: list[str] = []
    if jql is None or not jql.strip():
        return JqlValidation(valid=False, errors=["Query cannot be empty"])

    # Keywords and parens inside quoted values are data, not syntax
    unquoted = re.sub(r'"(?:[^"\\]|\\.)*"', '""', jql)

    match = _FORBIDDEN_RE.search(unquoted)
    if match:
        errors.append(f"Forbidden keyword: {match.group(1).upper()}")

    depth = 0
    for ch in unquoted:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                break
    if depth != 0:
        errors.append("Unbalanced parentheses")

    return JqlValidation(valid=not errors, errors=errors)


def ensure_valid_jql(jql: str) -> str:
    result = validate_jql(jql)
    if not result.valid:
        raise QueryValidationError(result.errors)
    return jql
