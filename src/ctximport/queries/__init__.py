"""Query translators: user-facing search parameters to source-native queries.

All functions here are pure; nothing touches the network.
"""

from __future__ import annotations

from ctximport.queries.code_search import GRAB_REPO, CodeSearch, build_code_query, is_grab_repo
from ctximport.queries.email_filter import EmailFilter
from ctximport.queries.jql import (
    DEFAULT_JQL,
    JiraFilter,
    build_jql,
    ensure_valid_jql,
    parse_jql,
    validate_jql,
)

__all__ = [
    "CodeSearch",
    "DEFAULT_JQL",
    "EmailFilter",
    "GRAB_REPO",
    "JiraFilter",
    "build_code_query",
    "build_jql",
    "ensure_valid_jql",
    "is_grab_repo",
    "parse_jql",
    "validate_jql",
]
