"""Tests for GitHub code-search query building."""

from __future__ import annotations

from ctximport.queries.code_search import (
    DEFAULT_DOC_FILTER,
    GRAB_REPO,
    CodeSearch,
    build_code_query,
    is_grab_repo,
)


class TestBuildCodeQuery:
    def test_default_targets_docs(self):
        assert build_code_query("acme", "widgets") == f"repo:acme/widgets {DEFAULT_DOC_FILTER}"

    def test_raw_query_scoped_to_repo(self):
        assert build_code_query("acme", "widgets", "retry policy") == "repo:acme/widgets retry policy"

    def test_structured_filters(self):
        search = CodeSearch(path="docs/api", filename="auth", extension=".md", content="token refresh")
        assert build_code_query("acme", "widgets", search) == (
            'repo:acme/widgets path:docs/api filename:auth extension:md "token refresh"'
        )

    def test_mapping_params(self):
        assert build_code_query("a", "b", {"extension": "rst"}) == "repo:a/b extension:rst"


class TestGrabRepo:
    def test_sentinel_detected(self):
        assert is_grab_repo(GRAB_REPO)
        assert is_grab_repo({"query": GRAB_REPO})

    def test_regular_query(self):
        assert not is_grab_repo("README")
        assert not is_grab_repo(None)
