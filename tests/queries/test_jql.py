"""Tests for JQL building, parsing and validation."""

from __future__ import annotations

import pytest

from ctximport.core.errors import QueryValidationError
from ctximport.queries.jql import (
    DEFAULT_JQL,
    JiraFilter,
    build_jql,
    ensure_valid_jql,
    parse_jql,
    validate_jql,
)
from ctximport.queries.templates import JQL_TEMPLATES


class TestBuildJql:
    def test_no_filters_gives_default(self):
        assert build_jql() == DEFAULT_JQL
        assert build_jql({}) == DEFAULT_JQL

    def test_raw_query_passes_through(self):
        assert build_jql("project = X ORDER BY created") == "project = X ORDER BY created"
        assert build_jql({"query": "key = X-1", "status": "Done"}) == "key = X-1"

    def test_current_user_is_unquoted(self):
        assert build_jql({"assignee": "currentUser()"}) == (
            "assignee = currentUser() ORDER BY updated DESC"
        )

    def test_conditions_in_fixed_order(self):
        jql = build_jql(
            JiraFilter(project="WEB", status="In Progress", assignee="ann", priority="High")
        )
        assert jql == (
            'assignee = "ann" AND status = "In Progress" AND priority = "High" '
            'AND project = "WEB" ORDER BY updated DESC'
        )

    def test_labels_grouped_with_or(self):
        jql = build_jql({"labels": ["backend", "urgent"], "jql": "created > -7d"})
        assert jql == (
            '(labels = "backend" OR labels = "urgent") AND created > -7d ORDER BY updated DESC'
        )

    def test_values_are_escaped(self):
        jql = build_jql({"project": 'say "hi"'})
        assert 'project = "say \\"hi\\""' in jql
        assert validate_jql(jql).valid


class TestParseJql:
    @pytest.mark.parametrize(
        "params",
        [
            {"assignee": "currentUser()"},
            {"status": "To Do", "project": "TEST"},
            {"labels": ["a", "b c"], "priority": "Low"},
            {"assignee": "ann", "labels": ["x"], "jql": "created > -7d"},
            {"project": 'odd "quoted" name', "jql": "(type = Bug OR type = Task)"},
        ],
    )
    def test_round_trip(self, params):
        jql = build_jql(params)
        assert build_jql(parse_jql(jql)) == jql

    def test_parse_recovers_fields(self):
        flt = parse_jql('status = "To Do" AND (labels = "a" OR labels = "b") ORDER BY updated DESC')
        assert flt.status == "To Do"
        assert flt.labels == ["a", "b"]
        assert flt.jql is None

    def test_unknown_conditions_become_fragment(self):
        flt = parse_jql("updated >= -1w AND resolution = Unresolved")
        assert flt.jql == "updated >= -1w AND resolution = Unresolved"


class TestValidateJql:
    def test_empty(self):
        result = validate_jql("   ")
        assert not result.valid
        assert result.errors == ["Query cannot be empty"]

    def test_forbidden_keyword(self):
        result = validate_jql("project = TEST; DROP TABLE users")
        assert not result.valid
        assert "Forbidden keyword: DROP" in result.errors

    @pytest.mark.parametrize("keyword", ["delete", "Insert"])
    def test_forbidden_keyword_any_case(self, keyword):
        assert not validate_jql(f"project = X {keyword} y").valid

    def test_keyword_inside_quotes_allowed(self):
        assert validate_jql('summary ~ "drop database"').valid

    def test_word_containing_keyword_allowed(self):
        assert validate_jql("labels = dropdown").valid

    def test_valid_query(self):
        assert validate_jql('status = "To Do" AND project = TEST').valid

    def test_relative_date_valid(self):
        assert validate_jql("createdAt > -1d").valid

    @pytest.mark.parametrize("jql", ["(status = Open", "status = Open)", ")(", "((a = b)"])
    def test_unbalanced(self, jql):
        result = validate_jql(jql)
        assert "Unbalanced parentheses" in result.errors

    def test_paren_inside_quotes_ignored(self):
        assert validate_jql('summary ~ "smile :)"').valid

    def test_ensure_raises(self):
        with pytest.raises(QueryValidationError, match="Unbalanced"):
            ensure_valid_jql("(a = b")


@pytest.mark.parametrize("template", JQL_TEMPLATES, ids=lambda t: t.id)
def test_every_template_validates(template):
    assert validate_jql(template.query).valid, template.query
