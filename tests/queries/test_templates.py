"""Tests for the saved JQL template catalogue."""

from __future__ import annotations

from ctximport.queries.jql import validate_jql
from ctximport.queries.templates import (
    CATEGORIES,
    JQL_TEMPLATES,
    get_template,
    popular_templates,
    search_templates,
    templates_by_category,
)


def test_ids_unique():
    ids = [t.id for t in JQL_TEMPLATES]
    assert len(ids) == len(set(ids))


def test_every_template_has_known_category():
    assert {t.category for t in JQL_TEMPLATES} <= set(CATEGORIES)


def test_get_template():
    assert get_template("dev-my-active-tickets").popular is True
    assert get_template("missing") is None


def test_by_category():
    dev = templates_by_category("development")
    assert dev
    assert all(t.category == "development" for t in dev)


def test_popular_subset():
    popular = popular_templates()
    assert popular
    assert all(t.popular for t in popular)


def test_search_matches_name_or_description():
    results = search_templates("BUG")
    assert any(t.id == "dev-high-priority-bugs" for t in results)


def test_every_template_is_valid_jql():
    invalid = [t.id for t in JQL_TEMPLATES if not validate_jql(t.query).valid]
    assert invalid == []
