"""Saved JQL templates for common searches."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class QueryTemplate:
    id: str
    name: str
    description: str
    query: str
    category: str
    popular: bool = False


CATEGORIES: dict[str, str] = {
    "development": "Templates for developers and coding tasks",
    "project-management": "Templates for project tracking and management",
    "team": "Templates for team communication and collaboration",
    "quality": "Templates for QA and testing workflows",
    "business": "Templates for business requirements and features",
    "advanced": "Complex queries and advanced use cases",
}

JQL_TEMPLATES: list[QueryTemplate] = [
    QueryTemplate(
        "dev-my-active-tickets",
        "My Active Development Tickets",
        "Tickets assigned to me that are being worked on",
        'assignee = currentUser() AND status IN ("In Progress", "In Review", "Testing") '
        "ORDER BY priority DESC, updated DESC",
        "development",
        popular=True,
    ),
    QueryTemplate(
        "dev-high-priority-bugs",
        "High Priority Bugs",
        "Open bugs at the top of the priority scale",
        "type = Bug AND priority IN (Highest, High) AND status != Done "
        "ORDER BY priority DESC, created DESC",
        "development",
        popular=True,
    ),
    QueryTemplate(
        "dev-sprint-backlog",
        "Current Sprint Backlog",
        "Everything in the open sprint",
        "Sprint in openSprints() AND Sprint not in futureSprints() ORDER BY rank ASC",
        "development",
        popular=True,
    ),
    QueryTemplate(
        "dev-blocked-tickets",
        "Blocked Tickets",
        "Tickets that are blocked or blocking",
        'status = "Blocked" OR labels = "blocked" OR priority = Blocker ORDER BY updated DESC',
        "development",
        popular=True,
    ),
    QueryTemplate(
        "pm-overdue-tickets",
        "Overdue Tickets",
        "Unfinished tickets past their due date",
        "due < now() AND status NOT IN (Done, Closed, Resolved) ORDER BY due ASC",
        "project-management",
        popular=True,
    ),
    QueryTemplate(
        "pm-unassigned-tickets",
        "Unassigned Tickets",
        "Open tickets with nobody assigned",
        "assignee is EMPTY AND status NOT IN (Done, Closed, Resolved) "
        "ORDER BY priority DESC, created DESC",
        "project-management",
        popular=True,
    ),
    QueryTemplate(
        "pm-recently-created",
        "Recently Created (Last 7 Days)",
        "Tickets created during the last week",
        "created >= -7d ORDER BY created DESC",
        "project-management",
        popular=True,
    ),
    QueryTemplate(
        "team-code-review",
        "Code Review Required",
        "Tickets waiting for review",
        'status IN ("Code Review", "Peer Review", "In Review") ORDER BY updated ASC',
        "team",
        popular=True,
    ),
    QueryTemplate(
        "team-my-reported",
        "Issues I Reported",
        "Tickets where I am the reporter",
        "reporter = currentUser() ORDER BY created DESC",
        "team",
    ),
    QueryTemplate(
        "qa-regression-bugs",
        "Regression Bugs",
        "Bugs labelled as regressions",
        'type = Bug AND labels = "regression" ORDER BY priority DESC, created DESC',
        "quality",
        popular=True,
    ),
    QueryTemplate(
        "qa-production-issues",
        "Production Issues",
        "Live incidents and blockers",
        'labels IN ("production", "live-issue") OR priority = Blocker '
        "ORDER BY priority DESC, created DESC",
        "quality",
        popular=True,
    ),
    QueryTemplate(
        "business-user-stories",
        "User Stories",
        "All user stories across projects",
        'type = "User Story" ORDER BY priority DESC, created DESC',
        "business",
        popular=True,
    ),
    QueryTemplate(
        "business-features",
        "New Features",
        "New feature requests and enhancements",
        'type IN ("New Feature", "Enhancement", "Feature") ORDER BY priority DESC, created DESC',
        "business",
        popular=True,
    ),
    QueryTemplate(
        "advanced-custom-field",
        "Custom Field Query",
        "Query a custom field (edit the field id)",
        'cf[10001] = "High" ORDER BY updated DESC',
        "advanced",
    ),
    QueryTemplate(
        "advanced-time-tracking",
        "Time Tracking Analysis",
        "Tickets with estimates and logged time",
        'timeoriginalestimate > 0 AND timespent > 0 ORDER BY "Time Spent" DESC',
        "advanced",
    ),
]


def get_template(template_id: str) -> QueryTemplate | None:
    for template in JQL_TEMPLATES:
        if template.id == template_id:
            return template
    return None


def templates_by_category(category: str) -> list[QueryTemplate]:
    return [t for t in JQL_TEMPLATES if t.category == category]


def popular_templates() -> list[QueryTemplate]:
    return [t for t in JQL_TEMPLATES if t.popular]


def search_templates(text: str) -> list[QueryTemplate]:
    needle = text.lower()
    return [
        t for t in JQL_TEMPLATES
        if needle in t.name.lower() or needle in t.description.lower()
    ]
