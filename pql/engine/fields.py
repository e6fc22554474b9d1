"""Field catalog: canonical names, aliases and known values."""

from __future__ import annotations

# Canonical field names understood by the evaluator
CANONICAL_FIELDS: tuple[str, ...] = (
    "type",
    "priority",
    "status",
    "assignee",
    "reporter",
    "sprint",
    "labels",
    "storyPoints",
    "estimate",
    "dueDate",
    "startDate",
    "created",
    "updated",
    "resolution",
    "environment",
    "affectedVersion",
    "fixVersion",
    "key",
    "title",
    "description",
)

# Field names offered to the user, including the common aliases
QUERY_FIELDS: tuple[str, ...] = (
    "type",
    "priority",
    "status",
    "assignee",
    "reporter",
    "sprint",
    "labels",
    "label",
    "storyPoints",
    "points",
    "estimate",
    "dueDate",
    "startDate",
    "created",
    "updated",
    "resolution",
    "environment",
    "affectedVersion",
    "fixVersion",
    "key",
    "title",
    "summary",
    "description",
)

_EXTRA_ALIASES: dict[str, str] = {
    "points": "storyPoints",
    "story_points": "storyPoints",
    "label": "labels",
    "summary": "title",
    "due_date": "dueDate",
    "start_date": "startDate",
    "affected_version": "affectedVersion",
    "fix_version": "fixVersion",
    "createdat": "created",
    "created_at": "created",
    "updatedat": "updated",
    "updated_at": "updated",
}

# Lower-cased name -> canonical name. Every canonical name maps to itself.
FIELD_ALIASES: dict[str, str] = {
    **{name.lower(): name for name in CANONICAL_FIELDS},
    **_EXTRA_ALIASES,
}


def resolve_field_name(name: str) -> str:
    """Resolve a user-typed field name to its canonical form.

    Unknown names are returned unchanged; the evaluator treats them as
    always empty.
    """
    return FIELD_ALIASES.get(name.lower(), name)


# Known values offered by autocomplete
FIELD_VALUES: dict[str, tuple[str, ...]] = {
    "type": ("epic", "story", "task", "bug", "subtask"),
    "priority": ("lowest", "low", "medium", "high", "highest", "critical"),
    "resolution": (
        "Done",
        "Cannot Reproduce",
        "Duplicate",
        "Incomplete",
        "Won't Do",
        "Won't Fix",
    ),
}

# Priority ordering: lowest = 0, critical = 5
PRIORITY_ORDER: dict[str, int] = {
    name: rank for rank, name in enumerate(FIELD_VALUES["priority"])
}

# Field categories drive which operators are suggested
NUMERIC_FIELDS: frozenset[str] = frozenset({"storyPoints", "estimate"})
DATE_FIELDS: frozenset[str] = frozenset({"dueDate", "startDate", "created", "updated"})
ORDINAL_FIELDS: frozenset[str] = frozenset({"priority", "sprint"})
ENUM_FIELDS: frozenset[str] = frozenset({"type", "resolution"})

FIELD_DESCRIPTIONS: dict[str, str] = {
    "type": "epic, story, task, bug, subtask",
    "priority": "lowest to critical",
    "status": "Column/status name",
    "assignee": "Assigned user name",
    "reporter": "Creator name",
    "sprint": "Sprint name",
    "labels": "Label names",
    "label": "Alias for labels",
    "storyPoints": "Story points",
    "points": "Alias for storyPoints",
    "estimate": "Time estimate",
    "dueDate": "Due date",
    "startDate": "Start date",
    "created": "Creation date",
    "updated": "Last updated",
    "resolution": "Resolution status",
    "environment": "Environment",
    "affectedVersion": "Affected version",
    "fixVersion": "Fix version",
    "key": "Ticket key (e.g. PROJ-1)",
    "title": "Ticket title",
    "summary": "Alias for title",
    "description": "Description text",
}
