"""Ticket records and loading them from a JSON export.

The query engine never fetches tickets itself; callers hand it a list of
:class:`Ticket` objects plus the project's status columns and key. This
module builds those from the JSON the board application exports.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from dateutil.parser import isoparse

from pql.exceptions import (
    TicketFileNotFoundError,
    TicketFileParseError,
    TicketValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusColumn:
    """A board column; its name is the ticket's status."""

    id: str
    name: str


@dataclass
class Ticket:
    """A ticket as seen by the query evaluator.

    People, sprints and labels are stored by display name.
    """

    id: str
    number: int
    title: str
    type: str = "task"
    priority: str = "medium"
    column_id: str | None = None
    description: str | None = None
    assignee: str | None = None
    reporter: str | None = None
    sprint: str | None = None
    labels: list[str] = field(default_factory=list)
    story_points: float | None = None
    estimate: str | None = None
    start_date: datetime | None = None
    due_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    resolution: str | None = None
    environment: str | None = None
    affected_version: str | None = None
    fix_version: str | None = None


@dataclass
class TicketSet:
    """Everything the evaluator needs for one project."""

    project_key: str
    columns: list[StatusColumn] = field(default_factory=list)
    tickets: list[Ticket] = field(default_factory=list)


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = isoparse(value)
    else:
        raise ValueError(f"expected an ISO date string, got {type(value).__name__}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _name_of(value: Any) -> str | None:
    """Accept either a bare name or an object with a ``name`` key."""
    if value is None:
        return None
    if isinstance(value, dict):
        name = value.get("name")
        return str(name) if name is not None else None
    return str(value)


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def ticket_from_dict(data: dict[str, Any], index: int = 0) -> Ticket:
    """Build a :class:`Ticket` from an exported record.

    Both camelCase (``storyPoints``) and snake_case (``story_points``) keys
    are accepted.

    Raises:
        TicketValidationError: If a required field is missing or malformed.
    """
    if not isinstance(data, dict):
        raise TicketValidationError(index, "<record>", "must be an object")

    number = data.get("number")
    if isinstance(number, bool) or not isinstance(number, int):
        raise TicketValidationError(index, "number", "must be an integer")

    ticket_id = data.get("id", str(number))
    title = data.get("title")
    if not isinstance(title, str):
        raise TicketValidationError(index, "title", "must be a string")

    labels_raw = data.get("labels") or []
    if not isinstance(labels_raw, list):
        raise TicketValidationError(index, "labels", "must be a list")
    labels = [name for name in (_name_of(label) for label in labels_raw) if name is not None]

    story_points = _first(data, "storyPoints", "story_points")
    if story_points is not None and (
        isinstance(story_points, bool) or not isinstance(story_points, (int, float))
    ):
        raise TicketValidationError(index, "storyPoints", "must be a number")

    dates: dict[str, datetime | None] = {}
    for attr, keys in (
        ("start_date", ("startDate", "start_date")),
        ("due_date", ("dueDate", "due_date")),
        ("created_at", ("createdAt", "created_at", "created")),
        ("updated_at", ("updatedAt", "updated_at", "updated")),
    ):
        try:
            dates[attr] = parse_datetime(_first(data, *keys))
        except ValueError as e:
            raise TicketValidationError(index, keys[0], str(e)) from e

    return Ticket(
        id=str(ticket_id),
        number=number,
        title=title,
        type=str(data.get("type", "task")),
        priority=str(data.get("priority", "medium")),
        column_id=_optional_str(_first(data, "columnId", "column_id")),
        description=_optional_str(data.get("description")),
        assignee=_name_of(data.get("assignee")),
        reporter=_name_of(_first(data, "creator", "reporter")),
        sprint=_name_of(data.get("sprint")),
        labels=labels,
        story_points=story_points,
        estimate=_optional_str(data.get("estimate")),
        resolution=_optional_str(data.get("resolution")),
        environment=_optional_str(data.get("environment")),
        affected_version=_optional_str(_first(data, "affectedVersion", "affected_version")),
        fix_version=_optional_str(_first(data, "fixVersion", "fix_version")),
        **dates,
    )


def ticket_set_from_data(data: Any, *, project_key: str | None = None) -> TicketSet:
    """Build a :class:`TicketSet` from decoded JSON.

    ``data`` is either a bare list of ticket records or an object with
    ``projectKey``, ``columns`` and ``tickets`` entries. An explicit
    ``project_key`` overrides the one in the data.
    """
    if isinstance(data, list):
        records: Any = data
        columns_raw: Any = []
        key = None
    elif isinstance(data, dict):
        records = data.get("tickets", [])
        columns_raw = data.get("columns", [])
        key = _first(data, "projectKey", "project_key", "key")
    else:
        raise ValueError("expected a list of tickets or an object with 'tickets'")

    if not isinstance(records, list):
        raise ValueError("'tickets' must be a list")
    if not isinstance(columns_raw, list):
        raise ValueError("'columns' must be a list")

    columns = []
    for column in columns_raw:
        if not isinstance(column, dict) or "id" not in column or "name" not in column:
            raise ValueError("each column needs 'id' and 'name'")
        columns.append(StatusColumn(id=str(column["id"]), name=str(column["name"])))

    tickets = [ticket_from_dict(record, index) for index, record in enumerate(records)]
    return TicketSet(
        project_key=project_key or (str(key) if key else ""),
        columns=columns,
        tickets=tickets,
    )


def load_tickets(path: Path, *, project_key: str | None = None) -> TicketSet:
    """Load a JSON ticket export from disk.

    Args:
        path: Path to the JSON file.
        project_key: Overrides the project key stored in the file.

    Returns:
        The loaded ticket set.

    Raises:
        TicketFileNotFoundError: If the file does not exist.
        TicketFileParseError: If the file is not valid JSON or has the wrong shape.
        TicketValidationError: If a ticket record is malformed.
    """
    path = path.expanduser()
    if not path.exists():
        raise TicketFileNotFoundError(path)

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise TicketFileParseError(path, str(e)) from e

    try:
        ticket_set = ticket_set_from_data(data, project_key=project_key)
    except ValueError as e:
        raise TicketFileParseError(path, str(e)) from e

    logger.debug(
        "Loaded %d tickets and %d columns from %s",
        len(ticket_set.tickets),
        len(ticket_set.columns),
        path,
    )
    return ticket_set
