"""Shared pytest fixtures."""

from __future__ import annotations

import json
import logging
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
from rich.logging import RichHandler

# Import the group before any command module so every command registers on it
import pql.cli  # noqa: F401
from pql.tickets import TicketSet, ticket_set_from_data
from pql.utils import output

if TYPE_CHECKING:
    from collections.abc import Generator


# Reference clock for relative dates: 2024-11-25 12:00 UTC
FIXED_NOW = datetime(2024, 11, 25, 12, 0, tzinfo=timezone.utc)

PROJECT_DATA: dict[str, Any] = {
    "projectKey": "TEST",
    "columns": [
        {"id": "col-1", "name": "To Do"},
        {"id": "col-2", "name": "In Progress"},
        {"id": "col-3", "name": "Done"},
    ],
    "tickets": [
        {
            "id": "t1",
            "number": 1,
            "title": "Fix login bug",
            "type": "bug",
            "priority": "high",
            "columnId": "col-1",
            "storyPoints": 3,
            "assignee": {"id": "u1", "name": "Jordan"},
            "creator": {"id": "u2", "name": "Alex"},
            "sprint": {"id": "s1", "name": "Sprint 1"},
            "labels": [{"id": "l1", "name": "frontend"}],
            "dueDate": "2024-12-31",
            "createdAt": "2024-11-01T09:00:00Z",
            "updatedAt": "2024-11-20T09:00:00Z",
        },
        {
            "id": "t2",
            "number": 2,
            "title": "Add dashboard feature",
            "type": "story",
            "priority": "medium",
            "columnId": "col-2",
            "storyPoints": 8,
            "assignee": {"id": "u2", "name": "Alex"},
            "creator": {"id": "u1", "name": "Jordan"},
            "sprint": {"id": "s1", "name": "Sprint 1"},
            "labels": [
                {"id": "l1", "name": "frontend"},
                {"id": "l2", "name": "backend"},
            ],
            "description": "Charts for the weekly burndown",
            "createdAt": "2024-11-10T09:00:00Z",
        },
        {
            "id": "t3",
            "number": 3,
            "title": "Update docs",
            "type": "task",
            "priority": "low",
            "columnId": "col-3",
            "storyPoints": 1,
            "resolution": "Done",
            "createdAt": "2024-10-01T09:00:00Z",
        },
        {
            "id": "t4",
            "number": 4,
            "title": "Critical production issue",
            "type": "bug",
            "priority": "critical",
            "columnId": "col-1",
            "storyPoints": 5,
            "assignee": {"id": "u1", "name": "Jordan"},
            "sprint": {"id": "s2", "name": "Sprint 2"},
            "labels": [{"id": "l3", "name": "urgent"}],
            "environment": "production",
            "fixVersion": "1.4.0",
            "dueDate": "2024-11-20",
            "createdAt": "2024-11-15T09:00:00Z",
        },
        {
            "id": "t5",
            "number": 5,
            "title": "Refactor auth module",
            "type": "subtask",
            "priority": "medium",
            "columnId": "col-2",
            "createdAt": "2024-11-20T09:00:00Z",
        },
    ],
}


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    path = Path(tempfile.mkdtemp())
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def project_data() -> dict[str, Any]:
    """A fresh copy of the five-ticket sample project."""
    return json.loads(json.dumps(PROJECT_DATA))


@pytest.fixture
def ticket_set(project_data: dict[str, Any]) -> TicketSet:
    """The sample project as loaded tickets."""
    return ticket_set_from_data(project_data)


@pytest.fixture
def tickets_file(temp_dir: Path, project_data: dict[str, Any]) -> Path:
    """The sample project written as a JSON export."""
    path = temp_dir / "tickets.json"
    path.write_text(json.dumps(project_data))
    return path


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def sample_config(temp_dir: Path, tickets_file: Path) -> Path:
    """Create a sample config file pointing at the sample tickets."""
    config_path = temp_dir / "config.toml"
    config_path.write_text(f"""[tickets]
path = "{tickets_file.as_posix()}"
project_key = "DEMO"

[display]
colored_output = false
format = "keys"
columns = "key,priority,title"
clip = 20
""")
    return config_path


@pytest.fixture(autouse=True)
def reset_output_state() -> Generator[None, None, None]:
    """Undo global console settings changed by CLI invocations."""
    yield
    output.set_color(True)
    output.set_pager(None)
    output.set_verbosity(verbose=False, debug=False)
    logger = logging.getLogger("pql")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
