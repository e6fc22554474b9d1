"""Unit tests for ticket loading."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from pql.exceptions import (
    TicketFileNotFoundError,
    TicketFileParseError,
    TicketLoadError,
    TicketValidationError,
)
from pql.tickets import (
    StatusColumn,
    Ticket,
    load_tickets,
    parse_datetime,
    ticket_from_dict,
    ticket_set_from_data,
)


class TestParseDatetime:
    def test_date_only_is_utc_midnight(self) -> None:
        assert parse_datetime("2024-12-31") == datetime(2024, 12, 31, tzinfo=timezone.utc)

    def test_keeps_offset(self) -> None:
        parsed = parse_datetime("2024-11-01T09:00:00+02:00")
        assert parsed is not None
        assert parsed.utcoffset() == timedelta(hours=2)

    def test_zulu(self) -> None:
        assert parse_datetime("2024-11-01T09:00:00Z") == datetime(
            2024, 11, 1, 9, tzinfo=timezone.utc
        )

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty(self, value: Any) -> None:
        assert parse_datetime(value) is None

    def test_invalid(self) -> None:
        with pytest.raises(ValueError):
            parse_datetime("not a date")

    def test_wrong_type(self) -> None:
        with pytest.raises(ValueError):
            parse_datetime(20241231)


class TestTicketFromDict:
    def test_minimal_record_uses_defaults(self) -> None:
        ticket = ticket_from_dict({"number": 7, "title": "Something"})
        assert ticket == Ticket(id="7", number=7, title="Something")
        assert ticket.type == "task"
        assert ticket.priority == "medium"
        assert ticket.labels == []

    def test_camel_case_and_nested_names(self) -> None:
        ticket = ticket_from_dict(
            {
                "id": "abc",
                "number": 1,
                "title": "Fix",
                "columnId": "col-1",
                "storyPoints": 2.5,
                "assignee": {"id": "u1", "name": "Jordan"},
                "creator": {"name": "Alex"},
                "sprint": {"name": "Sprint 3"},
                "labels": [{"name": "ui"}, "api"],
                "affectedVersion": "1.0",
                "fixVersion": "1.1",
                "dueDate": "2024-12-31",
            }
        )
        assert ticket.column_id == "col-1"
        assert ticket.story_points == 2.5
        assert ticket.assignee == "Jordan"
        assert ticket.reporter == "Alex"
        assert ticket.sprint == "Sprint 3"
        assert ticket.labels == ["ui", "api"]
        assert ticket.affected_version == "1.0"
        assert ticket.fix_version == "1.1"
        assert ticket.due_date == datetime(2024, 12, 31, tzinfo=timezone.utc)

    def test_snake_case_keys(self) -> None:
        ticket = ticket_from_dict(
            {
                "number": 1,
                "title": "Fix",
                "column_id": "col-2",
                "story_points": 3,
                "reporter": "Sam",
                "created_at": "2024-01-01",
            }
        )
        assert ticket.column_id == "col-2"
        assert ticket.story_points == 3
        assert ticket.reporter == "Sam"
        assert ticket.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_null_people(self) -> None:
        ticket = ticket_from_dict({"number": 1, "title": "x", "assignee": None, "sprint": None})
        assert ticket.assignee is None
        assert ticket.sprint is None

    @pytest.mark.parametrize(
        ("record", "field"),
        [
            ({"title": "x"}, "number"),
            ({"number": "1", "title": "x"}, "number"),
            ({"number": True, "title": "x"}, "number"),
            ({"number": 1}, "title"),
            ({"number": 1, "title": "x", "labels": "ui"}, "labels"),
            ({"number": 1, "title": "x", "storyPoints": "3"}, "storyPoints"),
            ({"number": 1, "title": "x", "dueDate": "soon"}, "dueDate"),
        ],
    )
    def test_invalid_records(self, record: dict, field: str) -> None:
        with pytest.raises(TicketValidationError) as exc_info:
            ticket_from_dict(record, 4)
        assert exc_info.value.field == field
        assert exc_info.value.index == 4

    def test_not_an_object(self) -> None:
        with pytest.raises(TicketValidationError):
            ticket_from_dict(["not", "a", "dict"])  # type: ignore[arg-type]


class TestTicketSetFromData:
    def test_project_object(self, project_data: dict) -> None:
        ticket_set = ticket_set_from_data(project_data)
        assert ticket_set.project_key == "TEST"
        assert ticket_set.columns[0] == StatusColumn("col-1", "To Do")
        assert [t.id for t in ticket_set.tickets] == ["t1", "t2", "t3", "t4", "t5"]

    def test_bare_list(self) -> None:
        ticket_set = ticket_set_from_data([{"number": 1, "title": "x"}])
        assert ticket_set.project_key == ""
        assert ticket_set.columns == []
        assert len(ticket_set.tickets) == 1

    def test_project_key_override(self, project_data: dict) -> None:
        assert ticket_set_from_data(project_data, project_key="ABC").project_key == "ABC"

    @pytest.mark.parametrize(
        "data",
        [
            "tickets",
            {"tickets": {"number": 1}},
            {"tickets": [], "columns": "todo"},
            {"tickets": [], "columns": [{"id": "c1"}]},
        ],
    )
    def test_wrong_shape(self, data: Any) -> None:
        with pytest.raises(ValueError):
            ticket_set_from_data(data)


class TestLoadTickets:
    def test_load(self, tickets_file: Path) -> None:
        ticket_set = load_tickets(tickets_file)
        assert ticket_set.project_key == "TEST"
        assert len(ticket_set.tickets) == 5
        assert ticket_set.tickets[1].labels == ["frontend", "backend"]

    def test_project_key_override(self, tickets_file: Path) -> None:
        assert load_tickets(tickets_file, project_key="XY").project_key == "XY"

    def test_missing_file(self, temp_dir: Path) -> None:
        with pytest.raises(TicketFileNotFoundError):
            load_tickets(temp_dir / "missing.json")

    def test_invalid_json(self, temp_dir: Path) -> None:
        path = temp_dir / "bad.json"
        path.write_text("{not json")
        with pytest.raises(TicketFileParseError):
            load_tickets(path)

    def test_wrong_shape(self, temp_dir: Path) -> None:
        path = temp_dir / "shape.json"
        path.write_text(json.dumps({"tickets": "nope"}))
        with pytest.raises(TicketFileParseError, match="must be a list"):
            load_tickets(path)

    def test_invalid_record(self, temp_dir: Path) -> None:
        path = temp_dir / "record.json"
        path.write_text(json.dumps([{"number": 1, "title": "ok"}, {"number": 2}]))
        with pytest.raises(TicketLoadError) as exc_info:
            load_tickets(path)
        assert isinstance(exc_info.value, TicketValidationError)
        assert exc_info.value.index == 1
