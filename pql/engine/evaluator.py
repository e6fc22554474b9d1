"""Evaluate a parsed query AST against an in-memory list of tickets."""

from __future__ import annotations

import logging
import math
import operator
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Union

from dateutil.relativedelta import relativedelta

from pql.engine.ast_nodes import (
    ASTNode,
    ComparisonNode,
    InNode,
    IsEmptyNode,
    LogicalNode,
    NotNode,
    ValueType,
)
from pql.engine.fields import PRIORITY_ORDER
from pql.tickets import StatusColumn, Ticket, parse_datetime

logger = logging.getLogger(__name__)

FieldValue = Union[str, int, float, datetime, None, list[str]]

# Map query field names to Ticket attributes.
# "status" and "key" are derived and handled separately.
_FIELD_TO_ATTRIBUTE: dict[str, str] = {
    "type": "type",
    "priority": "priority",
    "assignee": "assignee",
    "reporter": "reporter",
    "sprint": "sprint",
    "labels": "labels",
    "storyPoints": "story_points",
    "estimate": "estimate",
    "dueDate": "due_date",
    "startDate": "start_date",
    "created": "created_at",
    "updated": "updated_at",
    "resolution": "resolution",
    "environment": "environment",
    "affectedVersion": "affected_version",
    "fixVersion": "fix_version",
    "title": "title",
    "description": "description",
}

_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "=": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}

_ORDERING_OPERATORS = frozenset({">", "<", ">=", "<="})

_RELATIVE_DATE_RE = re.compile(r"-(\d+)([dwmy])")
_RELATIVE_UNITS = {"d": "days", "w": "weeks", "m": "months", "y": "years"}

_KEY_NUMBER_RE = re.compile(r"-(\d+)$")
_SPRINT_NUMBER_RE = re.compile(r"^(.*?)(\d+)$")


@dataclass(frozen=True)
class EvaluationContext:
    """Per-call inputs shared by every ticket comparison."""

    status_columns: Sequence[StatusColumn]
    project_key: str
    now: datetime

    def column_name(self, column_id: str | None) -> str:
        for column in self.status_columns:
            if column.id == column_id:
                return column.name
        return ""


def resolve_relative_date(value: str, now: datetime) -> datetime:
    """Turn ``-7d`` / ``-2w`` / ``-3m`` / ``-1y`` into an absolute time before ``now``.

    Raises:
        ValueError: If ``value`` is not a relative date, or lands before year 1.
        OverflowError: If the amount is too large for a date offset.
    """
    match = _RELATIVE_DATE_RE.fullmatch(value)
    if match is None:
        raise ValueError(f"Invalid relative date: {value}")
    amount = int(match.group(1))
    unit = _RELATIVE_UNITS[match.group(2)]
    return now - relativedelta(**{unit: amount})


def get_field_value(ticket: Ticket, field: str, ctx: EvaluationContext) -> FieldValue:
    """Extract the value of a canonical field from a ticket.

    Unknown fields yield ``None``.
    """
    if field == "status":
        return ctx.column_name(ticket.column_id)
    if field == "key":
        return f"{ctx.project_key}-{ticket.number}"
    attribute = _FIELD_TO_ATTRIBUTE.get(field)
    if attribute is None:
        return None
    value = getattr(ticket, attribute)
    if field == "labels":
        return list(value or [])
    return value


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def _as_float(value: int | float) -> float:
    try:
        return float(value)
    except OverflowError:
        # ints past the float range saturate, like a JSON number would
        return math.copysign(math.inf, value)


def _digits_to_int(digits: str) -> int | None:
    try:
        return int(digits)
    except ValueError:
        # more digits than int() accepts
        return None


def _to_epoch_ms(value: Any) -> float | None:
    """Milliseconds since the epoch, or None if the value is not a date."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp() * 1000
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _as_float(value)
    try:
        parsed = parse_datetime(str(value))
    except (ValueError, OverflowError):
        return None
    if parsed is None:
        return None
    return parsed.timestamp() * 1000


def _to_number(value: Any) -> float | None:
    """Coerce to a float, or None where the result would be NaN."""
    if isinstance(value, datetime):
        return _to_epoch_ms(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = _as_float(value)
    else:
        text = str(value).strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number):
        return None
    return number


def _to_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _fold(value: Any) -> str:
    return _to_text(value).lower()


def compare_values(
    field_value: Any,
    op: str,
    target: Any,
    value_type: ValueType,
    now: datetime,
) -> bool:
    """Compare one scalar field value against a query value.

    A missing field value only satisfies ``!=``. Dates compare as epoch
    milliseconds, numbers numerically and everything else as lower-cased
    strings.
    """
    if field_value is None:
        return op == "!="

    if value_type == "relative_date":
        try:
            target = resolve_relative_date(str(target), now)
        except (ValueError, OverflowError):
            # Too far back to be a date; treated like a missing value
            return op == "!="

    a: Any
    b: Any
    if isinstance(target, datetime) or value_type in ("date", "relative_date"):
        a = _to_epoch_ms(field_value)
        b = _to_epoch_ms(target)
        if a is None or b is None:
            return op == "!="
    elif isinstance(target, (int, float)) or value_type == "number":
        a = _to_number(field_value)
        b = _to_number(target)
        if a is None or b is None:
            return op == "!="
    else:
        a = _to_text(field_value).lower()
        b = _to_text(target).lower()

    return _COMPARATORS[op](a, b)


def _key_number(key: str) -> int | None:
    match = _KEY_NUMBER_RE.search(key)
    return _digits_to_int(match.group(1)) if match else None


def _sprint_sort_key(name: str) -> tuple[str, int | None]:
    """Split "Sprint 12" into ("sprint", 12) for natural ordering."""
    match = _SPRINT_NUMBER_RE.match(name)
    if match:
        return match.group(1).strip().lower(), _digits_to_int(match.group(2))
    return name.lower(), None


def _compare_sprint_names(a: str, b: str) -> int:
    a_text, a_number = _sprint_sort_key(a)
    b_text, b_number = _sprint_sort_key(b)
    if a_text != b_text:
        return -1 if a_text < b_text else 1
    return (a_number or 0) - (b_number or 0)


# ---------------------------------------------------------------------------
# Node evaluation
# ---------------------------------------------------------------------------


def _evaluate_key_comparison(
    node: ComparisonNode, ticket: Ticket, field_value: FieldValue, ctx: EvaluationContext
) -> bool:
    if node.value_type == "number":
        return compare_values(ticket.number, node.operator, node.value, "number", ctx.now)
    target_number = _key_number(str(node.value))
    if target_number is not None and node.operator in _ORDERING_OPERATORS:
        return compare_values(ticket.number, node.operator, target_number, "number", ctx.now)
    return compare_values(field_value, node.operator, node.value, node.value_type, ctx.now)


def _evaluate_comparison(node: ComparisonNode, ticket: Ticket, ctx: EvaluationContext) -> bool:
    field_value = get_field_value(ticket, node.field, ctx)

    if isinstance(field_value, list):
        if node.operator == "!=":
            # Nothing to compare: "not equal to X" cannot hold.
            if not field_value:
                return False
            return all(
                not compare_values(v, "=", node.value, node.value_type, ctx.now)
                for v in field_value
            )
        return any(
            compare_values(v, node.operator, node.value, node.value_type, ctx.now)
            for v in field_value
        )

    if node.field == "key":
        return _evaluate_key_comparison(node, ticket, field_value, ctx)

    # Text fields: "=" means "contains"
    if node.field in ("title", "description"):
        if field_value is None:
            return node.operator == "!="
        haystack = _to_text(field_value).lower()
        needle = _to_text(node.value).lower()
        if node.operator == "=":
            return needle in haystack
        if node.operator == "!=":
            return needle not in haystack

    # Priority is ordinal: lowest < low < medium < high < highest < critical
    if node.field == "priority":
        field_rank = PRIORITY_ORDER.get(str(field_value or "").lower(), -1)
        target_rank = PRIORITY_ORDER.get(str(node.value).lower(), -1)
        if field_rank >= 0 and target_rank >= 0:
            return compare_values(field_rank, node.operator, target_rank, "number", ctx.now)

    # Sprint names sort naturally: Sprint 2 < Sprint 10
    if node.field == "sprint" and field_value is not None:
        cmp = _compare_sprint_names(str(field_value), _to_text(node.value))
        return _COMPARATORS[node.operator](cmp, 0)

    return compare_values(field_value, node.operator, node.value, node.value_type, ctx.now)


def _evaluate_in(node: InNode, ticket: Ticket, ctx: EvaluationContext) -> bool:
    # An empty list filters nothing, so "type IN (" shows every ticket while typing.
    if not node.values:
        return True

    field_value = get_field_value(ticket, node.field, ctx)
    wanted = [_fold(v) for v in node.values]

    if isinstance(field_value, list):
        is_in = any(_fold(v) in wanted for v in field_value)
    elif field_value is None:
        is_in = False
    elif node.field == "key":
        full_key = str(field_value).lower()
        is_in = False
        for v in node.values:
            if isinstance(v, int):
                is_in = ticket.number == v
            else:
                text = v.lower()
                is_in = full_key == text or _key_number(text) == ticket.number
            if is_in:
                break
    else:
        is_in = _fold(field_value) in wanted

    return not is_in if node.negated else is_in


def _evaluate_is_empty(node: IsEmptyNode, ticket: Ticket, ctx: EvaluationContext) -> bool:
    field_value = get_field_value(ticket, node.field, ctx)
    is_empty = field_value is None or field_value == "" or field_value == []
    return not is_empty if node.negated else is_empty


def evaluate_node(node: ASTNode, ticket: Ticket, ctx: EvaluationContext) -> bool:
    """Return True if ``ticket`` satisfies ``node``."""
    if isinstance(node, ComparisonNode):
        return _evaluate_comparison(node, ticket, ctx)
    if isinstance(node, LogicalNode):
        # Chains like "a AND b AND c" nest on the left; walk them in a loop
        operands: list[ASTNode] = []
        current: ASTNode = node
        while isinstance(current, LogicalNode) and current.operator == node.operator:
            operands.append(current.right)
            current = current.left
        operands.append(current)
        combine = all if node.operator == "AND" else any
        return combine(evaluate_node(operand, ticket, ctx) for operand in reversed(operands))
    if isinstance(node, NotNode):
        return not evaluate_node(node.operand, ticket, ctx)
    if isinstance(node, InNode):
        return _evaluate_in(node, ticket, ctx)
    if isinstance(node, IsEmptyNode):
        return _evaluate_is_empty(node, ticket, ctx)
    raise TypeError(f"Not a query AST node: {node!r}")


def _make_context(
    status_columns: Iterable[StatusColumn], project_key: str, now: datetime | None
) -> EvaluationContext:
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return EvaluationContext(tuple(status_columns), project_key, now)


def matches(
    ast: ASTNode,
    ticket: Ticket,
    status_columns: Iterable[StatusColumn],
    project_key: str,
    *,
    now: datetime | None = None,
) -> bool:
    """Check a single ticket against a query."""
    return evaluate_node(ast, ticket, _make_context(status_columns, project_key, now))


def evaluate_query(
    ast: ASTNode,
    tickets: Iterable[Ticket],
    status_columns: Iterable[StatusColumn],
    project_key: str,
    *,
    now: datetime | None = None,
) -> list[Ticket]:
    """Filter tickets with a parsed query.

    Args:
        ast: Parsed query from :func:`pql.engine.parser.parse_query`.
        tickets: Tickets to filter.
        status_columns: Board columns, used to derive each ticket's status.
        project_key: Project prefix used to build ticket keys (``KEY-12``).
        now: Reference time for relative dates. Defaults to the current UTC
            time; it is read once per call.

    Returns:
        Matching tickets in their original order.
    """
    ctx = _make_context(status_columns, project_key, now)
    ticket_list = list(tickets)
    result = [ticket for ticket in ticket_list if evaluate_node(ast, ticket, ctx)]
    logger.debug("Query matched %d of %d tickets", len(result), len(ticket_list))
    return result
