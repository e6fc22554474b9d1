"""Turn an autocomplete context into concrete suggestions."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from pql.engine.autocomplete import AutocompleteContext
from pql.engine.fields import (
    DATE_FIELDS,
    ENUM_FIELDS,
    FIELD_DESCRIPTIONS,
    FIELD_VALUES,
    NUMERIC_FIELDS,
    ORDINAL_FIELDS,
    QUERY_FIELDS,
    resolve_field_name,
)
from pql.engine.tokens import TokenType, tokenize
from pql.exceptions import QueryParseError
from pql.tickets import TicketSet


@dataclass(frozen=True)
class Suggestion:
    """One completion item."""

    label: str
    value: str
    description: str = ""


@dataclass
class DynamicValues:
    """Project-specific values for fields without a fixed vocabulary."""

    status_names: list[str] = field(default_factory=list)
    assignee_names: list[str] = field(default_factory=list)
    sprint_names: list[str] = field(default_factory=list)
    label_names: list[str] = field(default_factory=list)

    @classmethod
    def from_ticket_set(cls, ticket_set: TicketSet) -> DynamicValues:
        """Collect the distinct statuses, people, sprints and labels of a project."""
        people: set[str] = set()
        sprints: set[str] = set()
        labels: set[str] = set()
        for ticket in ticket_set.tickets:
            people.update(name for name in (ticket.assignee, ticket.reporter) if name)
            if ticket.sprint:
                sprints.add(ticket.sprint)
            labels.update(ticket.labels)
        return cls(
            status_names=[column.name for column in ticket_set.columns],
            assignee_names=sorted(people, key=str.lower),
            sprint_names=sorted(sprints, key=str.lower),
            label_names=sorted(labels, key=str.lower),
        )

    def for_field(self, field_name: str) -> list[str]:
        if field_name == "status":
            return self.status_names
        # Reporter uses the same user pool as assignee
        if field_name in ("assignee", "reporter"):
            return self.assignee_names
        if field_name == "sprint":
            return self.sprint_names
        if field_name == "labels":
            return self.label_names
        return []


OPERATOR_SUGGESTIONS: tuple[Suggestion, ...] = (
    Suggestion("=", "=", "Equals"),
    Suggestion("!=", "!=", "Not equals"),
    Suggestion("IN", "IN", "In list of values"),
    Suggestion("NOT IN", "NOT IN", "Not in list"),
    Suggestion("IS EMPTY", "IS EMPTY", "Has no value"),
    Suggestion("IS NOT EMPTY", "IS NOT EMPTY", "Has a value"),
    Suggestion(">", ">", "Greater than"),
    Suggestion("<", "<", "Less than"),
    Suggestion(">=", ">=", "Greater or equal"),
    Suggestion("<=", "<=", "Less or equal"),
)

KEYWORD_SUGGESTIONS: tuple[Suggestion, ...] = (
    Suggestion("AND", "AND", "Both conditions must match"),
    Suggestion("OR", "OR", "Either condition must match"),
)

_ENUM_OPERATORS = frozenset({"=", "!=", "IN", "NOT IN"})
_ORDERING_OPERATORS = frozenset({">", "<", ">=", "<="})


def _filter_prefix(items: Iterable[Suggestion], partial: str) -> list[Suggestion]:
    prefix = partial.lower()
    return [item for item in items if item.label.lower().startswith(prefix)]


def _operators_for(field_name: str) -> list[Suggestion]:
    canonical = resolve_field_name(field_name)
    if canonical in ENUM_FIELDS:
        return [s for s in OPERATOR_SUGGESTIONS if s.value in _ENUM_OPERATORS]
    if canonical in NUMERIC_FIELDS or canonical in DATE_FIELDS or canonical in ORDINAL_FIELDS:
        return list(OPERATOR_SUGGESTIONS)
    return [s for s in OPERATOR_SUGGESTIONS if s.value not in _ORDERING_OPERATORS]


def get_suggestions(
    context: AutocompleteContext | None,
    dynamic_values: DynamicValues | None = None,
) -> list[Suggestion]:
    """List the completions for a context, filtered by the typed prefix.

    Args:
        context: Result of :func:`get_autocomplete_context`.
        dynamic_values: Statuses, people, sprints and labels of the project.

    Returns:
        Matching suggestions, possibly empty.
    """
    if context is None:
        return []

    if context.type == "field":
        items = [Suggestion(f, f, FIELD_DESCRIPTIONS.get(f, "")) for f in QUERY_FIELDS]
        return _filter_prefix(items, context.partial)

    if context.type == "value":
        if not context.field_name:
            return []
        canonical = resolve_field_name(context.field_name)
        values: Iterable[str] = FIELD_VALUES.get(canonical, ())
        if not values and dynamic_values is not None:
            values = dynamic_values.for_field(canonical)
        return _filter_prefix((Suggestion(v, v) for v in values), context.partial)

    if context.type == "operator":
        return _filter_prefix(_operators_for(context.field_name or ""), context.partial)

    return _filter_prefix(KEYWORD_SUGGESTIONS, context.partial)


_BARE_VALUE_TOKENS = frozenset({TokenType.VALUE, TokenType.FIELD, TokenType.NUMBER})


def _needs_quotes(value: str) -> bool:
    try:
        tokens = tokenize(value)
    except QueryParseError:
        return True
    # one bare token plus EOF, covering the whole value
    if len(tokens) != 2:
        return True
    return tokens[0].type not in _BARE_VALUE_TOKENS or tokens[0].value != value


def apply_suggestion(
    text: str, context: AutocompleteContext, suggestion: Suggestion
) -> tuple[str, int]:
    """Insert a suggestion into the query text.

    A value that would not read back as one bare word (spaces, quotes,
    commas, parentheses, keywords) is double-quoted, with ``"`` and ``\\``
    backslash-escaped. ``IN`` and ``NOT IN`` are followed by `` (`` to open
    the list; everything else by a space.

    Returns:
        The new text and the cursor offset just after the insertion.
    """
    before = text[: context.position]
    after = text[context.position + len(context.partial) :]

    insert = suggestion.value
    if context.type == "value" and _needs_quotes(insert):
        escaped = insert.replace("\\", "\\\\").replace('"', '\\"')
        insert = f'"{escaped}"'

    if context.type == "operator" and suggestion.value in ("IN", "NOT IN"):
        insert += " ("
    else:
        insert += " "
    return before + insert + after, len(before) + len(insert)
