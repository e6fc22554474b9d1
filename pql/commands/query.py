"""Filter tickets from a JSON export with a query."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import click
from rich.markup import escape
from rich.text import Text

from pql.cli import Context, pass_context
from pql.commands._common import (
    EXIT_QUERY_ERROR,
    EXIT_SUCCESS,
    load_ticket_set,
)
from pql.config import DEFAULT_CLIP, DEFAULT_COLUMNS, DEFAULT_FORMAT, OUTPUT_FORMATS
from pql.engine.ast_nodes import iter_fields
from pql.engine.evaluator import EvaluationContext, evaluate_query, get_field_value
from pql.engine.fields import CANONICAL_FIELDS, PRIORITY_ORDER, resolve_field_name
from pql.engine.parser import parse_query
from pql.exceptions import QueryParseError
from pql.tickets import Ticket
from pql.utils.output import (
    create_table,
    info,
    pager_print,
    print_query_error,
    render_table,
    warning,
)

# All available columns, keyed by canonical field name
# "clip": True means the column is subject to --clip truncation
COLUMN_DEFS: dict[str, dict] = {
    "key": {"header": "Key", "style": "ticket.key", "justify": "left"},
    "type": {"header": "Type", "style": None, "justify": "left"},
    "priority": {"header": "Priority", "style": None, "justify": "left"},
    "status": {"header": "Status", "style": None, "justify": "left"},
    "assignee": {"header": "Assignee", "style": None, "justify": "left"},
    "reporter": {"header": "Reporter", "style": None, "justify": "left"},
    "sprint": {"header": "Sprint", "style": None, "justify": "left"},
    "labels": {"header": "Labels", "style": None, "justify": "left", "clip": True},
    "storyPoints": {"header": "Pts", "style": None, "justify": "right"},
    "estimate": {"header": "Estimate", "style": None, "justify": "right"},
    "dueDate": {"header": "Due", "style": None, "justify": "left"},
    "startDate": {"header": "Start", "style": None, "justify": "left"},
    "created": {"header": "Created", "style": None, "justify": "left"},
    "updated": {"header": "Updated", "style": None, "justify": "left"},
    "resolution": {"header": "Resolution", "style": None, "justify": "left"},
    "environment": {"header": "Env", "style": None, "justify": "left", "clip": True},
    "affectedVersion": {"header": "Affects", "style": None, "justify": "left"},
    "fixVersion": {"header": "Fix", "style": None, "justify": "left"},
    "title": {"header": "Title", "style": "ticket.title", "justify": "left", "clip": True},
    "description": {"header": "Description", "style": None, "justify": "left", "clip": True},
}


def _clip_text(value: str, max_width: int | None) -> str:
    """Truncate text to max_width, appending ellipsis if clipped."""
    if max_width is None or len(value) <= max_width:
        return value
    if max_width <= 1:
        return value[:max_width]
    return value[: max_width - 1] + "…"


def _format_value(value: Any) -> str:
    """Format a field value for a table cell or key list."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, list):
        return ", ".join(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def parse_columns(columns: str) -> list[str]:
    """Resolve a comma-separated column list to canonical field names.

    Raises:
        click.BadParameter: If a column is unknown.
    """
    col_list = []
    for raw in columns.split(","):
        name = raw.strip()
        if not name:
            continue
        canonical = resolve_field_name(name)
        if canonical not in COLUMN_DEFS:
            raise click.BadParameter(
                f"Unknown column: {name}. Available: {', '.join(COLUMN_DEFS)}",
                param_hint="--columns",
            )
        col_list.append(canonical)
    return col_list


def _sort_value(ticket: Ticket, field: str, value: Any) -> tuple[int, Any]:
    """Sort key; the leading int keeps ranks and numbers apart from text."""
    if field == "key":
        return 0, ticket.number
    if isinstance(value, str):
        text = value.lower()
        if field == "priority" and text in PRIORITY_ORDER:
            return 0, PRIORITY_ORDER[text]
        return 1, text
    if isinstance(value, list):
        return 1, ", ".join(value).lower()
    return 0, value


def sort_tickets(
    tickets: list[Ticket], sort_col: str, ctx: EvaluationContext
) -> list[Ticket]:
    """Sort tickets by a column; a ``-`` prefix sorts descending.

    Tickets without a value for the column always come last.
    """
    descending = sort_col.startswith("-")
    field = resolve_field_name(sort_col.lstrip("-"))
    if field not in COLUMN_DEFS:
        raise click.BadParameter(
            f"Unknown sort column: {sort_col.lstrip('-')}", param_hint="--sort"
        )

    present: list[tuple[Any, Ticket]] = []
    missing: list[Ticket] = []
    for ticket in tickets:
        value = get_field_value(ticket, field, ctx)
        if value is None or value == "" or value == []:
            missing.append(ticket)
        else:
            present.append((_sort_value(ticket, field, value), ticket))

    present.sort(key=lambda item: item[0], reverse=descending)
    return [ticket for _, ticket in present] + missing


def ticket_to_dict(ticket: Ticket, ctx: EvaluationContext) -> dict[str, Any]:
    """Render a ticket with every query field, keyed by canonical name."""
    data: dict[str, Any] = {"id": ticket.id, "number": ticket.number}
    for field in CANONICAL_FIELDS:
        data[field] = _json_value(get_field_value(ticket, field, ctx))
    return data


@click.command("query")
@click.argument("query", nargs=-1, required=True)
@click.option(
    "--tickets",
    "-t",
    "tickets_file",
    type=click.Path(path_type=Path),
    default=None,
    help="JSON ticket export (default: [tickets] path from config)",
)
@click.option(
    "--project-key",
    "-k",
    default=None,
    help="Project key used to build ticket keys (overrides file and config)",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(list(OUTPUT_FORMATS)),
    default=None,
    help=f"Output format (default: {DEFAULT_FORMAT})",
)
@click.option(
    "--columns",
    "-C",
    default=None,
    help=f"Comma-separated list of columns to display (default: {DEFAULT_COLUMNS}). "
    f"Available: {', '.join(COLUMN_DEFS.keys())}",
)
@click.option(
    "--limit",
    "-l",
    type=click.IntRange(min=0),
    default=None,
    help="Limit number of results",
)
@click.option(
    "--sort",
    "-s",
    "sort_col",
    default=None,
    help="Sort by column name. Prefix with - for descending (e.g. -priority)",
)
@click.option(
    "--clip",
    "-W",
    type=click.IntRange(min=0),
    default=None,
    help=f"Max width for title/description/labels columns (0 = no clip, default: {DEFAULT_CLIP})",
)
@pass_context
def cli(
    ctx: Context,
    query: tuple[str, ...],
    tickets_file: Path | None,
    project_key: str | None,
    output_format: str | None,
    columns: str | None,
    limit: int | None,
    sort_col: str | None,
    clip: int | None,
) -> None:
    """Filter tickets with a query.

    QUERY is joined with spaces, so quoting the whole query is optional.

    \b
    Syntax examples:
      pql query 'type = bug AND priority >= high'
      pql query 'status IN (Todo, "In Progress") assignee = alice'
      pql query 'NOT (labels = backend) OR dueDate < -1w'
      pql query 'sprint IS NOT EMPTY AND key > "PROJ-10"'

    \b
    Output formats:
      --format table   Rich table (default)
      --format keys    One ticket key per line (for piping)
      --format json    JSON array of ticket objects
    """
    config = ctx.config
    output_format = output_format or (config.output_format if config else DEFAULT_FORMAT)
    columns = columns or (config.columns if config else DEFAULT_COLUMNS)
    if clip is None:
        clip = config.clip if config else DEFAULT_CLIP

    col_list = parse_columns(columns)
    if not col_list:
        raise click.BadParameter("No columns selected", param_hint="--columns")

    # Join query arguments into single string
    query_string = " ".join(query)

    try:
        ast = parse_query(query_string)
    except QueryParseError as e:
        print_query_error(query_string, e)
        raise SystemExit(EXIT_QUERY_ERROR)

    if not ctx.quiet:
        for name in dict.fromkeys(iter_fields(ast)):
            if name not in CANONICAL_FIELDS:
                warning(f"Unknown field '{name}' never has a value")

    ticket_set = load_ticket_set(ctx, tickets_file, project_key)
    eval_ctx = EvaluationContext(
        tuple(ticket_set.columns), ticket_set.project_key, datetime.now(timezone.utc)
    )

    results = evaluate_query(
        ast,
        ticket_set.tickets,
        ticket_set.columns,
        ticket_set.project_key,
        now=eval_ctx.now,
    )

    if sort_col is not None:
        results = sort_tickets(results, sort_col, eval_ctx)

    if limit is not None:
        results = results[:limit]

    if output_format == "json":
        click.echo(json.dumps([ticket_to_dict(t, eval_ctx) for t in results], indent=2))
    elif output_format == "keys":
        for ticket in results:
            click.echo(_format_value(get_field_value(ticket, "key", eval_ctx)))
    elif not results:
        if not ctx.quiet:
            info(f"No tickets match: {escape(query_string)}")
    else:
        _print_table(results, query_string, col_list, eval_ctx, clip if clip > 0 else None)

    raise SystemExit(EXIT_SUCCESS)


def _print_table(
    tickets: list[Ticket],
    query_string: str,
    col_list: list[str],
    eval_ctx: EvaluationContext,
    clip_width: int | None = None,
) -> None:
    """Print results as a Rich table, using pager when appropriate."""
    # Print title separately so it doesn't interfere with pager header
    info(f"Query: {escape(query_string)} ({len(tickets)} results)")

    table = create_table()

    for col in col_list:
        cdef = COLUMN_DEFS[col]
        kwargs: dict = {"justify": cdef["justify"]}
        if cdef["style"]:
            kwargs["style"] = cdef["style"]
        table.add_column(cdef["header"], no_wrap=True, **kwargs)

    for ticket in tickets:
        row: list[Text] = []
        for col in col_list:
            text = _format_value(get_field_value(ticket, col, eval_ctx))
            if COLUMN_DEFS[col].get("clip"):
                text = _clip_text(text, clip_width)
            row.append(Text(text))
        table.add_row(*row)

    # Top border, header row and header rule stay visible in the pager
    pager_print(render_table(table), header_lines=3)
