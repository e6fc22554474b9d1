"""Suggest completions for a partially typed query."""

from __future__ import annotations

import json
from pathlib import Path

import click
from rich.markup import escape

from pql.cli import Context, pass_context
from pql.commands._common import (
    EXIT_QUERY_ERROR,
    EXIT_SUCCESS,
    load_ticket_set,
)
from pql.engine.autocomplete import get_autocomplete_context
from pql.engine.suggestions import DynamicValues, apply_suggestion, get_suggestions
from pql.utils.output import console, error


@click.command("complete")
@click.argument("text")
@click.option(
    "--cursor",
    type=int,
    default=None,
    help="Cursor offset in TEXT (default: end of text)",
)
@click.option(
    "--tickets",
    "-t",
    "tickets_file",
    type=click.Path(path_type=Path),
    default=None,
    help="JSON ticket export to draw statuses, people, sprints and labels from",
)
@click.option(
    "--project-key",
    "-k",
    default=None,
    help="Project key (overrides file and config)",
)
@click.option(
    "--apply",
    "apply_index",
    type=click.IntRange(min=1),
    default=None,
    help="Insert the Nth suggestion and print the resulting query",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format (default: text)",
)
@pass_context
def cli(
    ctx: Context,
    text: str,
    cursor: int | None,
    tickets_file: Path | None,
    project_key: str | None,
    apply_index: int | None,
    output_format: str,
) -> None:
    """Show what can be typed at the cursor in TEXT.

    Prints the completion context (field, operator, value or keyword)
    followed by the matching suggestions. Status, people, sprint and label
    values come from the ticket file when one is given or configured.

    \b
    Examples:
      pql complete 'pri'
      pql complete 'priority = h'
      pql complete -t tickets.json 'status IN (Todo, '
      pql complete --apply 1 'type = b'
    """
    position = len(text) if cursor is None else cursor
    context = get_autocomplete_context(text, position)

    dynamic_values = None
    if ctx.resolve_tickets_file(tickets_file) is not None:
        dynamic_values = DynamicValues.from_ticket_set(
            load_ticket_set(ctx, tickets_file, project_key)
        )

    suggestions = get_suggestions(context, dynamic_values)

    if apply_index is not None:
        if context is None or apply_index > len(suggestions):
            error(f"No suggestion #{apply_index} for this position")
            raise SystemExit(EXIT_QUERY_ERROR)
        new_text, new_cursor = apply_suggestion(text, context, suggestions[apply_index - 1])
        if output_format == "json":
            click.echo(json.dumps({"text": new_text, "cursor": new_cursor}))
        else:
            click.echo(new_text)
        raise SystemExit(EXIT_SUCCESS)

    if output_format == "json":
        click.echo(
            json.dumps(
                {
                    "context": None
                    if context is None
                    else {
                        "type": context.type,
                        "partial": context.partial,
                        "position": context.position,
                        "field": context.field_name,
                    },
                    "suggestions": [
                        {"label": s.label, "value": s.value, "description": s.description}
                        for s in suggestions
                    ],
                },
                indent=2,
            )
        )
        raise SystemExit(EXIT_SUCCESS)

    if context is None:
        console.print("[dim]No suggestions at this position[/dim]")
        raise SystemExit(EXIT_SUCCESS)

    header = f"[info]{context.type}[/info]"
    if context.field_name:
        header += f" for [query.field]{escape(context.field_name)}[/query.field]"
    if context.partial:
        header += f" matching {escape(repr(context.partial))}"
    console.print(header)

    for number, suggestion in enumerate(suggestions, start=1):
        line = f"  {number:>2}. {escape(suggestion.label)}"
        if suggestion.description:
            line += f"  [dim]{escape(suggestion.description)}[/dim]"
        console.print(line)

    raise SystemExit(EXIT_SUCCESS)
