"""Helpers shared by the query and complete commands."""

from __future__ import annotations

from pathlib import Path

from rich.markup import escape

from pql.cli import Context
from pql.exceptions import TicketLoadError
from pql.tickets import TicketSet, load_tickets
from pql.utils.output import error, verbose

EXIT_SUCCESS = 0
EXIT_QUERY_ERROR = 1
EXIT_LOAD_ERROR = 2


def load_ticket_set(
    ctx: Context, tickets_file: Path | None, project_key: str | None
) -> TicketSet:
    """Load the ticket export named by the option or the config.

    Reports the problem and exits with ``EXIT_LOAD_ERROR`` if no file is
    configured or it cannot be loaded.
    """
    path = ctx.resolve_tickets_file(tickets_file)
    if path is None:
        error(
            "No ticket file given",
            hint="Pass --tickets FILE or set \\[tickets] path in the config",
        )
        raise SystemExit(EXIT_LOAD_ERROR)

    try:
        ticket_set = load_tickets(path, project_key=ctx.resolve_project_key(project_key))
    except TicketLoadError as e:
        error(escape(str(e)))
        raise SystemExit(EXIT_LOAD_ERROR)

    verbose(f"Loaded {len(ticket_set.tickets)} tickets from {escape(str(path))}")
    return ticket_set
