"""Rich console output helpers for pql.

Results go to stdout through :data:`console`; warnings, errors and debug
logging go to stderr through :data:`error_console`, so piped ``keys`` and
``json`` output stays clean.
"""

from __future__ import annotations

import io
import logging
import os
import shutil
import subprocess
import sys
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from pql.exceptions import QueryParseError

# Set by cli.py after argument parsing
_verbose_enabled: bool = False

# None = page when stdout is a TTY and the output is taller than it
_pager_mode: bool | None = None

THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "ticket.key": "bold",
        "ticket.title": "italic",
        "query.field": "cyan",
        "query.keyword": "magenta",
        "query.error": "bold red underline",
    }
)

console = Console(theme=THEME, stderr=False)
error_console = Console(theme=THEME, stderr=True)


def set_verbosity(*, verbose: bool = False, debug: bool = False) -> None:
    """Switch verbose messages and debug logging on or off.

    In debug mode the ``pql`` loggers (parser, evaluator, ticket loader)
    are routed to stderr through rich.
    """
    global _verbose_enabled
    _verbose_enabled = verbose or debug

    pql_logger = logging.getLogger("pql")
    if debug and not any(isinstance(h, RichHandler) for h in pql_logger.handlers):
        pql_logger.addHandler(RichHandler(console=error_console, show_path=False))
    pql_logger.setLevel(logging.DEBUG if debug else logging.WARNING)


def set_color(enabled: bool) -> None:
    console.no_color = not enabled
    error_console.no_color = not enabled


def set_pager(mode: bool | None) -> None:
    """True pages always, False never, None decides per output."""
    global _pager_mode
    _pager_mode = mode


def _find_pager() -> list[str]:
    """$PAGER, else ``less -RFS`` (keep colors, quit if one screen, chop long rows)."""
    pager_env = os.environ.get("PAGER")
    if pager_env:
        return pager_env.split()
    return ["less", "-RFS"]


def render_table(table: Table) -> str:
    """Render a table to a string, unwrapped and colored like :data:`console`."""
    buf = io.StringIO()
    Console(
        file=buf,
        theme=THEME,
        force_terminal=not console.no_color,
        no_color=console.no_color,
        width=1000,
    ).print(table)
    return buf.getvalue()


def _write_stdout(content: str) -> None:
    sys.stdout.write(content)
    sys.stdout.flush()


def pager_print(content: str, *, header_lines: int = 0) -> None:
    """Write already-rendered output, through the pager when appropriate.

    Args:
        content: Rendered text, possibly with ANSI colors.
        header_lines: Lines kept on screen while scrolling (``less --header``).
    """
    use_pager = _pager_mode
    if use_pager is None:
        use_pager = (
            sys.stdout.isatty() and content.count("\n") > shutil.get_terminal_size().lines
        )

    if not use_pager:
        _write_stdout(content)
        return

    cmd = _find_pager()
    if cmd[0] == "less" and header_lines > 0:
        cmd.append(f"--header={header_lines}")

    env = os.environ.copy()
    env.setdefault("LESSCHARSET", "utf-8")
    try:
        proc = subprocess.Popen(
            cmd, stdin=subprocess.PIPE, encoding="utf-8", errors="replace", env=env
        )
        proc.communicate(input=content)
    except (OSError, subprocess.SubprocessError):
        _write_stdout(content)


def info(message: str) -> None:
    console.print(f"[info]{message}[/info]")


def warning(message: str) -> None:
    """Print a warning to stderr."""
    error_console.print(f"[warning]Warning:[/warning] {message}")


def error(message: str, hint: str | None = None) -> None:
    """Print an error, and optionally a hint on how to fix it, to stderr."""
    error_console.print(f"[error]Error:[/error] {message}")
    if hint:
        error_console.print(f"  [info]Hint:[/info] {hint}")


def success(message: str) -> None:
    console.print(f"[success]{message}[/success]")


def verbose(message: str) -> None:
    """Print a message only with --verbose or --debug."""
    if _verbose_enabled:
        console.print(f"[info]{message}[/info]")


def create_table(title: str | None = None, **kwargs: Any) -> Table:
    """Table with a bold header row unless told otherwise."""
    kwargs.setdefault("show_header", True)
    kwargs.setdefault("header_style", "bold")
    return Table(title=title, **kwargs)


def render_query_error(query: str, exc: QueryParseError) -> Text:
    """Render a query with the failing span underlined and a caret line below.

    Args:
        query: The query text that failed to parse.
        exc: The parse error carrying position and length.

    Returns:
        Two lines of rich Text: the query and the marker line.
    """
    start = max(0, min(exc.position, len(query)))
    end = max(start, min(start + exc.length, len(query)))

    text = Text("  ")
    text.append(query[:start])
    text.append(query[start:end], style="query.error")
    text.append(query[end:])
    text.append("\n  ")
    text.append(" " * start)
    text.append("^" * max(1, exc.length), style="error")
    return text


def print_query_error(query: str, exc: QueryParseError) -> None:
    """Print a parse error with a caret under the offending text."""
    error(f"Invalid query: {escape(exc.message)} (at position {exc.position})")
    error_console.print(render_query_error(query, exc))
