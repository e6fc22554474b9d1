"""Command-line interface for pql."""

from __future__ import annotations

import os
from pathlib import Path

import click
from rich.markup import escape

from pql import __version__
from pql.config import Config, load_config
from pql.exceptions import ConfigError
from pql.utils.output import (
    error,
    set_color,
    set_pager,
    set_verbosity,
    warning,
)

# load_config warns about a missing file; only worth showing with --verbose
_MISSING_CONFIG_PREFIX = "No config file found"


class Context:
    """Shared state handed to every command."""

    def __init__(self) -> None:
        self.config: Config | None = None
        self.verbose: bool = False
        self.quiet: bool = False

    def resolve_tickets_file(self, override: Path | None = None) -> Path | None:
        """Ticket export from ``--tickets``, else ``[tickets] path``."""
        if override is not None:
            return override
        return self.config.tickets_file if self.config else None

    def resolve_project_key(self, override: str | None = None) -> str | None:
        """Project key from ``--project-key``, else ``[tickets] project_key``.

        ``None`` means the key stored in the ticket file is used.
        """
        if override is not None:
            return override
        return self.config.project_key if self.config else None


pass_context = click.make_pass_decorator(Context, ensure=True)


def _color_wanted(no_color_flag: bool, config: Config | None) -> bool:
    if no_color_flag or "NO_COLOR" in os.environ:
        return False
    return config is None or config.colored_output


def _report_config_warnings(warnings: list[str], app_ctx: Context) -> None:
    if app_ctx.quiet:
        return
    for message in warnings:
        if message.startswith(_MISSING_CONFIG_PREFIX) and not app_ctx.verbose:
            continue
        warning(escape(message))


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (default: ~/.config/pql/config.toml)",
)
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable colored output (also set by NO_COLOR)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Report config and ticket file details",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Log parser and evaluator internals to stderr (implies --verbose)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    default=False,
    help="Only print results and errors",
)
@click.option(
    "--pager/--no-pager",
    default=None,
    help="Page table output (default: when it does not fit the terminal)",
)
@click.version_option(version=__version__, prog_name="pql")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    no_color: bool,
    verbose: bool,
    debug: bool,
    quiet: bool,
    pager: bool | None,
) -> None:
    """pql: Filter project tickets with a small JQL-like query language.

    A query compares ticket fields and combines the comparisons with AND,
    OR, NOT and parentheses. Conditions written side by side are joined
    with AND:

    \b
        priority >= high status != Done
        type IN (bug, task) AND (assignee = alice OR assignee IS EMPTY)
        created > -2w AND labels = backend

    Tickets come from a JSON export given with --tickets or configured
    under [tickets] in ~/.config/pql/config.toml (see: pql init-config).

    Examples:

    \b
        pql query -t tickets.json 'type = bug AND assignee = alice'
        pql parse 'labels IN (backend, api) OR created > -7d'
        pql complete -t tickets.json 'status = '
        pql help query
    """
    app_ctx = ctx.ensure_object(Context)
    app_ctx.verbose = verbose or debug
    app_ctx.quiet = quiet

    set_verbosity(verbose=verbose, debug=debug)
    set_pager(pager)
    set_color(_color_wanted(no_color, None))

    try:
        loaded_config, warnings = load_config(config)
    except ConfigError as e:
        error(escape(str(e)), hint="Fix the file or pass --config with another one")
        ctx.exit(2)
        return

    app_ctx.config = loaded_config
    set_color(_color_wanted(no_color, loaded_config))
    _report_config_warnings(warnings, app_ctx)


@cli.command("help")
@click.argument("command", required=False, nargs=-1)
@click.pass_context
def help_cmd(ctx: click.Context, command: tuple[str, ...]) -> None:
    """Show help for a command."""
    group = cli
    # Resolve subcommand chain
    for name in command:
        cmd = group.get_command(ctx, name)
        if cmd is None:
            error(f"Unknown command: {escape(name)}", hint="Run 'pql help' to list commands")
            ctx.exit(1)
            return
        if isinstance(cmd, click.Group):
            group = cmd
        else:
            click.echo(cmd.get_help(ctx))
            return
    click.echo(group.get_help(ctx))


def register_commands() -> None:
    """Attach every command module found in :mod:`pql.commands` to the group."""
    from pql.commands import discover_commands

    for command in discover_commands():
        cli.add_command(command)


# Register commands on import
register_commands()
