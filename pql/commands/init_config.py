"""Write a starter configuration file for pql."""

from __future__ import annotations

from importlib import resources
from pathlib import Path

import click
import tomli_w
from rich.markup import escape

from pql.cli import Context, pass_context
from pql.config import get_default_config_path
from pql.utils.output import error, info, success, warning

# Commented-out [tickets] lines in config.example.toml, replaced when values are given
_EXAMPLE_PATH_LINE = '# path = "~/exports/tickets.json"'
_EXAMPLE_KEY_LINE = '# project_key = "PROJ"'


def _load_example_config() -> str:
    """Load the example configuration from package data."""
    return resources.files("pql").joinpath("config.example.toml").read_text()


def render_config(tickets_file: Path | None = None, project_key: str | None = None) -> str:
    """Return the example config with the ``[tickets]`` settings filled in."""
    content = _load_example_config()
    if tickets_file is not None:
        line = tomli_w.dumps({"path": str(tickets_file)}).rstrip("\n")
        content = content.replace(_EXAMPLE_PATH_LINE, line)
    if project_key is not None:
        line = tomli_w.dumps({"project_key": project_key}).rstrip("\n")
        content = content.replace(_EXAMPLE_KEY_LINE, line)
    return content


@click.command("init-config")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    default=False,
    help="Overwrite an existing config file",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Where to write the config (default: ~/.config/pql/config.toml)",
)
@click.option(
    "--tickets",
    "-t",
    "tickets_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Ticket export to store as [tickets] path",
)
@click.option(
    "--project-key",
    "-k",
    default=None,
    help="Project key to store as [tickets] project_key",
)
@pass_context
def cli(
    ctx: Context,
    force: bool,
    output: Path | None,
    tickets_file: Path | None,
    project_key: str | None,
) -> None:
    """Create a config file from the bundled example.

    With --tickets the export path is written into the file, so later
    commands can omit --tickets.

    \b
    Examples:
      pql init-config
      pql init-config --tickets ~/exports/board.json --project-key PROJ
      pql init-config --output ./pql.toml --force
    """
    config_path = (output or get_default_config_path()).expanduser().resolve()

    if config_path.exists() and not force:
        error(
            f"Config file already exists: {escape(str(config_path))}",
            hint="Use --force to overwrite",
        )
        raise SystemExit(1)

    if tickets_file is not None:
        tickets_file = tickets_file.expanduser().resolve()
        if not tickets_file.exists() and not ctx.quiet:
            warning(f"Ticket file not found: {escape(str(tickets_file))}")

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(render_config(tickets_file, project_key))
    except OSError as e:
        error(f"Failed to write config file: {escape(str(e))}")
        raise SystemExit(1)

    success(f"Created config file: {escape(str(config_path))}")
    if tickets_file is None:
        info("Set \\[tickets] path to your ticket export to skip --tickets.")
