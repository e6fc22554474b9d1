"""Reading and writing ``~/.config/pql/config.toml``.

The file has two tables::

    [tickets]
    path = "~/exports/tickets.json"
    project_key = "PROJ"

    [display]
    colored_output = true
    format = "table"
    columns = "key,type,priority,status,assignee,sprint,title"
    clip = 40

Every key is optional. Command-line options win over the file.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomli_w

from pql.exceptions import (
    ConfigParseError,
    ConfigValidationError,
)

OUTPUT_FORMATS: tuple[str, ...] = ("table", "keys", "json")

DEFAULT_FORMAT = "table"
DEFAULT_COLUMNS = "key,type,priority,status,assignee,sprint,title"
DEFAULT_CLIP = 40


def get_default_config_path() -> Path:
    return Path.home() / ".config" / "pql" / "config.toml"


@dataclass
class Config:
    """Settings read from the config file, or the defaults.

    Attributes:
        tickets_file: Ticket export used when ``--tickets`` is not given.
        project_key: Prefix for ticket keys, replacing the one in the export.
        colored_output: False turns off rich colors, like ``--no-color``.
        output_format: Result format when ``--format`` is not given.
        columns: Comma-separated table columns.
        clip: Width limit for title and description cells (0 keeps them whole).
        config_path: File the settings came from, None for defaults.
    """

    tickets_file: Path | None = None
    project_key: str | None = None
    colored_output: bool = True
    output_format: str = DEFAULT_FORMAT
    columns: str = DEFAULT_COLUMNS
    clip: int = DEFAULT_CLIP
    config_path: Path | None = None

    def validate(self) -> list[str]:
        """Check values that the TOML types alone cannot catch.

        Expands ``~`` in the ticket path. A missing ticket export only
        produces a warning, since it may be exported later.

        Raises:
            ConfigValidationError: On an unknown format or a negative clip.
        """
        warnings: list[str] = []

        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigValidationError(
                "display.format",
                self.output_format,
                f"must be one of {', '.join(OUTPUT_FORMATS)}",
            )
        if self.clip < 0:
            raise ConfigValidationError("display.clip", self.clip, "must not be negative")

        if self.tickets_file is not None:
            self.tickets_file = self.tickets_file.expanduser().resolve()
            if not self.tickets_file.exists():
                warnings.append(f"Ticket file not found: {self.tickets_file}")

        return warnings


def load_config(config_path: Path | None = None) -> tuple[Config, list[str]]:
    """Read the config file at *config_path*, or the default location.

    A missing file is not an error: the defaults are returned together
    with a warning pointing at ``pql init-config``.

    Returns:
        The config and a list of warnings for the caller to show.

    Raises:
        ConfigParseError: The file is not valid TOML.
        ConfigValidationError: A value has the wrong type or is out of range.
    """
    path = (config_path or get_default_config_path()).expanduser().resolve()

    if not path.exists():
        config = Config()
        missing = (
            f"No config file found at {path}. Using defaults. "
            f"Create config with: pql init-config"
        )
        return config, [missing, *config.validate()]

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(path, str(e)) from e

    config = _config_from_dict(data, path)
    return config, config.validate()


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigValidationError(name, section, "must be a table")
    return section


def _string_or_list(key: str, value: Any) -> str:
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return ",".join(value)
    if not isinstance(value, str):
        raise ConfigValidationError(key, value, "must be a string or list of strings")
    return value


def _expect(key: str, value: Any, kind: type, reason: str) -> Any:
    # bool is an int subclass; "clip = true" must not pass as a width
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ConfigValidationError(key, value, reason)
    return value


def _config_from_dict(data: dict[str, Any], config_path: Path) -> Config:
    config = Config(config_path=config_path)

    tickets = _section(data, "tickets")
    if "path" in tickets:
        path = _expect("tickets.path", tickets["path"], str, "must be a string path")
        config.tickets_file = Path(path)
    if "project_key" in tickets:
        config.project_key = _expect(
            "tickets.project_key", tickets["project_key"], str, "must be a string"
        )

    display = _section(data, "display")
    if "colored_output" in display:
        config.colored_output = _expect(
            "display.colored_output", display["colored_output"], bool, "must be a boolean"
        )
    if "format" in display:
        config.output_format = _expect(
            "display.format", display["format"], str, "must be a string"
        )
    if "columns" in display:
        config.columns = _string_or_list("display.columns", display["columns"])
    if "clip" in display:
        config.clip = _expect("display.clip", display["clip"], int, "must be an integer")

    return config


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Write *config* as TOML, creating parent directories.

    ``colored_output`` is always written; the other settings only when
    they differ from the defaults.
    """
    path = config_path or config.config_path or get_default_config_path()
    path = path.expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)

    tickets: dict[str, Any] = {}
    if config.tickets_file is not None:
        tickets["path"] = str(config.tickets_file)
    if config.project_key is not None:
        tickets["project_key"] = config.project_key

    display: dict[str, Any] = {"colored_output": config.colored_output}
    for key, value, default in (
        ("format", config.output_format, DEFAULT_FORMAT),
        ("columns", config.columns, DEFAULT_COLUMNS),
        ("clip", config.clip, DEFAULT_CLIP),
    ):
        if value != default:
            display[key] = value

    data: dict[str, Any] = {"display": display}
    if tickets:
        data["tickets"] = tickets

    path.write_bytes(tomli_w.dumps(data).encode("utf-8"))
