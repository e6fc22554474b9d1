"""Exception hierarchy for pql."""

from pathlib import Path


class PQLError(Exception):
    """Base exception for all pql errors.

    All exceptions in this package inherit from this class,
    allowing callers to catch all pql errors with
    a single except clause.
    """

    pass


# Query Errors
class QueryError(PQLError):
    """Query-related errors."""

    pass


class QueryParseError(QueryError):
    """A query could not be tokenized or parsed.

    Attributes:
        message: Human-readable description of the problem.
        position: Offset of the offending text in the query string.
        length: Length of the offending span (0 for an empty query).
    """

    def __init__(self, message: str, position: int, length: int = 1) -> None:
        self.message = message
        self.position = position
        self.length = length
        super().__init__(message)


# Configuration Errors
class ConfigError(PQLError):
    """Configuration-related errors."""

    pass


class ConfigParseError(ConfigError):
    """Configuration file has invalid syntax."""

    def __init__(self, path: Path, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"Invalid config at {path}: {detail}")


class ConfigValidationError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: object, reason: str) -> None:
        self.key = key
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid config value for '{key}': {reason}")


# Ticket Errors
class TicketLoadError(PQLError):
    """Ticket export could not be loaded."""

    pass


class TicketFileNotFoundError(TicketLoadError):
    """Ticket export file doesn't exist."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Ticket file not found: {path}")


class TicketFileParseError(TicketLoadError):
    """Ticket export is not valid JSON or has the wrong shape."""

    def __init__(self, path: Path, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"Invalid ticket file {path}: {detail}")


class TicketValidationError(TicketLoadError):
    """A ticket record has an invalid value."""

    def __init__(self, index: int, field: str, reason: str) -> None:
        self.index = index
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid ticket #{index} field '{field}': {reason}")
