"""Utility modules for pql."""

from pql.utils.output import (
    console,
    error,
    info,
    success,
    warning,
)

__all__ = [
    "console",
    "error",
    "info",
    "success",
    "warning",
]
