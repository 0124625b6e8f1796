from __future__ import annotations

"""Exception hierarchy shared across sheetql.

Each stage raises its own subclass so callers (the executor, the CLI) can
classify a failure without string matching. Expression evaluation errors never
leave the evaluator; they fail closed to ``False``.
"""

__all__ = [
    "SheetQLError",
    "SqlSyntaxError",
    "TableNotFoundError",
    "SheetNotFoundError",
    "ExpansionError",
    "QueryExecutionError",
    "ExpressionError",
    "ConfigError",
]


class SheetQLError(Exception):
    """Base exception for sheetql errors."""


class SqlSyntaxError(SheetQLError, ValueError):
    """Raised when the SQL front end cannot tokenize or parse a statement."""


class TableNotFoundError(SheetQLError):
    """Raised when a referenced spreadsheet file does not exist."""

    def __init__(self, file_name: str, message: str | None = None) -> None:
        self.file_name = file_name
        super().__init__(message or f"file not found: {file_name}")


class SheetNotFoundError(SheetQLError):
    """Raised by data sources when the file exists but the sheet does not.

    DataLoader turns this into an empty relation instead of failing the query.
    """

    def __init__(self, file_name: str, sheet_name: str) -> None:
        self.file_name = file_name
        self.sheet_name = sheet_name
        super().__init__(f"sheet '{sheet_name}' not found in file '{file_name}'")


class ExpansionError(SheetQLError):
    """Raised when an UNNEST base table cannot be loaded or expanded."""


class QueryExecutionError(SheetQLError):
    """Raised when the embedded engine rejects the rewritten SQL."""


class ExpressionError(SheetQLError):
    """Raised inside the expression evaluator; converted to ``False``."""


class ConfigError(SheetQLError):
    """Raised when the configuration file is missing, unreadable or invalid."""
