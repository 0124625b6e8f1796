"""sheetql: SQL queries over spreadsheet workbooks."""

from .errors import (
    ConfigError,
    ExpansionError,
    ExpressionError,
    QueryExecutionError,
    SheetNotFoundError,
    SheetQLError,
    SqlSyntaxError,
    TableNotFoundError,
)
from .excel import ExcelDirectorySource, InMemoryDataSource
from .expression import ExpressionEvaluator, evaluate
from .models import QueryResult, SheetQLConfig, ValidationResult
from .services import QueryExecutor, resolve_references, validate_rows

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "ExcelDirectorySource",
    "ExpansionError",
    "ExpressionError",
    "ExpressionEvaluator",
    "InMemoryDataSource",
    "QueryExecutionError",
    "QueryExecutor",
    "QueryResult",
    "SheetNotFoundError",
    "SheetQLConfig",
    "SheetQLError",
    "SqlSyntaxError",
    "TableNotFoundError",
    "ValidationResult",
    "evaluate",
    "resolve_references",
    "validate_rows",
]
