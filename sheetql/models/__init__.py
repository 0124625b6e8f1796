"""Domain models for sheetql.

References produced by the resolver, relations passed between the loader, the
expansion engine and the embedded engine, and the result objects returned by
the executor and the validation runner.
"""

from .config_models import SheetQLConfig
from .error_record import ErrorRecord
from .query_result import QueryResult, QueryStats
from .references import ArrayFieldReference, ResolvedReferences, TableReference
from .relation import ExpansionStats, LoadedRelation, RowObject, TableData
from .validation_result import ValidationErrorEntry, ValidationResult

__all__ = [
    # Configuration models
    "SheetQLConfig",
    # Reference models
    "ArrayFieldReference",
    "ResolvedReferences",
    "TableReference",
    # Relation models
    "ExpansionStats",
    "LoadedRelation",
    "RowObject",
    "TableData",
    # Result models
    "ErrorRecord",
    "QueryResult",
    "QueryStats",
    "ValidationErrorEntry",
    "ValidationResult",
]
