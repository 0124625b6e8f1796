from .executor import QueryExecutor
from .expansion import ArrayExpansionEngine, expand_rows
from .loader import DataLoader, normalize_cell
from .pushdown import PushdownFilter, PushdownPredicate, build_pushdown
from .resolver import resolve_references, scan_sources
from .summary import render_summary_line
from .validation import ValidationRunner, validate_rows

__all__ = [
    "QueryExecutor",
    "ArrayExpansionEngine",
    "expand_rows",
    "DataLoader",
    "normalize_cell",
    "PushdownFilter",
    "PushdownPredicate",
    "build_pushdown",
    "resolve_references",
    "scan_sources",
    "render_summary_line",
    "ValidationRunner",
    "validate_rows",
]
