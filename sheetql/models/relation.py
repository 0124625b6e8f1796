from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Relation models flowing between the loader, the expansion engine and the engine."""

__all__ = [
    "RowObject",
    "TableData",
    "LoadedRelation",
    "ExpansionStats",
]

RowObject = dict[str, Any]


@dataclass
class TableData:
    """Rows loaded from a data source, columns in original header order."""
    columns: list[str]
    rows: list[RowObject] = field(default_factory=list)
    missing: bool = False  # シート欠落時のダミー relation


@dataclass(frozen=True)
class LoadedRelation:
    """A relation registered with the embedded engine under a synthetic name."""
    internal_name: str
    columns: list[str]
    row_count: int = 0
    source_key: str | None = None  # file.sheet (expanded relation の場合は base の key)


@dataclass(frozen=True)
class ExpansionStats:
    """Row accounting for one UNNEST expansion."""
    base_table: str
    array_alias: str
    original_row_count: int
    filtered_row_count: int
    expanded_row_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "baseTable": self.base_table,
            "arrayAlias": self.array_alias,
            "originalRowCount": self.original_row_count,
            "filteredRowCount": self.filtered_row_count,
            "expandedRowCount": self.expanded_row_count,
        }
