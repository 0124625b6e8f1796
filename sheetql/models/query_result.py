from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .relation import ExpansionStats, RowObject
from .validation_result import ValidationResult

"""Query result models returned by the executor.

The executor never raises to its caller: failures come back as a QueryResult
with ``error`` set and whatever stats were collected before the failure.
"""

__all__ = [
    "QueryStats",
    "QueryResult",
]


@dataclass
class QueryStats:
    row_count: int = 0
    execution_time: float = 0.0  # ms, whole call
    timings: dict[str, float] = field(default_factory=dict)  # checkpoint -> ms
    sql: str | None = None  # rewritten SQL actually executed
    tables_loaded: int = 0
    missing_tables: list[str] = field(default_factory=list)  # シートが見つからず空で実行したテーブル
    expansions: list[ExpansionStats] = field(default_factory=list)

    @property
    def expanded_rows(self) -> int:
        return sum(e.expanded_row_count for e in self.expansions)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "rowCount": self.row_count,
            "executionTime": self.execution_time,
            "timings": dict(self.timings),
            "sql": self.sql,
        }
        if self.missing_tables:
            out["missingTables"] = list(self.missing_tables)
        if self.expansions:
            out["expansions"] = [e.to_dict() for e in self.expansions]
        return out


@dataclass
class QueryResult:
    data: list[RowObject] | None = None
    error: str | None = None
    stats: QueryStats = field(default_factory=QueryStats)
    validation: ValidationResult | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"stats": self.stats.to_dict()}
        if self.data is not None:
            out["data"] = self.data
        if self.error is not None:
            out["error"] = self.error
        if self.validation is not None:
            out["validation"] = self.validation.to_dict()
        return out
