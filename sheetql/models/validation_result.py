from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .error_record import ErrorRecord

"""Validation result models.

A row can fail several rules; every (row, rule) failure is kept as its own
entry together with a snapshot of the row taken before the in-band status
fields were written.
"""

__all__ = [
    "ValidationErrorEntry",
    "ValidationResult",
]


@dataclass(frozen=True)
class ValidationErrorEntry:
    row_index: int  # 0-based index into the result rows
    rule: str
    data: dict[str, Any]


@dataclass
class ValidationResult:
    total_rows: int = 0
    error_rows: int = 0
    errors: list[ValidationErrorEntry] = field(default_factory=list)

    @property
    def valid_rows(self) -> int:
        return self.total_rows - self.error_rows

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRows": self.total_rows,
            "errorRows": self.error_rows,
            "errors": [
                {"rowIndex": e.row_index, "rule": e.rule, "data": e.data} for e in self.errors
            ],
        }

    def to_error_records(self, source: str) -> list[ErrorRecord]:
        """Convert failures into error-log records (row numbers are 1-based)."""
        return [
            ErrorRecord.create(
                source=source,
                row=e.row_index + 1,
                rule=e.rule,
                error_type="VALIDATION_RULE_FAILED",
                message=f"rule did not hold: {e.rule}",
            )
            for e in self.errors
        ]
