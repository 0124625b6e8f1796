from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the validation error log.

Each record is written as one JSON line with a fixed key set. ``row=-1`` is
allowed for query-level failures where no row applies.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        source: Query text (or a label) the rows came from
        row: Row number (1-based). Use -1 when no row applies
        rule: Validation rule expression, empty for query-level errors
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable description
    """
    timestamp: str  # ISO8601 UTC
    source: str
    row: int  # 行番号。不明な場合 -1 許容
    rule: str
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(source: str, row: int, rule: str, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            source=source,
            row=row,
            rule=rule,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
