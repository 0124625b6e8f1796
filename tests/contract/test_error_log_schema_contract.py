from __future__ import annotations

import json
from pathlib import Path

from sheetql.logging.error_log import ErrorLogBuffer
from sheetql.models.validation_result import ValidationErrorEntry, ValidationResult

EXPECTED_KEYS = {"timestamp", "source", "row", "rule", "error_type", "message"}


def test_error_log_lines_have_fixed_keys(tmp_path: Path):
    result = ValidationResult(
        total_rows=3,
        error_rows=2,
        errors=[
            ValidationErrorEntry(0, "amount > 0", {"amount": 0, "note": "secret"}),
            ValidationErrorEntry(2, "region != 'x'", {"region": "x"}),
        ],
    )
    buf = ErrorLogBuffer(tmp_path)
    buf.extend(result.to_error_records("SELECT * FROM Sales.2023"))
    path = buf.flush()

    for line in path.read_text(encoding="utf-8").splitlines():
        record = json.loads(line)
        assert set(record) == EXPECTED_KEYS
        assert isinstance(record["row"], int) and record["row"] >= 1
        assert record["error_type"].isupper()
        # 行データそのものはログに残さない
        assert "secret" not in line
