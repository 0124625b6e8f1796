from __future__ import annotations

import logging
from collections.abc import Sequence

from ..expression.evaluator import ExpressionEvaluator
from ..models.relation import RowObject
from ..models.validation_result import ValidationErrorEntry, ValidationResult

"""Apply validation rules to query result rows.

Each row is annotated in place with ``validationStatus`` ("valid"/"invalid")
and ``validationErrors`` (the rules it failed, in rule order).
"""

logger = logging.getLogger(__name__)

__all__ = [
    "STATUS_FIELD",
    "ERRORS_FIELD",
    "ValidationRunner",
    "validate_rows",
]

STATUS_FIELD = "validationStatus"
ERRORS_FIELD = "validationErrors"


class ValidationRunner:
    def __init__(self, evaluator: ExpressionEvaluator | None = None) -> None:
        self.evaluator = evaluator or ExpressionEvaluator()

    def run(self, rows: list[RowObject], rules: Sequence[str]) -> ValidationResult:
        result = ValidationResult(total_rows=len(rows))
        for index, row in enumerate(rows):
            failed: list[str] = []
            for rule in rules:
                if self.evaluator.evaluate(rule, row):
                    continue
                failed.append(rule)
                snapshot = {k: v for k, v in row.items() if k not in (STATUS_FIELD, ERRORS_FIELD)}
                result.errors.append(ValidationErrorEntry(row_index=index, rule=rule, data=snapshot))
            row[STATUS_FIELD] = "invalid" if failed else "valid"
            row[ERRORS_FIELD] = failed
            if failed:
                result.error_rows += 1
        logger.info(
            "validation: %d/%d rows valid (%d rules)", result.valid_rows, result.total_rows, len(rules)
        )
        return result


def validate_rows(
    rows: list[RowObject],
    rules: Sequence[str],
    evaluator: ExpressionEvaluator | None = None,
) -> ValidationResult:
    return ValidationRunner(evaluator).run(rows, rules)
