from __future__ import annotations

from sheetql.expression.evaluator import ExpressionEvaluator
from sheetql.services.validation import ERRORS_FIELD, STATUS_FIELD, ValidationRunner, validate_rows


def test_single_rule_counts_and_entries():
    rows = [{"v": 5}, {"v": 1}]
    result = validate_rows(rows, ["v > 3"])
    assert result.total_rows == 2
    assert result.error_rows == 1
    assert result.valid_rows == 1
    assert len(result.errors) == 1
    entry = result.errors[0]
    assert entry.row_index == 1
    assert entry.rule == "v > 3"
    assert entry.data == {"v": 1}


def test_rows_are_annotated_in_place():
    rows = [{"v": 5, "w": 0}, {"v": 1, "w": 0}]
    validate_rows(rows, ["v > 3", "w = 0", "w = 1"])
    assert rows[0][STATUS_FIELD] == "invalid"
    assert rows[0][ERRORS_FIELD] == ["w = 1"]
    assert rows[1][ERRORS_FIELD] == ["v > 3", "w = 1"]


def test_snapshot_excludes_status_fields_and_rerun_is_stable():
    rows = [{"v": 1}]
    runner = ValidationRunner(ExpressionEvaluator())
    runner.run(rows, ["v > 3"])
    second = runner.run(rows, ["v > 3"])
    assert second.errors[0].data == {"v": 1}
    assert rows[0][ERRORS_FIELD] == ["v > 3"]


def test_no_rules_means_every_row_is_valid():
    rows = [{"v": 1}, {"v": 2}]
    result = validate_rows(rows, [])
    assert result.error_rows == 0
    assert {r[STATUS_FIELD] for r in rows} == {"valid"}


def test_result_serialization_and_error_records():
    rows = [{"v": 5}, {"v": 1}]
    result = validate_rows(rows, ["v > 3"])
    assert result.to_dict() == {
        "totalRows": 2,
        "errorRows": 1,
        "errors": [{"rowIndex": 1, "rule": "v > 3", "data": {"v": 1}}],
    }
    records = result.to_error_records("SELECT v FROM a.b")
    assert records[0].row == 2
    assert records[0].error_type == "VALIDATION_RULE_FAILED"
