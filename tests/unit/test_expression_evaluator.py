from __future__ import annotations

import json
import logging

import pytest

from sheetql.expression.evaluator import ExpressionEvaluator, evaluate, split_arguments


@pytest.mark.parametrize(
    "expression, row, expected",
    [
        ("5 > 3", {}, True),
        ("3 >= 3", {}, True),
        ("2 < 1", {}, False),
        ("a = b", {"a": 5, "b": "5"}, True),
        ("a == b", {"a": 5.0, "b": 5}, True),
        ("a != b", {"a": 1, "b": 2}, True),
        ("a <> 1", {"a": 1}, False),
        ("name = 'Tom'", {"name": "Tom"}, True),
        ("amount > 100", {"amount": "150"}, True),
        ("name > 3", {"name": "abc"}, False),
        ("flag = true", {"flag": True}, True),
        ("missing = null", {"missing": None}, True),
    ],
)
def test_comparisons(expression, row, expected):
    assert evaluate(expression, row) is expected


def test_and_or_combinations():
    row = {"a": 2, "b": 3}
    assert evaluate("a > 1 AND b < 5", row)
    assert not evaluate("a > 1 AND b > 5", row)
    assert evaluate("a > 10 or b < 5", row)
    assert not evaluate("a > 10 OR b > 5", row)


def test_and_inside_quotes_does_not_split():
    assert evaluate("name = 'Tom AND Jerry'", {"name": "Tom AND Jerry"})


def test_mixing_and_or_fails_closed_with_diagnostic():
    evaluator = ExpressionEvaluator(strict=True)
    assert evaluator.evaluate("a = 1 AND b = 2 OR c = 3", {"a": 1, "b": 2, "c": 3}) is False
    assert any("AND and OR" in d for d in evaluator.diagnostics)


def test_array_length_variants():
    assert evaluate("ARRAY_LENGTH(items) = 3", {"items": [1, 2, 3]})
    assert evaluate("ARRAY_LENGTH(items) = 2", {"items": '["a", "b"]'})
    assert evaluate("ARRAY_LENGTH(items) = 3", {"items": "a,b,c"})
    assert evaluate("ARRAY_LENGTH(items) = 0", {"items": ""})
    assert evaluate("ARRAY_LENGTH(items) = 0", {"items": None})
    assert evaluate("ARRAY_LENGTH(items) = 1", {"items": 42})


@pytest.mark.parametrize("array", [[], [1], ["x", "y", "z"], [{"a": 1}, {"b": [2, 3]}]])
def test_array_length_of_serialized_array(array):
    assert evaluate(f"ARRAY_LENGTH(col) = {len(array)}", {"col": json.dumps(array)})


def test_json_extract_from_object_or_json_text():
    assert evaluate("JSON_EXTRACT(col, '$.type') = 'x'", {"col": {"type": "x"}})
    assert evaluate("JSON_EXTRACT(col,'$.type') = 'x'", {"col": '{"type": "x"}'})
    assert evaluate("JSON_EXTRACT(col, '$.count') > 2", {"col": {"count": 3}})
    assert evaluate("JSON_EXTRACT(col, '$.missing') = null", {"col": {}})


def test_json_extract_filtered_keeps_order_and_matches():
    evaluator = ExpressionEvaluator()
    row = {
        "items": [
            {"type": "a", "name": "n1"},
            {"type": "b", "name": "n2"},
            {"type": "a", "name": "n3"},
        ]
    }
    resolved = evaluator.resolve_functions("JSON_EXTRACT_FILTERED(items, 'type', 'a', 'name')", row)
    assert resolved == """'["n1","n3"]'"""
    assert evaluator.evaluate("JSON_EXTRACT_FILTERED(items, 'type', 'a', 'name') = '[\"n1\",\"n3\"]'", row)
    assert evaluator.resolve_functions("JSON_EXTRACT_FILTERED(x, 'k', 'v', 't')", {"x": "nope"}) == "'[]'"


def test_nested_function_calls():
    row = {"payload": {"tags": ["a", "b"]}}
    assert evaluate("ARRAY_LENGTH(JSON_EXTRACT(payload, '$.tags')) = 2", row)


def test_function_names_inside_literals_are_not_called():
    assert evaluate("label = 'ARRAY_LENGTH(x)'", {"label": "ARRAY_LENGTH(x)", "x": [1]})


def test_unknown_function_yields_zero_and_is_reported_in_strict_mode(caplog):
    evaluator = ExpressionEvaluator(strict=True)
    with caplog.at_level(logging.WARNING, logger="sheetql.expression.evaluator"):
        assert evaluator.evaluate("NO_SUCH_FN(a) = 0", {"a": 1})
    assert any("NO_SUCH_FN" in d for d in evaluator.diagnostics)
    assert "NO_SUCH_FN" in caplog.text


def test_non_strict_mode_collects_nothing():
    evaluator = ExpressionEvaluator()
    evaluator.evaluate("NO_SUCH_FN(a) = 0", {"a": 1})
    assert evaluator.diagnostics == []


def test_broken_expressions_fail_closed():
    assert evaluate("a >", {"a": 1}) is False
    assert evaluate("= 1", {}) is False


def test_bare_operand_truthiness():
    assert evaluate("active", {"active": True})
    assert not evaluate("active", {"active": False})
    assert evaluate("JSON_EXTRACT(p, '$.on')", {"p": {"on": True}})


def test_split_arguments_respects_quotes_and_brackets():
    assert split_arguments("a, 'x,y', [1, 2], {\"k\": 1}") == ["a", "'x,y'", "[1, 2]", '{"k": 1}']
    assert split_arguments("  ") == []


def test_quoted_function_arguments_resolve_columns_then_numbers():
    assert evaluate("ARRAY_LENGTH('items') = 3", {"items": [1, 2, 3]})
    assert evaluate("JSON_EXTRACT('payload', '$.n') = 4", {"payload": {"n": 4}})
    # 列名でなければ文字列のまま
    assert evaluate("ARRAY_LENGTH('a,b') = 2", {})
