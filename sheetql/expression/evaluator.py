from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from typing import Any

from ..errors import ExpressionError
from .values import (
    NUMERIC_PATTERN,
    array_length,
    dumps_compact,
    maybe_parse_json,
    parse_json_value,
    to_number,
    to_text,
)

"""Row-level boolean expressions used as validation rules.

An expression is evaluated in two phases against a single row:

1. Function calls (``JSON_EXTRACT``, ``JSON_EXTRACT_FILTERED``,
   ``ARRAY_LENGTH``) are resolved innermost first and replaced by a literal of
   their result.
2. The remaining text is split on ``AND`` or ``OR`` (one kind per expression)
   and each part is compared with one of ``== != <> >= <= = > <``.

Evaluation fails closed: any error makes the expression false.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ExpressionEvaluator",
    "evaluate",
    "split_arguments",
]

# 引数に括弧を含まない呼び出し = 最も内側の呼び出し
_FUNCTION_CALL = re.compile(r"\b([A-Za-z_][A-Za-z0-9_]*)\s*\(([^()]*)\)")
_AND = re.compile(r"\s+AND\s+", re.IGNORECASE)
_OR = re.compile(r"\s+OR\s+", re.IGNORECASE)
_OPERATORS = ("==", "!=", "<>", ">=", "<=", "=", ">", "<")
_MAX_PASSES = 64


def _quote_state(text: str, stop: int) -> str | None:
    """Return the quote character open at ``stop`` (None when outside quotes)."""
    quote: str | None = None
    for char in text[:stop]:
        if quote is None:
            if char in ("'", '"'):
                quote = char
        elif char == quote:
            quote = None
    return quote


def _is_quoted(text: str) -> bool:
    return len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"')


def _unquote(text: str) -> str:
    quote = text[0]
    return text[1:-1].replace(quote * 2, quote)


def _literal(value: Any) -> str:
    """Render a function result so it can be substituted back into the expression."""
    if value is None or isinstance(value, (bool, int, float)):
        return to_text(value)
    if isinstance(value, (list, dict)):
        return dumps_compact(value)
    return "'" + str(value).replace("'", "''") + "'"


def split_arguments(text: str) -> list[str]:
    """Split an argument list on top-level commas, honouring quotes and brackets."""
    if not text.strip():
        return []
    args: list[str] = []
    current: list[str] = []
    quote: str | None = None
    depth = 0
    for char in text:
        if quote is not None:
            current.append(char)
            if char == quote:
                quote = None
            continue
        if char in ("'", '"'):
            quote = char
        elif char in "[{(":
            depth += 1
        elif char in "]})":
            depth -= 1
        elif char == "," and depth == 0:
            args.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    args.append("".join(current).strip())
    return args


def _split_top_level(text: str, pattern: re.Pattern[str]) -> list[str]:
    parts: list[str] = []
    start = 0
    for match in pattern.finditer(text):
        if _quote_state(text, match.start()) is not None:
            continue
        parts.append(text[start:match.start()])
        start = match.end()
    parts.append(text[start:])
    return [p.strip() for p in parts]


class ExpressionEvaluator:
    """Evaluate validation expressions against row objects.

    With ``strict`` enabled, silent fallbacks (unknown functions, non-array
    values passed to ARRAY_LENGTH, swallowed errors) are logged as warnings and
    collected in :attr:`diagnostics`.
    """

    def __init__(self, strict: bool = False) -> None:
        self.strict = strict
        self.diagnostics: list[str] = []
        self._functions: dict[str, Callable[..., Any]] = {
            "JSON_EXTRACT": self._json_extract,
            "JSON_EXTRACT_FILTERED": self._json_extract_filtered,
            "ARRAY_LENGTH": self._array_length,
        }

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def evaluate(self, expression: str, row: Mapping[str, Any]) -> bool:
        try:
            resolved = self.resolve_functions(expression, row)
            return self._evaluate_boolean(resolved, row)
        except Exception as exc:
            self._fallback(f"expression {expression!r} evaluated to false: {exc}")
            return False

    def resolve_functions(self, expression: str, row: Mapping[str, Any]) -> str:
        """Replace every function call with a literal of its result."""
        text = expression
        for _ in range(_MAX_PASSES):
            match = self._find_call(text)
            if match is None:
                return text
            name, raw_args = match.group(1), match.group(2)
            args = [self._resolve_argument(arg, row) for arg in split_arguments(raw_args)]
            result = self._call(name, args)
            text = text[:match.start()] + _literal(result) + text[match.end():]
        raise ExpressionError(f"function calls nested deeper than {_MAX_PASSES} levels")

    # ------------------------------------------------------------------
    # phase 1: functions
    # ------------------------------------------------------------------
    @staticmethod
    def _find_call(text: str) -> re.Match[str] | None:
        for match in _FUNCTION_CALL.finditer(text):
            if _quote_state(text, match.start()) is None:
                return match
        return None

    def _call(self, name: str, args: list[Any]) -> Any:
        function = self._functions.get(name.upper())
        if function is None:
            self._fallback(f"unknown function {name}() replaced with 0")
            return "0"
        return function(*args)

    @staticmethod
    def _json_extract(value: Any, path: Any = "$") -> Any:
        data = maybe_parse_json(value)
        key = str(path).strip()
        if key == "$":
            return data
        if key.startswith("$."):
            key = key[2:]
        if isinstance(data, dict):
            return data.get(key)
        return None

    @staticmethod
    def _json_extract_filtered(value: Any, key_name: Any, key_value: Any, target: Any) -> str:
        data = maybe_parse_json(value)
        if not isinstance(data, list):
            return "[]"
        expected = to_text(key_value)
        matched = [
            element.get(str(target))
            for element in data
            if isinstance(element, dict) and to_text(element.get(str(key_name))) == expected
        ]
        return dumps_compact(matched)

    def _array_length(self, value: Any = None) -> int:
        return array_length(value, self._fallback)

    # ------------------------------------------------------------------
    # phase 2: boolean combination and comparisons
    # ------------------------------------------------------------------
    def _evaluate_boolean(self, text: str, row: Mapping[str, Any]) -> bool:
        and_parts = _split_top_level(text, _AND)
        or_parts = _split_top_level(text, _OR)
        if len(and_parts) > 1 and len(or_parts) > 1:
            raise ExpressionError("AND and OR cannot be mixed in one expression")
        if len(and_parts) > 1:
            return all(self._compare(part, row) for part in and_parts)
        if len(or_parts) > 1:
            return any(self._compare(part, row) for part in or_parts)
        return self._compare(text.strip(), row)

    def _compare(self, text: str, row: Mapping[str, Any]) -> bool:
        found = self._split_comparison(text)
        if found is None:
            # 比較演算子なし: 値そのものの真偽
            value = self._resolve_operand(text, row)
            number = to_number(value)
            if number is not None:
                return number != 0
            return to_text(value).lower() == "true"

        operator, left_text, right_text = found
        left = self._resolve_operand(left_text, row)
        right = self._resolve_operand(right_text, row)
        if operator in ("=", "=="):
            return to_text(left) == to_text(right)
        if operator in ("!=", "<>"):
            return to_text(left) != to_text(right)

        left_number, right_number = to_number(left), to_number(right)
        if left_number is None or right_number is None:
            return False
        if operator == ">":
            return left_number > right_number
        if operator == "<":
            return left_number < right_number
        if operator == ">=":
            return left_number >= right_number
        return left_number <= right_number

    @staticmethod
    def _split_comparison(text: str) -> tuple[str, str, str] | None:
        quote: str | None = None
        depth = 0
        index = 0
        while index < len(text):
            char = text[index]
            if quote is not None:
                if char == quote:
                    quote = None
            elif char in ("'", '"'):
                quote = char
            elif char in "[{(":
                depth += 1
            elif char in "]})":
                depth -= 1
            elif depth == 0:
                for operator in _OPERATORS:
                    if text.startswith(operator, index):
                        left = text[:index].strip()
                        right = text[index + len(operator):].strip()
                        if not left or not right:
                            raise ExpressionError(f"incomplete comparison: {text!r}")
                        return operator, left, right
            index += 1
        return None

    @staticmethod
    def _resolve_argument(text: str, row: Mapping[str, Any]) -> Any:
        """Function argument: unquote, then column value, then number."""
        text = text.strip()
        quoted = _is_quoted(text)
        if quoted:
            text = _unquote(text)
        if text in row:
            return row[text]
        if NUMERIC_PATTERN.match(text):
            return float(text) if "." in text else int(text)
        if not quoted and text.lower() in ("true", "false", "null"):
            return parse_json_value(text.lower())
        return text

    @staticmethod
    def _resolve_operand(text: str, row: Mapping[str, Any]) -> Any:
        text = text.strip()
        if _is_quoted(text):
            return _unquote(text)
        if text in row:
            return row[text]
        if NUMERIC_PATTERN.match(text):
            return float(text) if "." in text else int(text)
        if text.lower() in ("true", "false", "null"):
            return parse_json_value(text.lower())
        return text

    def _fallback(self, message: str) -> None:
        if self.strict:
            logger.warning(message)
            self.diagnostics.append(message)
        else:
            logger.debug(message)


_default_evaluator = ExpressionEvaluator()


def evaluate(expression: str, row: Mapping[str, Any]) -> bool:
    """Evaluate ``expression`` against ``row`` with a non-strict evaluator."""
    return _default_evaluator.evaluate(expression, row)
