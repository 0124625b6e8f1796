from __future__ import annotations

import logging
import re
from collections.abc import Collection
from dataclasses import dataclass, field
from typing import Any

from ..models.relation import RowObject
from ..sql.ast import Predicate, SelectStatement, top_level_conjuncts
from ..sql.tokens import Token

"""Pre-expansion filtering of UNNEST base rows.

Only top-level AND conjuncts of the form ``base.column <op> literal`` (or the
mirrored ``literal <op> base.column``), ``base.column [NOT] IN (literals)`` and
``base.column [NOT] LIKE 'pattern'`` are pushed down. The engine still applies
the full WHERE clause afterwards, so a pushed predicate may keep rows the engine
would drop but must never drop a row the engine would keep. Whenever the outcome
depends on SQLite's type rules (text compared with a number, nested values) the
row is kept.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "PushdownPredicate",
    "PushdownFilter",
    "build_pushdown",
]

_MIRRORED = {"=": "=", "!=": "!=", ">": "<", "<": ">", ">=": "<=", "<=": ">="}
_CANONICAL = {"==": "=", "<>": "!="}
_UNSURE = object()


def _kind(value: Any) -> str | None:
    if isinstance(value, bool):
        return "number"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "text"
    return None


def _like_regex(pattern: str) -> re.Pattern[str]:
    out = []
    for char in pattern:
        if char == "%":
            out.append(".*")
        elif char == "_":
            out.append(".")
        else:
            out.append(re.escape(char))
    # SQLite の LIKE は ASCII のみ大文字小文字を同一視する
    return re.compile("".join(out), re.IGNORECASE | re.ASCII | re.DOTALL)


@dataclass(frozen=True)
class PushdownPredicate:
    column: str
    operator: str  # = != > < >= <= IN NOT IN LIKE NOT LIKE
    values: tuple[Any, ...]

    def matches(self, row: RowObject) -> bool:
        value = row.get(self.column)
        if value is None:
            return False  # NULL はどの比較も満たさない
        kind = _kind(value)
        if kind is None:
            return True
        if self.operator in ("LIKE", "NOT LIKE"):
            if kind != "text":
                return True
            hit = _like_regex(self.values[0]).fullmatch(value) is not None
            return hit if self.operator == "LIKE" else not hit
        if any(_kind(v) != kind for v in self.values):
            return True
        if self.operator == "IN":
            return value in self.values
        if self.operator == "NOT IN":
            return value not in self.values
        return _compare(value, self.operator, self.values[0])


def _compare(left: Any, operator: str, right: Any) -> bool:
    if operator == "=":
        return left == right
    if operator == "!=":
        return left != right
    if operator == ">":
        return left > right
    if operator == "<":
        return left < right
    if operator == ">=":
        return left >= right
    return left <= right


@dataclass
class PushdownFilter:
    predicates: list[PushdownPredicate] = field(default_factory=list)

    def matches(self, row: RowObject) -> bool:
        return all(p.matches(row) for p in self.predicates)

    def __bool__(self) -> bool:
        return bool(self.predicates)


class _Cursor:
    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    def peek(self, offset: int = 0) -> Token | None:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def keyword(self, *words: str) -> bool:
        token = self.peek()
        if token is not None and token.is_keyword(*words):
            self.pos += 1
            return True
        return False

    def of_type(self, token_type: str) -> Token | None:
        token = self.peek()
        if token is not None and token.type == token_type:
            self.pos += 1
            return token
        return None


class _Parser:
    def __init__(self, base_alias: str, unqualified: Collection[str] | None) -> None:
        self.base_alias = base_alias
        self.unqualified = unqualified

    def column(self, cursor: _Cursor) -> str | None:
        first, dot, name = cursor.peek(), cursor.peek(1), cursor.peek(2)
        if (
            first is not None and first.is_name and first.value == self.base_alias
            and dot is not None and dot.type == "DOT"
            and name is not None and name.type in ("IDENT", "QUOTED")
        ):
            cursor.pos += 3
            return name.value
        if (
            self.unqualified is not None
            and first is not None and first.type in ("IDENT", "QUOTED")
            and first.value in self.unqualified
            and not (dot is not None and dot.type in ("DOT", "LPAREN"))
        ):
            cursor.pos += 1
            return first.value
        return None

    @staticmethod
    def literal(cursor: _Cursor) -> Any:
        token = cursor.peek()
        if token is None:
            return _UNSURE
        if token.type == "STRING":
            cursor.pos += 1
            return token.value
        negative = token.type == "OP" and token.value == "-"
        number = cursor.peek(1) if negative else token
        if number is not None and number.type == "NUMBER":
            cursor.pos += 2 if negative else 1
            text = ("-" if negative else "") + number.value
            value = float(text)
            return int(value) if value.is_integer() and "." not in text and "e" not in text.lower() else value
        return _UNSURE

    def predicate(self, tokens: list[Token]) -> PushdownPredicate | None:
        cursor = _Cursor(tokens)
        column = self.column(cursor)
        if column is not None:
            found = self._after_column(cursor, column)
        else:
            found = self._mirrored(cursor)
        if found is None or not cursor.at_end():
            return None
        return found

    def _after_column(self, cursor: _Cursor, column: str) -> PushdownPredicate | None:
        negated = cursor.keyword("NOT")
        if cursor.keyword("IN"):
            values = self._literal_list(cursor)
            if values is None:
                return None
            return PushdownPredicate(column, "NOT IN" if negated else "IN", values)
        if cursor.keyword("LIKE"):
            pattern = cursor.of_type("STRING")
            if pattern is None or cursor.keyword("ESCAPE"):
                return None
            return PushdownPredicate(column, "NOT LIKE" if negated else "LIKE", (pattern.value,))
        if negated:
            return None
        operator = cursor.of_type("OP")
        if operator is None:
            return None
        op = _CANONICAL.get(operator.value, operator.value)
        if op not in _MIRRORED:
            return None
        value = self.literal(cursor)
        if value is _UNSURE:
            return None
        return PushdownPredicate(column, op, (value,))

    def _mirrored(self, cursor: _Cursor) -> PushdownPredicate | None:
        value = self.literal(cursor)
        if value is _UNSURE:
            return None
        operator = cursor.of_type("OP")
        if operator is None:
            return None
        op = _CANONICAL.get(operator.value, operator.value)
        if op not in _MIRRORED:
            return None
        column = self.column(cursor)
        if column is None:
            return None
        return PushdownPredicate(column, _MIRRORED[op], (value,))

    def _literal_list(self, cursor: _Cursor) -> tuple[Any, ...] | None:
        if cursor.of_type("LPAREN") is None:
            return None
        values = []
        while True:
            value = self.literal(cursor)
            if value is _UNSURE:
                return None
            values.append(value)
            if cursor.of_type("COMMA") is None:
                break
        if cursor.of_type("RPAREN") is None:
            return None
        return tuple(values)


def build_pushdown(
    statement: SelectStatement,
    base_alias: str,
    unqualified_columns: Collection[str] | None = None,
) -> PushdownFilter:
    """Build the filter for rows of ``base_alias`` from the WHERE clause of ``statement``.

    ``unqualified_columns`` lists bare column names that can only belong to the
    base table; pass None when other sources make bare names ambiguous.
    """
    parser = _Parser(base_alias, unqualified_columns)
    result = PushdownFilter()
    for conjunct in top_level_conjuncts(statement.where):
        if not isinstance(conjunct, Predicate):
            continue
        items = conjunct.fragment.items
        if not all(isinstance(i, Token) for i in items):
            continue
        predicate = parser.predicate(list(items))
        if predicate is not None:
            result.predicates.append(predicate)
    logger.debug(
        "pushdown for %s: %s",
        base_alias,
        ", ".join(f"{p.column} {p.operator} {p.values}" for p in result.predicates) or "none",
    )
    return result
