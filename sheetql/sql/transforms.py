from __future__ import annotations

from .ast import Fragment, SelectStatement
from .tokens import Token

"""AST transforms used by the rewriter.

All transforms walk every statement nested in the given one (CTEs,
subqueries, compound branches), so correlated references are rewritten too.
"""

__all__ = [
    "replace_qualifier",
    "replace_array_alias",
    "qualified_columns",
]

DOT = Token("DOT", ".")


def _iter_fragments(statement: SelectStatement):
    for node in statement.walk():
        yield from node.fragments()


def _preceded_by_dot(items: list, index: int) -> bool:
    return index > 0 and isinstance(items[index - 1], Token) and items[index - 1].type == "DOT"


def _matches_name(item: object, value: str) -> bool:
    return isinstance(item, Token) and item.is_name and item.value == value


def replace_qualifier(statement: SelectStatement, parts: list[str], replacement: str) -> int:
    """Rewrite ``a.b.<column>`` qualifiers (``parts == [a, b]``) to ``replacement.<column>``."""
    span = 2 * len(parts) - 1
    count = 0
    for fragment in _iter_fragments(statement):
        items = fragment.items
        index = 0
        while index + span < len(items):
            if _preceded_by_dot(items, index) or not _qualifier_at(items, index, parts):
                index += 1
                continue
            items[index:index + span] = [Token("IDENT", replacement)]
            count += 1
            index += 1
    return count


def _qualifier_at(items: list, index: int, parts: list[str]) -> bool:
    for offset, part in enumerate(parts):
        position = index + 2 * offset
        if not _matches_name(items[position], part):
            return False
        follower = items[position + 1]
        if not (isinstance(follower, Token) and follower.type == "DOT"):
            return False
    return True


def replace_array_alias(statement: SelectStatement, array_alias: str, base_alias: str) -> int:
    """Point ``arrayAlias.prop`` / ``arrayAlias`` at the flattened columns of the base alias.

    ``it.sku`` becomes ``x."it.sku"`` and a bare ``it`` becomes ``x."it"``.
    """
    count = 0
    for fragment in _iter_fragments(statement):
        count += _replace_array_alias_in(fragment, array_alias, base_alias)
    return count


def _replace_array_alias_in(fragment: Fragment, array_alias: str, base_alias: str) -> int:
    items = fragment.items
    count = 0
    index = 0
    while index < len(items):
        item = items[index]
        if not _matches_name(item, array_alias) or _preceded_by_dot(items, index):
            index += 1
            continue
        nxt = items[index + 1] if index + 1 < len(items) else None
        if isinstance(nxt, Token) and nxt.type == "LPAREN":
            index += 1  # 同名の関数呼び出し
            continue
        prop = items[index + 2] if index + 2 < len(items) else None
        if isinstance(nxt, Token) and nxt.type == "DOT" and isinstance(prop, Token) and prop.is_name:
            column = f"{array_alias}.{prop.value}"
            items[index:index + 3] = [Token("IDENT", base_alias), DOT, Token("QUOTED", column)]
        elif isinstance(nxt, Token) and nxt.type == "DOT":
            index += 1  # it.* など
            continue
        else:
            items[index:index + 1] = [Token("IDENT", base_alias), DOT, Token("QUOTED", array_alias)]
        count += 1
        index += 3
    return count


def qualified_columns(statement: SelectStatement, qualifier: str) -> list[str]:
    """Column names referenced as ``qualifier.column`` anywhere in the statement."""
    found: list[str] = []
    for fragment in _iter_fragments(statement):
        items = fragment.items
        for index in range(len(items) - 2):
            if _preceded_by_dot(items, index) or not _matches_name(items[index], qualifier):
                continue
            nxt, column = items[index + 1], items[index + 2]
            if isinstance(nxt, Token) and nxt.type == "DOT" and isinstance(column, Token) and column.is_name:
                if column.value not in found:
                    found.append(column.value)
    return found
