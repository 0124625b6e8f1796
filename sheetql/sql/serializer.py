from __future__ import annotations

from .ast import (
    And,
    Condition,
    Fragment,
    FunctionSource,
    Group,
    Join,
    Not,
    Or,
    Predicate,
    SelectStatement,
    Source,
    SubquerySource,
    TableSource,
    UnnestSource,
)
from .tokens import KEYWORDS, Token

"""Serialize the AST back to SQLite-compatible text."""

__all__ = [
    "to_sql",
    "render_fragment",
]


def to_sql(statement: SelectStatement) -> str:
    parts: list[str] = []
    if statement.ctes:
        ctes = []
        for cte in statement.ctes:
            head = cte.name.render()
            if cte.columns:
                head += " (" + ", ".join(c.render() for c in cte.columns) + ")"
            ctes.append(f"{head} AS ({to_sql(cte.statement)})")
        parts.append(("WITH RECURSIVE " if statement.recursive else "WITH ") + ", ".join(ctes))

    head = "SELECT"
    if statement.distinct:
        head += " " + statement.distinct
    items = []
    for item in statement.select_items:
        text = render_fragment(item.expr)
        if item.alias is not None:
            text += " AS " + item.alias.render()
        items.append(text)
    parts.append(head + " " + ", ".join(items))

    if statement.from_source is not None:
        text = "FROM " + _render_source(statement.from_source)
        for join in statement.joins:
            text += _render_join(join)
        parts.append(text)
    if statement.where is not None:
        parts.append("WHERE " + _render_condition(statement.where))
    if statement.group_by:
        parts.append("GROUP BY " + ", ".join(render_fragment(f) for f in statement.group_by))
    if statement.having is not None:
        parts.append("HAVING " + _render_condition(statement.having))
    if statement.order_by:
        parts.append("ORDER BY " + ", ".join(render_fragment(f) for f in statement.order_by))
    if statement.limit is not None:
        parts.append("LIMIT " + render_fragment(statement.limit))
    if statement.offset is not None:
        parts.append("OFFSET " + render_fragment(statement.offset))
    if statement.compound is not None:
        operator, following = statement.compound
        parts.append(operator + " " + to_sql(following))
    return " ".join(parts)


def render_fragment(fragment: Fragment) -> str:
    out: list[str] = []
    previous: Token | SelectStatement | None = None
    for item in fragment.items:
        if isinstance(item, SelectStatement):
            text = "(" + to_sql(item) + ")"
        else:
            text = item.render()
        if previous is not None and _needs_space(previous, item):
            out.append(" ")
        out.append(text)
        previous = item
    return "".join(out)


def _needs_space(previous: Token | SelectStatement, current: Token | SelectStatement) -> bool:
    if isinstance(current, Token):
        if current.type in ("DOT", "COMMA", "RPAREN", "SEMI"):
            return False
        if current.type == "LPAREN" and isinstance(previous, Token):
            # 関数呼び出し: 名前と '(' の間に空白を入れない
            if previous.type == "IDENT" and not previous.is_keyword(*KEYWORDS):
                return False
    if isinstance(previous, Token) and previous.type in ("DOT", "LPAREN"):
        return False
    return True


def _render_source(source: Source) -> str:
    if isinstance(source, TableSource):
        text = ".".join(p.render() for p in source.parts)
    elif isinstance(source, SubquerySource):
        text = "(" + to_sql(source.statement) + ")"
    elif isinstance(source, UnnestSource):
        text = "UNNEST(" + render_fragment(source.argument) + ")"
    elif isinstance(source, FunctionSource):
        text = source.name.render() + "(" + render_fragment(source.arguments) + ")"
    else:  # pragma: no cover
        raise TypeError(f"unknown source type: {type(source).__name__}")
    if source.alias is not None:
        text += " AS " + source.alias.render()
    return text


def _render_join(join: Join) -> str:
    if join.kind == ",":
        return ", " + _render_source(join.source)
    text = " " + join.kind + " " + _render_source(join.source)
    if join.on is not None:
        text += " ON " + render_fragment(join.on)
    elif join.using is not None:
        text += " USING (" + ", ".join(c.render() for c in join.using) + ")"
    return text


def _render_condition(condition: Condition) -> str:
    if isinstance(condition, Predicate):
        return render_fragment(condition.fragment)
    if isinstance(condition, And):
        return " AND ".join(_render_operand(c) for c in condition.items)
    if isinstance(condition, Or):
        return " OR ".join(_render_condition(c) for c in condition.items)
    if isinstance(condition, Not):
        return "NOT " + _render_operand(condition.item)
    if isinstance(condition, Group):
        return "(" + _render_condition(condition.item) + ")"
    raise TypeError(f"unknown condition type: {type(condition).__name__}")  # pragma: no cover


def _render_operand(condition: Condition) -> str:
    # AND/NOT の内側に OR が来る場合は優先順位を保つため括弧で囲む
    if isinstance(condition, Or):
        return "(" + _render_condition(condition) + ")"
    return _render_condition(condition)
