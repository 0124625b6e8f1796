from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Union

from .tokens import Token

"""Minimal SQL AST.

Only the structure the rewriter needs is modelled: sources with aliases, joins,
the boolean shape of WHERE/HAVING, and clause boundaries. Scalar expressions
stay as token runs (``Fragment``) that may embed nested SELECT statements, so
table substitution reaches subqueries as well.
"""

__all__ = [
    "Fragment",
    "Predicate",
    "And",
    "Or",
    "Not",
    "Group",
    "Condition",
    "TableSource",
    "SubquerySource",
    "UnnestSource",
    "FunctionSource",
    "Source",
    "Join",
    "SelectItem",
    "CommonTableExpression",
    "SelectStatement",
    "iter_condition_fragments",
    "top_level_conjuncts",
]


@dataclass
class Fragment:
    """A scalar expression: tokens interleaved with nested statements."""
    items: list[Union[Token, SelectStatement]] = field(default_factory=list)

    @property
    def tokens(self) -> list[Token]:
        return [i for i in self.items if isinstance(i, Token)]

    def is_star(self) -> bool:
        return len(self.items) == 1 and isinstance(self.items[0], Token) and self.items[0].type == "STAR"

    def name_parts(self) -> list[str] | None:
        """Return ``[a, b, c]`` when the fragment is exactly ``a.b.c``."""
        parts: list[str] = []
        for index, item in enumerate(self.items):
            if not isinstance(item, Token):
                return None
            if index % 2 == 0:
                if not item.is_name:
                    return None
                parts.append(item.value)
            elif item.type != "DOT":
                return None
        if not parts or len(self.items) % 2 == 0:
            return None
        return parts


@dataclass
class Predicate:
    fragment: Fragment


@dataclass
class And:
    items: list[Condition]


@dataclass
class Or:
    items: list[Condition]


@dataclass
class Not:
    item: Condition


@dataclass
class Group:
    """A parenthesized condition, kept so user grouping survives re-serialization."""
    item: Condition


Condition = Union[Predicate, And, Or, Not, Group]


@dataclass
class TableSource:
    parts: list[Token]
    alias: Token | None = None

    @property
    def name_parts(self) -> list[str]:
        return [p.value for p in self.parts]

    @property
    def alias_name(self) -> str | None:
        return self.alias.value if self.alias is not None else None


@dataclass
class SubquerySource:
    statement: SelectStatement
    alias: Token | None = None

    @property
    def alias_name(self) -> str | None:
        return self.alias.value if self.alias is not None else None


@dataclass
class UnnestSource:
    argument: Fragment
    alias: Token | None = None

    @property
    def alias_name(self) -> str | None:
        return self.alias.value if self.alias is not None else None


@dataclass
class FunctionSource:
    """Table-valued function call such as ``json_each(x.items)``."""
    name: Token
    arguments: Fragment
    alias: Token | None = None

    @property
    def alias_name(self) -> str | None:
        return self.alias.value if self.alias is not None else None


Source = Union[TableSource, SubquerySource, UnnestSource, FunctionSource]


@dataclass
class Join:
    kind: str  # "JOIN", "LEFT OUTER JOIN", "CROSS JOIN", "," ...
    source: Source
    on: Fragment | None = None
    using: list[Token] | None = None

    @property
    def is_outer(self) -> bool:
        return any(word in self.kind for word in ("LEFT", "RIGHT", "FULL"))


@dataclass
class SelectItem:
    expr: Fragment
    alias: Token | None = None


@dataclass
class CommonTableExpression:
    name: Token
    statement: SelectStatement
    columns: list[Token] | None = None


@dataclass
class SelectStatement:
    select_items: list[SelectItem] = field(default_factory=list)
    distinct: str | None = None  # DISTINCT / ALL
    ctes: list[CommonTableExpression] = field(default_factory=list)
    recursive: bool = False
    from_source: Source | None = None
    joins: list[Join] = field(default_factory=list)
    where: Condition | None = None
    group_by: list[Fragment] = field(default_factory=list)
    having: Condition | None = None
    order_by: list[Fragment] = field(default_factory=list)
    limit: Fragment | None = None
    offset: Fragment | None = None
    compound: tuple[str, SelectStatement] | None = None  # ("UNION ALL", next)

    def sources(self) -> Iterator[Source]:
        """FROM source followed by join sources, in query order."""
        if self.from_source is not None:
            yield self.from_source
        for join in self.joins:
            yield join.source

    def fragments(self) -> Iterator[Fragment]:
        """All scalar fragments owned directly by this statement."""
        for item in self.select_items:
            yield item.expr
        for source in self.sources():
            if isinstance(source, UnnestSource):
                yield source.argument
            elif isinstance(source, FunctionSource):
                yield source.arguments
        for join in self.joins:
            if join.on is not None:
                yield join.on
        if self.where is not None:
            yield from iter_condition_fragments(self.where)
        yield from self.group_by
        if self.having is not None:
            yield from iter_condition_fragments(self.having)
        yield from self.order_by
        if self.limit is not None:
            yield self.limit
        if self.offset is not None:
            yield self.offset

    def children(self) -> Iterator[SelectStatement]:
        """Statements nested directly inside this one."""
        for cte in self.ctes:
            yield cte.statement
        for source in self.sources():
            if isinstance(source, SubquerySource):
                yield source.statement
        for fragment in self.fragments():
            for item in fragment.items:
                if isinstance(item, SelectStatement):
                    yield item
        if self.compound is not None:
            yield self.compound[1]

    def walk(self) -> Iterator[SelectStatement]:
        """This statement and every nested statement, depth first."""
        yield self
        for child in self.children():
            yield from child.walk()

    def is_simple_select_star(self) -> bool:
        """``SELECT * FROM <single table>`` with no joins, grouping or set operations."""
        return (
            len(self.select_items) == 1
            and self.select_items[0].expr.is_star()
            and isinstance(self.from_source, TableSource)
            and not self.joins
            and not self.group_by
            and self.compound is None
        )


def iter_condition_fragments(condition: Condition) -> Iterator[Fragment]:
    if isinstance(condition, Predicate):
        yield condition.fragment
    elif isinstance(condition, (And, Or)):
        for item in condition.items:
            yield from iter_condition_fragments(item)
    else:
        yield from iter_condition_fragments(condition.item)


def top_level_conjuncts(condition: Condition | None) -> list[Condition]:
    """Split a condition on top-level AND; OR branches contribute no conjuncts."""
    if condition is None:
        return []
    if isinstance(condition, And):
        out: list[Condition] = []
        for item in condition.items:
            out.extend(top_level_conjuncts(item))
        return out
    if isinstance(condition, Group):
        return top_level_conjuncts(condition.item)
    if isinstance(condition, Or):
        return []
    return [condition]
