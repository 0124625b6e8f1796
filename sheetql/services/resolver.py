from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from ..models.references import ArrayFieldReference, ResolvedReferences, TableReference
from ..sql.ast import (
    Fragment,
    SelectStatement,
    Source,
    SubquerySource,
    TableSource,
    UnnestSource,
    iter_condition_fragments,
)
from ..sql.parser import parse_sql

"""Table reference resolution.

Table references are found on the parsed statement, never by pattern matching
raw text, so string literals, comments, column qualifiers and function calls
can not be mistaken for ``file.sheet`` tokens.

Rules per FROM/JOIN source:

* ``file.sheet [alias]`` is a table reference. With more than two segments the
  last one is the sheet and the rest is the file name.
* ``alias.field [arrayAlias]`` inside ``UNNEST(...)``, or the three-segment
  join ``alias.field arrayAlias`` where ``alias`` was bound earlier in the same
  SELECT, is an array field reference.
* single-segment names (CTEs, already registered relations) are left alone.
"""

__all__ = [
    "SourceBinding",
    "scan_sources",
    "iter_source_bindings",
    "resolve_references",
]


@dataclass
class SourceBinding:
    """Classification of one FROM/JOIN source of a SELECT."""
    statement: SelectStatement
    source: Source
    table: TableReference | None = None
    array: ArrayFieldReference | None = None
    base: TableSource | None = None  # array の展開元


def _binding_name(source: TableSource) -> str:
    return source.alias_name or ".".join(source.name_parts)


def _table_reference(source: TableSource) -> TableReference:
    parts = source.name_parts
    return TableReference(
        raw_text=".".join(parts),
        file_name=".".join(parts[:-1]),
        sheet_name=parts[-1],
        alias=source.alias_name,
    )


def _unnest_base(
    parts: list[str], bindings: dict[str, TableSource], last: TableSource | None
) -> tuple[TableSource, tuple[str, ...]] | None:
    # 修飾子は長い方 (未エイリアスの file.sheet) を優先
    for width in (2, 1):
        key = ".".join(parts[:width])
        if len(parts) > width and key in bindings:
            return bindings[key], tuple(parts[width:])
    if len(parts) == 1 and last is not None:
        return last, (parts[0],)
    return None


def scan_sources(statement: SelectStatement) -> list[SourceBinding]:
    """Classify the sources of ``statement`` itself (nested SELECTs are not visited)."""
    bindings: dict[str, TableSource] = {}
    last: TableSource | None = None
    out: list[SourceBinding] = []
    for source in statement.sources():
        binding = SourceBinding(statement=statement, source=source)
        if isinstance(source, TableSource):
            parts = source.name_parts
            if len(parts) == 3 and parts[0] in bindings:
                base = bindings[parts[0]]
                binding.base = base
                binding.array = ArrayFieldReference(
                    raw_text=".".join(parts),
                    base_alias=_binding_name(base),
                    path=(parts[1], parts[2]),
                    array_alias=source.alias_name or parts[2],
                )
            elif len(parts) >= 2:
                binding.table = _table_reference(source)
                bindings[_binding_name(source)] = source
                last = source
        elif isinstance(source, UnnestSource):
            parts = source.argument.name_parts()
            found = _unnest_base(parts, bindings, last) if parts else None
            if found is not None:
                base, path = found
                binding.base = base
                binding.array = ArrayFieldReference(
                    raw_text=".".join(parts),
                    base_alias=_binding_name(base),
                    path=path,
                    array_alias=source.alias_name or path[-1],
                )
        out.append(binding)
    return out


def _nested(fragment: Fragment) -> Iterator[SelectStatement]:
    for item in fragment.items:
        if isinstance(item, SelectStatement):
            yield item


def _trailing_fragments(statement: SelectStatement) -> Iterator[Fragment]:
    if statement.where is not None:
        yield from iter_condition_fragments(statement.where)
    yield from statement.group_by
    if statement.having is not None:
        yield from iter_condition_fragments(statement.having)
    yield from statement.order_by
    for fragment in (statement.limit, statement.offset):
        if fragment is not None:
            yield fragment


def iter_source_bindings(statement: SelectStatement) -> Iterator[SourceBinding]:
    """Source bindings of ``statement`` and every nested SELECT, in query text order."""
    for cte in statement.ctes:
        yield from iter_source_bindings(cte.statement)
    for item in statement.select_items:
        for child in _nested(item.expr):
            yield from iter_source_bindings(child)
    for binding in scan_sources(statement):
        yield binding
        if isinstance(binding.source, SubquerySource):
            yield from iter_source_bindings(binding.source.statement)
    for join in statement.joins:
        if join.on is not None:
            for child in _nested(join.on):
                yield from iter_source_bindings(child)
    for fragment in _trailing_fragments(statement):
        for child in _nested(fragment):
            yield from iter_source_bindings(child)
    if statement.compound is not None:
        yield from iter_source_bindings(statement.compound[1])


def resolve_references(query: str | SelectStatement) -> ResolvedReferences:
    """Collect table references, alias bindings and array field references."""
    statement = parse_sql(query) if isinstance(query, str) else query
    resolved = ResolvedReferences()
    for binding in iter_source_bindings(statement):
        if binding.table is not None:
            resolved.tables.append(binding.table)
            if binding.table.alias:
                resolved.aliases[binding.table.alias] = binding.table
        elif binding.array is not None:
            resolved.array_fields[binding.array.array_alias] = binding.array
            base = resolved.aliases.get(binding.array.base_alias)
            if base is not None:
                resolved.aliases.setdefault(binding.array.array_alias, base)
    return resolved
