from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..db.engine import SQLiteEngine
from ..errors import ExpansionError, SheetQLError
from ..expression.values import maybe_parse_json
from ..models.references import ArrayFieldReference
from ..models.relation import ExpansionStats, RowObject, TableData
from ..sql.ast import And, Group, Predicate, SelectStatement, TableSource
from ..sql.tokens import Token
from ..sql.transforms import qualified_columns, replace_array_alias, replace_qualifier
from .loader import DataLoader
from .pushdown import build_pushdown
from .resolver import SourceBinding, scan_sources

"""UNNEST expansion.

For every SELECT that joins an array field of a spreadsheet table (via
``UNNEST(alias.field) AS it`` or the implicit ``JOIN alias.field.arrayField
it`` form) the base table is loaded, pre-filtered with the pushable part of
WHERE, and flattened into one row per array element. The flattened rows are
registered as a single relation which replaces the base table in FROM (keeping
its alias); the UNNEST join is removed and ``it.prop`` / ``it`` references are
rewritten to the flattened columns ``"it.prop"`` / ``"it"``.

Several arrays expanded from the same base are applied one after another, so
two UNNESTs of one base produce their cross product per base row, and every
kind of UNNEST join (including LEFT JOIN) is treated as an inner join.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "expand_rows",
    "ArrayExpansionEngine",
]


def _array_at(row: RowObject, path: Sequence[str]) -> list[Any]:
    value: Any = row.get(path[0])
    for key in path[1:]:
        value = maybe_parse_json(value)
        value = value.get(key) if isinstance(value, dict) else None
    value = maybe_parse_json(value)
    return value if isinstance(value, list) else []


def _unique_column(name: str, used: set[str]) -> str:
    candidate = name
    suffix = 1
    while candidate.lower() in used:
        suffix += 1
        candidate = f"{name}_{suffix}"
    used.add(candidate.lower())
    return candidate


def expand_rows(
    columns: Sequence[str],
    rows: Sequence[RowObject],
    path: Sequence[str],
    array_alias: str,
) -> tuple[list[str], list[RowObject]]:
    """Flatten the array at ``path`` into one row per element.

    Returns the new column list and rows. Rows whose array is missing or empty
    contribute nothing. The top-level array field itself is dropped from the
    output; object elements also contribute ``<array_alias>.<key>`` columns,
    suffixed ``_2``, ``_3`` ... when they collide with another column ignoring case.
    """
    dropped = {array_alias.lower()}
    if len(path) == 1:
        dropped.add(path[0].lower())
    base_columns = [c for c in columns if c.lower() not in dropped]
    element_columns: list[str] = []
    key_columns: dict[str, str] = {}
    # SQLite の列名は大文字小文字を区別しないので小文字で衝突を判定する
    used = {c.lower() for c in base_columns} | {array_alias.lower()}
    out: list[RowObject] = []
    for row in rows:
        for element in _array_at(row, path):
            expanded: RowObject = {c: row.get(c) for c in base_columns}
            expanded[array_alias] = element
            if isinstance(element, dict):
                for key, value in element.items():
                    column = key_columns.get(key)
                    if column is None:
                        column = _unique_column(f"{array_alias}.{key}", used)
                        key_columns[key] = column
                        element_columns.append(column)
                    expanded[column] = value
            out.append(expanded)
    return base_columns + [array_alias] + element_columns, out


class ArrayExpansionEngine:
    def __init__(self, loader: DataLoader, engine: SQLiteEngine) -> None:
        self.loader = loader
        self.engine = engine
        self._anonymous = 0

    def apply(self, statement: SelectStatement) -> list[ExpansionStats]:
        """Expand every UNNEST in ``statement`` (nested SELECTs included) in place."""
        stats: list[ExpansionStats] = []
        for node in list(statement.walk()):
            stats.extend(self._apply_to(node))
        return stats

    def _apply_to(self, node: SelectStatement) -> list[ExpansionStats]:
        groups: dict[int, list[SourceBinding]] = {}
        for binding in scan_sources(node):
            if binding.array is not None and binding.base is not None:
                groups.setdefault(id(binding.base), []).append(binding)
        return [self._expand(node, bindings[0].base, bindings) for bindings in groups.values()]

    def _expand(
        self, node: SelectStatement, base: TableSource, bindings: list[SourceBinding]
    ) -> ExpansionStats:
        reference = next(b.table for b in scan_sources(node) if b.source is base)
        arrays: list[ArrayFieldReference] = [b.array for b in bindings]
        aliases = [a.array_alias for a in arrays]

        base_alias = base.alias_name
        if base_alias is None:
            # 修飾子 file.sheet.col を書き換えられるよう内部エイリアスを付与
            self._anonymous += 1
            base_alias = f"_sheetql_base_{self._anonymous}"
            replace_qualifier(node, base.name_parts, base_alias)
            base.alias = Token("IDENT", base_alias)

        try:
            table = self.loader.load(reference, referenced_columns=qualified_columns(node, base_alias))
        except SheetQLError as e:
            raise ExpansionError(f"failed to load UNNEST base table {reference.key}: {e}") from e

        other_sources = [s for s in node.sources() if s is not base and all(s is not b.source for b in bindings)]
        excluded = set(aliases) | {a.field for a in arrays}
        unqualified = None if other_sources else [c for c in table.columns if c not in excluded]
        pushdown = build_pushdown(node, base_alias, unqualified)

        rows = [row for row in table.rows if pushdown.matches(row)] if pushdown else list(table.rows)
        filtered_count = len(rows)
        columns = list(table.columns)
        for array in arrays:
            columns, rows = expand_rows(columns, rows, array.path, array.array_alias)
        expanded_count = len(rows)

        # 0 行でも列を解決できるよう全列 NULL のプレースホルダ行を置く
        registered_rows = rows if rows else [dict.fromkeys(columns)]
        relation = self.engine.register(TableData(columns=columns, rows=registered_rows), source_key=reference.key)

        base.parts = [Token("IDENT", relation.internal_name)]
        self._drop_array_joins(node, bindings)
        for alias in aliases:
            replace_array_alias(node, alias, base_alias)

        stat = ExpansionStats(
            base_table=reference.key,
            array_alias=", ".join(aliases),
            original_row_count=len(table.rows),
            filtered_row_count=filtered_count,
            expanded_row_count=expanded_count,
        )
        logger.info(
            "expanded %s by %s: %d -> %d -> %d rows",
            stat.base_table,
            stat.array_alias,
            stat.original_row_count,
            stat.filtered_row_count,
            stat.expanded_row_count,
        )
        return stat

    @staticmethod
    def _drop_array_joins(node: SelectStatement, bindings: list[SourceBinding]) -> None:
        sources = [b.source for b in bindings]
        kept = []
        moved = []
        for join in node.joins:
            if any(join.source is s for s in sources):
                # ON 条件は WHERE へ移して意味を保つ
                if join.on is not None:
                    moved.append(Group(Predicate(join.on)))
                continue
            kept.append(join)
        node.joins = kept
        if moved:
            existing = [node.where] if node.where is not None else []
            node.where = moved[0] if len(moved) == 1 and not existing else And(existing + moved)
