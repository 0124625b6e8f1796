from __future__ import annotations

import itertools
import logging
import sqlite3
from collections.abc import Mapping, Sequence
from typing import Any

from ..errors import QueryExecutionError
from ..expression.values import maybe_parse_json
from ..models.relation import LoadedRelation, RowObject, TableData
from .batch_insert import BatchInsertError, batch_insert, quote_identifier
from .functions import register_functions, to_sql_value

"""Embedded relational engine (SQLite in-memory).

Every query execution owns a fresh connection, so relations registered for one
query are never visible to another. Relation names come from a process-wide
counter and therefore never collide even when several engines are alive.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "RELATION_PREFIX",
    "next_relation_name",
    "SQLiteEngine",
]

RELATION_PREFIX = "_sheetql_rel_"
_relation_counter = itertools.count(1)


def next_relation_name() -> str:
    return f"{RELATION_PREFIX}{next(_relation_counter)}"


class SQLiteEngine:
    def __init__(self, parse_json_results: bool = True, page_size: int = 1000) -> None:
        self.parse_json_results = parse_json_results
        self.page_size = page_size
        self._connection = sqlite3.connect(":memory:")
        register_functions(self._connection)
        self.relations: dict[str, LoadedRelation] = {}

    def __enter__(self) -> "SQLiteEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def register(self, table: TableData, source_key: str | None = None) -> LoadedRelation:
        """Create a relation holding ``table`` and return its handle."""
        name = next_relation_name()
        columns = list(table.columns)
        if not columns:
            raise QueryExecutionError(f"cannot register {source_key or name}: no columns")
        cols_sql = ", ".join(quote_identifier(c) for c in columns)
        cursor = self._connection.cursor()
        try:
            cursor.execute(f"CREATE TABLE {quote_identifier(name)} ({cols_sql})")
            result = batch_insert(
                cursor,
                name,
                columns,
                (tuple(to_sql_value(row.get(c)) for c in columns) for row in table.rows),
                page_size=self.page_size,
            )
        except (sqlite3.Error, BatchInsertError) as e:
            raise QueryExecutionError(f"failed to register {source_key or name}: {e}") from e
        finally:
            cursor.close()
        logger.debug("registered %s as %s (%d rows)", source_key or "relation", name, result.inserted_rows)
        relation = LoadedRelation(
            internal_name=name,
            columns=columns,
            row_count=result.inserted_rows,
            source_key=source_key,
        )
        self.relations[name] = relation
        return relation

    def execute(
        self,
        sql: str,
        params: Sequence[Any] | Mapping[str, Any] | None = None,
    ) -> tuple[list[str], list[RowObject]]:
        """Run ``sql`` and return ``(columns, rows)`` with rows as dicts."""
        cursor = self._connection.cursor()
        try:
            cursor.execute(sql, params if params is not None else ())
            fetched = cursor.fetchall()
            description = cursor.description or ()
        except sqlite3.Error as e:
            raise QueryExecutionError(f"query execution failed: {e}") from e
        finally:
            cursor.close()
        columns = [d[0] for d in description]
        rows = [
            {column: self._convert(value) for column, value in zip(columns, record)}
            for record in fetched
        ]
        return columns, rows

    def _convert(self, value: Any) -> Any:
        if self.parse_json_results:
            return maybe_parse_json(value)
        return value

    def close(self) -> None:
        self._connection.close()
        self.relations.clear()
