from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any

from ..db.engine import SQLiteEngine
from ..excel.source import DataSource
from ..expression.evaluator import ExpressionEvaluator
from ..models.config_models import SheetQLConfig
from ..models.query_result import QueryResult, QueryStats
from ..models.relation import LoadedRelation, RowObject
from ..sql.ast import SelectStatement, TableSource
from ..sql.parser import parse_sql
from ..sql.serializer import to_sql
from ..sql.tokens import Token
from ..sql.transforms import qualified_columns, replace_qualifier
from .expansion import ArrayExpansionEngine
from .loader import DataLoader
from .progress import ProgressTracker
from .resolver import iter_source_bindings
from .validation import validate_rows

"""Query execution pipeline.

parse -> expand UNNEST joins -> load and register the remaining tables ->
serialize the rewritten statement -> run it on a fresh in-memory engine ->
format rows. Every stage failure is caught here and returned as
``QueryResult.error``; callers never see an exception.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "QueryExecutor",
]

Params = Sequence[Any] | Mapping[str, Any] | None


class _Checkpoints:
    def __init__(self, stats: QueryStats) -> None:
        self.stats = stats
        self.last = time.perf_counter()

    def mark(self, name: str) -> None:
        now = time.perf_counter()
        self.stats.timings[name] = round((now - self.last) * 1000, 3)
        self.last = now


class QueryExecutor:
    def __init__(self, source: DataSource, config: SheetQLConfig | None = None) -> None:
        self.source = source
        self.config = config or SheetQLConfig(source_directory=".")
        self.loader = DataLoader(
            source,
            excluded_columns=self.config.excluded_columns,
            parse_json=self.config.parse_json_strings,
        )
        self.evaluator = ExpressionEvaluator(strict=self.config.strict_expressions)

    def execute_query(self, sql: str, params: Params = None) -> QueryResult:
        started = time.perf_counter()
        stats = QueryStats()
        checkpoints = _Checkpoints(stats)
        engine: SQLiteEngine | None = None
        try:
            statement = parse_sql(sql)
            engine = SQLiteEngine(parse_json_results=self.config.parse_json_strings)
            checkpoints.mark("initialization")

            stats.expansions = ArrayExpansionEngine(self.loader, engine).apply(statement)
            stats.tables_loaded = self._load_tables(statement, engine, stats) + len(stats.expansions)
            checkpoints.mark("table_loading")

            stats.sql = to_sql(statement)
            logger.debug("rewritten SQL: %s", stats.sql)
            _, rows = engine.execute(stats.sql, params)
            checkpoints.mark("execution")

            rows = self._format(statement, engine, rows)
            checkpoints.mark("formatting")
            stats.row_count = len(rows)
            return QueryResult(data=rows, stats=stats)
        except Exception as e:
            logger.error("query failed: %s", e)
            logger.debug("query failure detail", exc_info=True)
            return QueryResult(error=str(e), stats=stats)
        finally:
            if engine is not None:
                engine.close()
            stats.execution_time = round((time.perf_counter() - started) * 1000, 3)

    def execute_query_with_validation(
        self, sql: str, params: Params = None, rules: Sequence[str] | None = None
    ) -> QueryResult:
        """Run the query, then annotate each row against ``rules``.

        ``rules`` defaults to the configured validation rules. A failed query
        is returned unchanged (no validation block).
        """
        result = self.execute_query(sql, params)
        if result.data is None:
            return result
        active_rules = list(rules) if rules is not None else list(self.config.validation_rules)
        result.validation = validate_rows(result.data, active_rules, self.evaluator)
        return result

    def _load_tables(self, statement: SelectStatement, engine: SQLiteEngine, stats: QueryStats) -> int:
        bindings = [b for b in iter_source_bindings(statement) if b.table is not None]
        keys = list(dict.fromkeys(b.table.key for b in bindings))
        relations: dict[str, LoadedRelation] = {}
        with ProgressTracker(len(keys)) as progress:
            for binding in bindings:
                reference = binding.table
                relation = relations.get(reference.key)
                if relation is None:
                    progress.start_item(reference.key)
                    referenced = qualified_columns(statement, reference.alias) if reference.alias else []
                    table = self.loader.load(reference, referenced_columns=referenced)
                    relation = engine.register(table, source_key=reference.key)
                    relations[reference.key] = relation
                    if table.missing:
                        stats.missing_tables.append(reference.key)
                    progress.set_postfix(rows=relation.row_count)
                    progress.finish_item()
                source = binding.source
                if isinstance(source, TableSource):
                    if source.alias is None:
                        replace_qualifier(binding.statement, source.name_parts, relation.internal_name)
                    source.parts = [Token("IDENT", relation.internal_name)]
        return len(relations)

    @staticmethod
    def _format(statement: SelectStatement, engine: SQLiteEngine, rows: list[RowObject]) -> list[RowObject]:
        # SELECT * FROM 単一テーブル: 元シートの列順に並べ直す
        if not rows or not statement.is_simple_select_star():
            return rows
        source = statement.from_source
        relation = engine.relations.get(source.name_parts[0]) if isinstance(source, TableSource) else None
        if relation is None:
            return rows
        order = [c for c in relation.columns if c in rows[0]]
        formatted = []
        for row in rows:
            ordered = {c: row[c] for c in order}
            ordered.update((k, v) for k, v in row.items() if k not in ordered)
            formatted.append(ordered)
        return formatted
