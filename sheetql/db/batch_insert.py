from __future__ import annotations

import sqlite3
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

"""Batched INSERT into the in-memory engine.

Rows are written page by page with ``executemany`` so a large sheet does not
build one giant parameter list. Identifiers are quoted here; callers pass raw
column names straight from the sheet header.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "quote_identifier",
    "batch_insert",
]


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing for a single page of inserted rows."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    pages: int = 0


def quote_identifier(name: str) -> str:
    return '"' + str(name).replace('"', '""') + '"'


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Insert ``rows`` (already ordered like ``columns``) into ``table``.

    Parameters
    ----------
    cursor: sqlite3 cursor
    table: 対象テーブル名 (未クオート)
    columns: 挿入列
    rows: 行シーケンス (各要素は columns と同順のタプル)
    page_size: executemany 1 回あたりの行数
    metrics_callback: ページ毎に BatchMetrics を受け取るコールバック。
        rows が空の場合は呼ばれない。
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    rows_list = [tuple(r) for r in rows]
    if not rows_list:
        return InsertResult(inserted_rows=0)

    cols_sql = ",".join(quote_identifier(c) for c in columns)
    placeholders = ",".join("?" for _ in columns)
    sql = f"INSERT INTO {quote_identifier(table)} ({cols_sql}) VALUES ({placeholders})"

    pages = 0
    for offset in range(0, len(rows_list), page_size):
        page = rows_list[offset:offset + page_size]
        start_time = time.time()
        try:
            cursor.executemany(sql, page)
        except sqlite3.Error as e:
            raise BatchInsertError(f"insert into {table} failed: {e}") from e
        finally:
            end_time = time.time()
            if metrics_callback is not None:
                metrics_callback(
                    BatchMetrics(
                        batch_size=len(page),
                        elapsed_seconds=end_time - start_time,
                        start_time=start_time,
                        end_time=end_time,
                    )
                )
        pages += 1

    return InsertResult(inserted_rows=len(rows_list), pages=pages)
