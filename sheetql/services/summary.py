from __future__ import annotations

from ..models.query_result import QueryResult

"""SUMMARY line rendering.

Format::

    SUMMARY rows={rows} tables={tables} expanded_rows={expanded} invalid_rows={invalid} elapsed_sec={elapsed}

``invalid_rows`` is 0 when no validation ran. A failed query still renders a
line (with ``rows=0``) so log scrapers always find one per run.
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
]


def format_seconds(seconds: float) -> str:
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        # 指数表記を避ける
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return str(round(seconds, 3))


def render_summary_line(result: QueryResult) -> str:
    stats = result.stats
    invalid = result.validation.error_rows if result.validation is not None else 0
    return (
        f"SUMMARY rows={stats.row_count} "
        f"tables={stats.tables_loaded} "
        f"expanded_rows={stats.expanded_rows} "
        f"invalid_rows={invalid} "
        f"elapsed_sec={format_seconds(stats.execution_time / 1000)}"
    )
