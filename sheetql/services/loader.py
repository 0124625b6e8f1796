from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable, Sequence
from typing import Any

import numpy as np
import pandas as pd

from ..errors import SheetNotFoundError
from ..excel.source import DataSource, Grid
from ..expression.values import maybe_parse_json
from ..models.references import TableReference
from ..models.relation import RowObject, TableData

"""Load spreadsheet tables into row objects.

The first grid row is the header. Columns with a blank header, and columns
named in the exclusion list, are dropped; fully empty rows are skipped. Cell
values are normalized to plain Python values: NaN/NaT become None, numpy
scalars become Python scalars, integral floats become ints, dates become ISO
strings and (optionally) strings that look like JSON arrays/objects are parsed.

A sheet missing from an existing workbook yields an empty relation with a
placeholder column plus any columns the query references through its alias,
so the query still runs and returns no rows from that table.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "EMPTY_COLUMN",
    "normalize_cell",
    "DataLoader",
]

EMPTY_COLUMN = "_empty"


def normalize_cell(value: Any, parse_json: bool = True) -> Any:
    if value is None or isinstance(value, (list, dict)):
        return value
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, (pd.Timestamp, dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and parse_json:
        return maybe_parse_json(value)
    return value


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return bool(pd.api.types.is_scalar(value) and pd.isna(value))


def _header_name(value: Any) -> str | None:
    if _is_blank(value):
        return None
    value = normalize_cell(value, parse_json=False)
    return str(value).strip()


class DataLoader:
    def __init__(
        self,
        source: DataSource,
        excluded_columns: Iterable[str] = (),
        parse_json: bool = True,
    ) -> None:
        self.source = source
        self.excluded_columns = frozenset(excluded_columns)
        self.parse_json = parse_json

    def load(self, reference: TableReference, referenced_columns: Sequence[str] = ()) -> TableData:
        """Load ``reference``; TableNotFoundError propagates, a missing sheet does not."""
        try:
            grid = self.source.read_grid(reference.file_name, reference.sheet_name)
        except SheetNotFoundError as e:
            logger.warning("%s; returning an empty table", e)
            return self.empty_table(referenced_columns)
        table = self.grid_to_table(grid)
        logger.debug("loaded %s: %d rows, %d columns", reference.key, len(table.rows), len(table.columns))
        return table

    def empty_table(self, referenced_columns: Sequence[str] = ()) -> TableData:
        columns = [EMPTY_COLUMN]
        for name in referenced_columns:
            if name not in columns:
                columns.append(name)
        return TableData(columns=columns, rows=[], missing=True)

    def grid_to_table(self, grid: Grid) -> TableData:
        if not grid:
            return TableData(columns=[EMPTY_COLUMN], rows=[])

        kept: list[tuple[int, str]] = []
        seen: dict[str, int] = {}
        for index, cell in enumerate(grid[0]):
            name = _header_name(cell)
            if name is None or name in self.excluded_columns:
                continue
            # 重複ヘッダは name_2, name_3 ... に改名 (SQLite の列名は大文字小文字を区別しない)
            key = name.lower()
            if key in seen:
                seen[key] += 1
                name = f"{name}_{seen[key]}"
            else:
                seen[key] = 1
            kept.append((index, name))

        if not kept:
            return TableData(columns=[EMPTY_COLUMN], rows=[])

        rows: list[RowObject] = []
        for raw in grid[1:]:
            if all(_is_blank(cell) for cell in raw):
                continue
            row: RowObject = {}
            for index, name in kept:
                value = raw[index] if index < len(raw) else None
                row[name] = normalize_cell(value, self.parse_json)
            rows.append(row)
        return TableData(columns=[name for _, name in kept], rows=rows)
