from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pandas as pd
import pandas._libs.parsers as parsers

from ..errors import SheetNotFoundError, TableNotFoundError
from .source import Grid, TableDescriptor

"""Excel data source backed by pandas/openpyxl.

Workbooks are looked up recursively under the source directory by file stem:
``Sales.2023`` reads sheet ``2023`` of the first ``Sales.xlsx`` found in sorted
path order. Sheets are read without a header so the loader sees the raw grid.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "EXCEL_SUFFIXES",
    "read_excel_file",
    "ExcelDirectorySource",
]

EXCEL_SUFFIXES = (".xlsx", ".xlsm")


def _na_options(keep_na_strings: list[str] | None) -> dict[str, Any]:
    # keep_na_strings を pandas 既定の NA 文字列集合から除外する
    if keep_na_strings:
        custom_na = parsers.STR_NA_VALUES - set(keep_na_strings)
        return {"keep_default_na": False, "na_values": list(custom_na)}
    return {"keep_default_na": True, "na_values": None}


def read_excel_file(
    path: Path, target_sheets: Iterable[str] | None = None, keep_na_strings: list[str] | None = None
) -> dict[str, pd.DataFrame]:
    """Read an Excel file returning raw (header-less) DataFrames keyed by sheet name.

    Parameters
    ----------
    path: Excel ファイルパス
    target_sheets: 対象シート制限 (None なら全シート)
    keep_na_strings: Pandasの既定NaN変換から除外する文字列リスト (例: ['NA'])
    """
    wanted = set(target_sheets) if target_sheets is not None else None
    dfs: dict[str, pd.DataFrame] = {}
    with pd.ExcelFile(path) as xls:
        for name in xls.sheet_names:
            if wanted is not None and str(name) not in wanted:
                continue
            dfs[str(name)] = xls.parse(name, header=None, **_na_options(keep_na_strings))
    return dfs


class ExcelDirectorySource:
    def __init__(
        self,
        directory: str | Path,
        keep_na_strings: list[str] | None = None,
        scope: str | None = None,
    ) -> None:
        self.directory = Path(directory)
        self.keep_na_strings = keep_na_strings
        self.scope = scope

    def _workbooks(self, scope: str | None = None) -> list[Path]:
        base = self.directory / scope if scope else self.directory
        if not base.is_dir():
            return []
        return sorted(
            p for p in base.rglob("*")
            if p.is_file() and p.suffix.lower() in EXCEL_SUFFIXES and not p.name.startswith("~$")
        )

    def find_workbook(self, file_name: str) -> Path:
        matches = [p for p in self._workbooks(self.scope) if p.stem == file_name]
        if not matches:
            raise TableNotFoundError(file_name, f"file not found: {file_name} (searched {self.directory})")
        if len(matches) > 1:
            logger.warning(
                "multiple workbooks named %s; using %s (others: %s)",
                file_name,
                matches[0],
                ", ".join(str(p) for p in matches[1:]),
            )
        return matches[0]

    def read_grid(self, file_name: str, sheet_name: str) -> Grid:
        path = self.find_workbook(file_name)
        frames = read_excel_file(path, target_sheets=[sheet_name], keep_na_strings=self.keep_na_strings)
        if sheet_name not in frames:
            raise SheetNotFoundError(file_name, sheet_name)
        return frames[sheet_name].to_numpy(dtype=object).tolist()

    def list_tables(self, scope: str | None = None) -> list[TableDescriptor]:
        tables: list[TableDescriptor] = []
        for path in self._workbooks(scope if scope is not None else self.scope):
            with pd.ExcelFile(path) as xls:
                for name in xls.sheet_names:
                    tables.append(TableDescriptor(file_name=path.stem, sheet_name=str(name), location=str(path)))
        return tables
