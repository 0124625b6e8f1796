from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from ..errors import SheetNotFoundError, TableNotFoundError

"""Data source abstraction.

A data source hands out raw grids: a list of rows, the first row being the
header. Header handling, column exclusion and cell normalization happen in
``DataLoader`` so every source behaves the same.
"""

__all__ = [
    "Grid",
    "TableDescriptor",
    "DataSource",
    "InMemoryDataSource",
]

Grid = list[list[Any]]


@dataclass(frozen=True)
class TableDescriptor:
    file_name: str
    sheet_name: str
    location: str | None = None  # ファイルパス等 (表示用)

    @property
    def key(self) -> str:
        return f"{self.file_name}.{self.sheet_name}"


@runtime_checkable
class DataSource(Protocol):
    def read_grid(self, file_name: str, sheet_name: str) -> Grid:
        """Return the sheet as rows of cells, header first.

        Raises TableNotFoundError when the file is unknown and
        SheetNotFoundError when the file exists but lacks the sheet.
        """

    def list_tables(self, scope: str | None = None) -> list[TableDescriptor]:
        """Enumerate the ``file.sheet`` tables the source can serve."""


class InMemoryDataSource:
    """Grids held in memory, keyed by file name then sheet name.

    Used by tests and by callers that already hold spreadsheet data.
    """

    def __init__(self, workbooks: Mapping[str, Mapping[str, Sequence[Sequence[Any]]]] | None = None) -> None:
        self._workbooks: dict[str, dict[str, Grid]] = {}
        for file_name, sheets in (workbooks or {}).items():
            for sheet_name, grid in sheets.items():
                self.add_sheet(file_name, sheet_name, grid)

    def add_sheet(self, file_name: str, sheet_name: str, grid: Sequence[Sequence[Any]]) -> None:
        self._workbooks.setdefault(file_name, {})[sheet_name] = [list(row) for row in grid]

    def read_grid(self, file_name: str, sheet_name: str) -> Grid:
        sheets = self._workbooks.get(file_name)
        if sheets is None:
            raise TableNotFoundError(file_name)
        if sheet_name not in sheets:
            raise SheetNotFoundError(file_name, sheet_name)
        return [list(row) for row in sheets[sheet_name]]

    def list_tables(self, scope: str | None = None) -> list[TableDescriptor]:
        return [
            TableDescriptor(file_name=f, sheet_name=s)
            for f in sorted(self._workbooks)
            if scope is None or f.startswith(scope)
            for s in self._workbooks[f]
        ]
