# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pandas as pd
import pytest

from sheetql.excel.source import InMemoryDataSource
from sheetql.logging.init import reset_logging


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("SHEETQL_CONFIG", raising=False)
        monkeypatch.delenv("SHEETQL_SOURCE_DIR", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_directory: ./data
excluded_columns: [internal_note]
parse_json_strings: true
validation_rules:
  - "amount > 0"
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "sheetql.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def sales_rows(count: int = 100) -> list[list]:
    regions = ["east", "west", "north", "south"]
    return [
        [f"2023-{1 + i // 28:02d}-{1 + i % 28:02d}", i * 25, regions[i % 4]]
        for i in range(count)
    ]


@pytest.fixture()
def memory_source() -> InMemoryDataSource:
    """Sales.2023 (date/amount/region), Orders.2024 with JSON item arrays, Users.Sheet1."""
    return InMemoryDataSource(
        {
            "Sales": {"2023": [["date", "amount", "region"], *sales_rows()]},
            "Orders": {
                "2024": [
                    ["id", "region", "items"],
                    [1, "east", '[{"sku": "A", "qty": 2}, {"sku": "B", "qty": 1}]'],
                    [2, "west", "[]"],
                    [3, "east", '[{"sku": "C", "qty": 5}]'],
                    [4, "west", '[{"sku": "A", "qty": 7}]'],
                ]
            },
            "Users": {
                "Sheet1": [
                    ["id", "name", "internal_note", "profile"],
                    [1, "alice", "x", '{"team": "red", "tags": ["a", "b"]}'],
                    [2, "bob", "y", '{"team": "blue", "tags": []}'],
                ]
            },
        }
    )


@pytest.fixture()
def make_workbook(temp_workdir: Path):
    """Write an .xlsx under data/ : make_workbook("Sales", {"2023": (columns, rows)})."""

    def _make(name: str, sheets: dict[str, tuple[list[str], list[list]]], subdir: str | None = None) -> Path:
        directory = temp_workdir / "data" / subdir if subdir else temp_workdir / "data"
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{name}.xlsx"
        with pd.ExcelWriter(path) as writer:
            for sheet, (columns, rows) in sheets.items():
                pd.DataFrame(rows, columns=columns).to_excel(writer, sheet_name=sheet, index=False)
        return path

    return _make
