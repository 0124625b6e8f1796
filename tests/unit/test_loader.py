from __future__ import annotations

import datetime as dt

import numpy as np
import pandas as pd
import pytest

from sheetql.errors import TableNotFoundError
from sheetql.excel.source import InMemoryDataSource
from sheetql.models.references import TableReference
from sheetql.services.loader import EMPTY_COLUMN, DataLoader, normalize_cell


def _ref(file_name: str, sheet: str, alias: str | None = None) -> TableReference:
    return TableReference(raw_text=f"{file_name}.{sheet}", file_name=file_name, sheet_name=sheet, alias=alias)


@pytest.fixture()
def source() -> InMemoryDataSource:
    return InMemoryDataSource(
        {
            "Book": {
                "Sheet1": [
                    ["id", "name", None, "secret", "payload"],
                    [1, "x", "ignored", "s1", '{"a": 1}'],
                    [None, None, None, None, None],
                    [2, "  ", None, "s2", "[1, 2]"],
                    [3, "z"],
                ],
                "Dups": [["k", "k", "k"], [1, 2, 3]],
                "Empty": [],
            }
        }
    )


def test_header_blank_columns_and_empty_rows_are_dropped(source):
    table = DataLoader(source).load(_ref("Book", "Sheet1"))
    assert table.columns == ["id", "name", "secret", "payload"]
    assert [r["id"] for r in table.rows] == [1, 2, 3]
    assert table.rows[2] == {"id": 3, "name": "z", "secret": None, "payload": None}


def test_excluded_columns_never_appear(source):
    table = DataLoader(source, excluded_columns=["secret"]).load(_ref("Book", "Sheet1"))
    assert "secret" not in table.columns
    assert all("secret" not in row for row in table.rows)


def test_json_strings_are_parsed_when_enabled(source):
    parsed = DataLoader(source).load(_ref("Book", "Sheet1"))
    assert parsed.rows[0]["payload"] == {"a": 1}
    assert parsed.rows[1]["payload"] == [1, 2]

    raw = DataLoader(source, parse_json=False).load(_ref("Book", "Sheet1"))
    assert raw.rows[0]["payload"] == '{"a": 1}'


def test_duplicate_headers_are_suffixed(source):
    table = DataLoader(source).load(_ref("Book", "Dups"))
    assert table.columns == ["k", "k_2", "k_3"]
    assert table.rows == [{"k": 1, "k_2": 2, "k_3": 3}]


def test_empty_sheet_has_placeholder_column(source):
    table = DataLoader(source).load(_ref("Book", "Empty"))
    assert table.columns == [EMPTY_COLUMN]
    assert table.rows == []


def test_missing_sheet_yields_empty_relation_with_referenced_columns(source):
    table = DataLoader(source).load(_ref("Book", "Nope", "m"), referenced_columns=["id", "note", "id"])
    assert table.missing
    assert table.columns == [EMPTY_COLUMN, "id", "note"]
    assert table.rows == []


def test_missing_file_raises(source):
    with pytest.raises(TableNotFoundError) as exc:
        DataLoader(source).load(_ref("Ghost", "Sheet1"))
    assert "Ghost" in str(exc.value)


@pytest.mark.parametrize(
    "value, expected",
    [
        (np.int64(5), 5),
        (np.float64("nan"), None),
        (float("nan"), None),
        (pd.NaT, None),
        (3.0, 3),
        (2.5, 2.5),
        (np.bool_(True), True),
        (pd.Timestamp("2023-01-05"), "2023-01-05T00:00:00"),
        (dt.date(2024, 2, 29), "2024-02-29"),
        ("plain", "plain"),
        ("[broken", "[broken"),
    ],
)
def test_normalize_cell(value, expected):
    assert normalize_cell(value) == expected


def test_duplicate_headers_differing_only_in_case_are_suffixed():
    table = DataLoader(InMemoryDataSource()).grid_to_table([["Name", "name", "NAME"], ["a", "b", "c"]])
    assert table.columns == ["Name", "name_2", "NAME_3"]
    assert table.rows == [{"Name": "a", "name_2": "b", "NAME_3": "c"}]
