from __future__ import annotations

from pathlib import Path

from sheetql.excel.reader import ExcelDirectorySource
from sheetql.models.config_models import SheetQLConfig
from sheetql.services.executor import QueryExecutor

from tests.conftest import sales_rows


def _executor(temp_workdir: Path, **overrides) -> QueryExecutor:
    cfg = SheetQLConfig(source_directory=str(temp_workdir / "data"), **overrides)
    source = ExcelDirectorySource(cfg.source_directory, keep_na_strings=cfg.keep_na_strings)
    return QueryExecutor(source, cfg)


def test_query_over_real_workbook(make_workbook, temp_workdir: Path):
    make_workbook("Sales", {"2023": (["date", "amount", "region"], sales_rows())})

    result = _executor(temp_workdir).execute_query(
        "SELECT * FROM Sales.2023 WHERE amount > 1000 ORDER BY amount LIMIT 5"
    )

    assert result.ok, result.error
    assert [r["amount"] for r in result.data] == [1025, 1050, 1075, 1100, 1125]
    assert list(result.data[0]) == ["date", "amount", "region"]


def test_unnest_json_cells(make_workbook, temp_workdir: Path):
    make_workbook(
        "Orders",
        {
            "2024": (
                ["id", "items"],
                [
                    [1, '[{"sku": "A", "qty": 2}, {"sku": "B", "qty": 1}]'],
                    [2, "[]"],
                    [3, '[{"sku": "C", "qty": 5}]'],
                ],
            )
        },
    )

    result = _executor(temp_workdir).execute_query(
        "SELECT o.id, it.sku AS sku FROM Orders.2024 o CROSS JOIN UNNEST(o.items) AS it ORDER BY o.id, it.sku"
    )

    assert result.ok, result.error
    assert result.data == [{"id": 1, "sku": "A"}, {"id": 1, "sku": "B"}, {"id": 3, "sku": "C"}]
    assert result.stats.expanded_rows == 3


def test_blank_cells_and_keep_na_strings(make_workbook, temp_workdir: Path):
    make_workbook("Codes", {"Sheet1": (["id", "code", "note"], [[1, "NA", None], [2, "ok", "x"]])})
    sql = "SELECT id, code, note FROM Codes.Sheet1 ORDER BY id"

    default = _executor(temp_workdir).execute_query(sql)
    kept = _executor(temp_workdir, keep_na_strings=["NA"]).execute_query(sql)

    assert default.data[0] == {"id": 1, "code": None, "note": None}
    assert kept.data[0] == {"id": 1, "code": "NA", "note": None}


def test_missing_sheet_in_existing_workbook(make_workbook, temp_workdir: Path):
    make_workbook("Sales", {"2023": (["amount"], [[1]])})
    result = _executor(temp_workdir).execute_query("SELECT s.amount FROM Sales.2024 s")
    assert result.ok, result.error
    assert result.data == []


def test_duplicate_workbook_names_and_scope(make_workbook, temp_workdir: Path):
    make_workbook("Dup", {"S": (["v"], [["from-a"]])}, subdir="a")
    make_workbook("Dup", {"S": (["v"], [["from-b"]])}, subdir="b")
    data = temp_workdir / "data"

    first = QueryExecutor(ExcelDirectorySource(data)).execute_query("SELECT v FROM Dup.S")
    scoped = QueryExecutor(ExcelDirectorySource(data, scope="b")).execute_query("SELECT v FROM Dup.S")

    assert first.data == [{"v": "from-a"}]
    assert scoped.data == [{"v": "from-b"}]


def test_list_tables(make_workbook, temp_workdir: Path):
    make_workbook("Sales", {"2023": (["a"], [[1]]), "2024": (["a"], [[2]])})
    make_workbook("Users", {"Sheet1": (["id"], [[1]])}, subdir="crm")
    source = ExcelDirectorySource(temp_workdir / "data")

    assert sorted(t.key for t in source.list_tables()) == ["Sales.2023", "Sales.2024", "Users.Sheet1"]
    assert [t.key for t in source.list_tables("crm")] == ["Users.Sheet1"]


def test_sales_scenario_sorted_by_date_descending(make_workbook, temp_workdir: Path):
    make_workbook("Sales", {"2023": (["date", "amount", "region"], sales_rows())})

    result = _executor(temp_workdir).execute_query(
        "SELECT * FROM Sales.2023 WHERE amount > 1000 ORDER BY date DESC LIMIT 5"
    )

    assert result.ok, result.error
    dates = [r["date"] for r in result.data]
    assert len(dates) == 5
    assert dates == sorted(dates, reverse=True)
    assert dates[0] == "2023-04-16"
    assert all(r["amount"] > 1000 for r in result.data)
    assert list(result.data[0]) == ["date", "amount", "region"]
