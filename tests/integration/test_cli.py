from __future__ import annotations

from pathlib import Path

from sheetql.cli.__main__ import EXIT_FATAL, EXIT_SUCCESS, EXIT_VALIDATION_FAILED, main


def test_query_success_prints_rows_and_summary(write_config, make_workbook, capsys):
    make_workbook("Sales", {"2023": (["amount", "region"], [[100, "east"], [250, "west"]])})

    code = main(["query", "SELECT * FROM Sales.2023 ORDER BY amount"])

    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "east" in out and "west" in out
    assert "SUMMARY rows=2 tables=1 expanded_rows=0 invalid_rows=0" in out


def test_query_with_failing_rows_writes_error_log(write_config, make_workbook, temp_workdir: Path, capsys):
    make_workbook("Sales", {"2023": (["amount", "region"], [[0, "east"], [250, "west"]])})

    code = main(["query", "SELECT * FROM Sales.2023"])

    out = capsys.readouterr().out
    assert code == EXIT_VALIDATION_FAILED
    assert "invalid_rows=1" in out
    logs = list((temp_workdir / "logs").glob("validation-*.log"))
    assert len(logs) == 1
    assert '"rule": "amount > 0"' in logs[0].read_text(encoding="utf-8")


def test_rule_option_overrides_config(write_config, make_workbook, capsys):
    make_workbook("Sales", {"2023": (["amount", "region"], [[0, "east"]])})
    code = main(["query", "SELECT * FROM Sales.2023", "--rule", "region = 'east'"])
    assert code == EXIT_SUCCESS


def test_query_params_and_json_output(write_config, make_workbook, capsys):
    make_workbook("Sales", {"2023": (["amount", "region"], [[100, "east"], [250, "west"]])})
    code = main(["query", "SELECT amount FROM Sales.2023 WHERE region = :r", "--param", "r=west", "--json"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert '"amount": 250' in out


def test_query_error_exits_fatal(write_config, make_workbook, capsys):
    make_workbook("Sales", {"2023": (["amount"], [[1]])})
    code = main(["query", "SELECT * FROM Missing.Sheet1"])
    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "ERROR" in out and "Missing" in out


def test_missing_config_exits_fatal(temp_workdir, capsys):
    code = main(["query", "SELECT 1"])
    assert code == EXIT_FATAL
    assert "config file not found" in capsys.readouterr().out


def test_source_dir_option_skips_config(temp_workdir, make_workbook, capsys):
    make_workbook("Sales", {"2023": (["amount"], [[1]])})
    code = main(["--source-dir", "data", "query", "SELECT COUNT(*) AS n FROM Sales.2023"])
    assert code == EXIT_SUCCESS


def test_dotenv_supplies_source_dir(temp_workdir, make_workbook, capsys):
    make_workbook("Sales", {"2023": (["amount"], [[1]])})
    (temp_workdir / "config" / "sheetql.yml").write_text("source_directory: ./elsewhere\n", encoding="utf-8")
    (temp_workdir / ".env").write_text("SHEETQL_SOURCE_DIR=./data\n", encoding="utf-8")
    code = main(["query", "SELECT amount FROM Sales.2023"])
    assert code == EXIT_SUCCESS


def test_tables_subcommand(write_config, make_workbook, capsys):
    make_workbook("Sales", {"2023": (["amount"], [[1]])})
    code = main(["tables"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "Sales.2023\t" in out


def test_eval_subcommand(capsys):
    assert main(["eval", "a > 1", "--row", '{"a": 2}']) == EXIT_SUCCESS
    assert capsys.readouterr().out.splitlines()[0] == "true"
    assert main(["eval", "a > 1", "--row", '{"a": 0}']) == EXIT_VALIDATION_FAILED
    assert main(["eval", "a > 1", "--row", "[1]"]) == EXIT_FATAL
