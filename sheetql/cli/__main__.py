from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import pandas as pd
from dotenv import load_dotenv

from sheetql.config.loader import ConfigError, config_from_dict, load_config
from sheetql.excel.reader import ExcelDirectorySource
from sheetql.expression.evaluator import ExpressionEvaluator
from sheetql.logging.error_log import ErrorLogBuffer
from sheetql.logging.init import log_summary, setup_logging
from sheetql.models.config_models import SheetQLConfig
from sheetql.services.executor import QueryExecutor
from sheetql.services.summary import render_summary_line

"""CLI entrypoint.

Subcommands:
- ``query SQL`` runs a query over the configured workbook directory
- ``tables`` lists the ``file.sheet`` tables that can be queried
- ``eval EXPR --row JSON`` evaluates one validation expression
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_VALIDATION_FAILED = 2


def _load_env_file(path: Path, override: bool = False) -> None:
    """Load .env using python-dotenv (existing environment wins unless ``override``)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_param(text: str) -> tuple[str, Any]:
    name, sep, raw = text.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {text!r}")
    for convert in (int, float):
        try:
            return name, convert(raw)
        except ValueError:
            continue
    return name, raw


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="sheetql", description="SQL queries over Excel workbooks")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help="Config YAML (default: $SHEETQL_CONFIG or config/sheetql.yml)")
    p.add_argument("--source-dir", default=None, help="Workbook directory (skips the config file)")
    sub = p.add_subparsers(dest="command", required=True)

    q = sub.add_parser("query", help="Run a SQL query")
    q.add_argument("sql")
    q.add_argument("--param", action="append", type=_parse_param, default=[], metavar="NAME=VALUE",
                   help="Named parameter bound as :NAME")
    q.add_argument("--rule", action="append", default=None, metavar="EXPR",
                   help="Validation rule (repeatable; default: rules from config)")
    q.add_argument("--json", action="store_true", help="Print the full result as JSON")

    t = sub.add_parser("tables", help="List queryable file.sheet tables")
    t.add_argument("--scope", default=None, help="Sub-directory to restrict the listing to")

    e = sub.add_parser("eval", help="Evaluate a validation expression against one row")
    e.add_argument("expression")
    e.add_argument("--row", required=True, help="Row object as JSON")
    return p.parse_args(argv)


def _resolve_config(args: argparse.Namespace) -> SheetQLConfig:
    if args.source_dir:
        return config_from_dict({"source_directory": args.source_dir})
    return load_config(args.config)


def _print_rows(rows: list[dict[str, Any]]) -> None:
    if not rows:
        print("(no rows)")
        return
    frame = pd.DataFrame(rows)
    print(frame.to_string(index=False))


def _run_query(args: argparse.Namespace, cfg: SheetQLConfig, logger) -> int:
    directory = Path(cfg.source_directory)
    if not directory.is_dir():
        logger.error(f"directory not found: {directory}")
        return EXIT_FATAL

    executor = QueryExecutor(ExcelDirectorySource(directory, keep_na_strings=cfg.keep_na_strings), cfg)
    params = dict(args.param) if args.param else None
    rules = args.rule if args.rule is not None else cfg.validation_rules
    if rules:
        result = executor.execute_query_with_validation(args.sql, params, rules)
    else:
        result = executor.execute_query(args.sql, params)

    if args.json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, default=str, indent=2))
    elif result.data is not None:
        _print_rows(result.data)

    summary_line = render_summary_line(result)
    log_summary(summary_line[len("SUMMARY "):])

    if result.error is not None:
        return EXIT_FATAL
    if result.validation is not None and result.validation.error_rows:
        buffer = ErrorLogBuffer(cfg.error_log_dir)
        buffer.extend(result.validation.to_error_records(args.sql))
        path = buffer.flush()
        logger.warning(f"{result.validation.error_rows} rows failed validation; details in {path}")
        return EXIT_VALIDATION_FAILED
    return EXIT_SUCCESS


def _run_tables(args: argparse.Namespace, cfg: SheetQLConfig, logger) -> int:
    directory = Path(cfg.source_directory)
    if not directory.is_dir():
        logger.error(f"directory not found: {directory}")
        return EXIT_FATAL
    source = ExcelDirectorySource(directory, keep_na_strings=cfg.keep_na_strings)
    tables = source.list_tables(args.scope)
    for table in tables:
        print(f"{table.key}\t{table.location}")
    logger.info(f"{len(tables)} tables found under {directory}")
    return EXIT_SUCCESS


def _run_eval(args: argparse.Namespace, logger) -> int:
    try:
        row = json.loads(args.row)
    except ValueError as e:
        logger.error(f"--row is not valid JSON: {e}")
        return EXIT_FATAL
    if not isinstance(row, dict):
        logger.error("--row must be a JSON object")
        return EXIT_FATAL
    evaluator = ExpressionEvaluator(strict=True)
    outcome = evaluator.evaluate(args.expression, row)
    print("true" if outcome else "false")
    return EXIT_SUCCESS if outcome else EXIT_VALIDATION_FAILED


def main(argv: list[str] | None = None) -> int:
    # NOTE: 空リスト [] を渡された場合に sys.argv が混入しないよう None のときのみ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    _load_env_file(Path(".env"))

    if args.command == "eval":
        return _run_eval(args, logger)

    try:
        cfg = _resolve_config(args)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "tables":
        return _run_tables(args, cfg, logger)
    return _run_query(args, cfg, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
