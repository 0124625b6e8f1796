from __future__ import annotations

from sheetql.cli import __main__ as cli


def test_exit_code_values():
    assert (cli.EXIT_SUCCESS, cli.EXIT_FATAL, cli.EXIT_VALIDATION_FAILED) == (0, 1, 2)
