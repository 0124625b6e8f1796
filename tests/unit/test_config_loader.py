from __future__ import annotations

from pathlib import Path

import pytest

from sheetql.config.loader import ConfigError, config_from_dict, default_config_path, load_config


def test_load_config_reads_yaml_and_applies_defaults(write_config: Path):
    cfg = load_config(write_config)

    assert cfg.source_directory == "./data"
    assert cfg.excluded_columns == frozenset({"internal_note"})
    assert cfg.parse_json_strings is True
    assert cfg.validation_rules == ["amount > 0"]
    assert cfg.strict_expressions is False
    assert cfg.keep_na_strings is None
    assert cfg.error_log_dir == "logs"


def test_default_path_and_env_override(write_config: Path, temp_workdir: Path, monkeypatch):
    assert load_config().source_directory == "./data"

    other = temp_workdir / "other.yml"
    other.write_text("source_directory: /srv/sheets\n", encoding="utf-8")
    monkeypatch.setenv("SHEETQL_CONFIG", str(other))
    assert default_config_path() == other
    assert load_config().source_directory == "/srv/sheets"


def test_source_dir_env_override(monkeypatch):
    monkeypatch.setenv("SHEETQL_SOURCE_DIR", "/mnt/books")
    assert config_from_dict({"source_directory": "./data"}).source_directory == "/mnt/books"


def test_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(temp_workdir / "nope.yml")


def test_invalid_yaml(temp_workdir: Path):
    p = temp_workdir / "config" / "sheetql.yml"
    p.write_text("source_directory: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(p)


def test_root_must_be_mapping(temp_workdir: Path):
    p = temp_workdir / "config" / "sheetql.yml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(p)


@pytest.mark.parametrize(
    "data, fragment",
    [
        ({}, "source_directory"),
        ({"source_directory": "d", "unknown_key": 1}, "unknown_key"),
        ({"source_directory": "d", "excluded_columns": "a"}, "excluded_columns"),
        ({"source_directory": "d", "validation_rules": [""]}, "validation_rules.0"),
    ],
)
def test_schema_violations(data, fragment, monkeypatch):
    monkeypatch.delenv("SHEETQL_SOURCE_DIR", raising=False)
    with pytest.raises(ConfigError) as exc:
        config_from_dict(data)
    assert fragment in str(exc.value)


def test_config_error_is_a_sheetql_error():
    from sheetql.errors import SheetQLError

    assert issubclass(ConfigError, SheetQLError)
