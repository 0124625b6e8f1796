from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..errors import ConfigError
from ..models.config_models import SheetQLConfig

"""Config loader.

Responsibilities:
- Load the YAML config (default ``config/sheetql.yml``, ``SHEETQL_CONFIG`` overrides)
- Validate it against the packaged ``config_schema.json``
- Apply defaults and the ``SHEETQL_SOURCE_DIR`` override
"""

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "ConfigError",
    "default_config_path",
    "config_from_dict",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config") / "sheetql.yml"
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


def default_config_path() -> Path:
    return Path(os.environ.get("SHEETQL_CONFIG") or DEFAULT_CONFIG_PATH)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: the schema file is missing or broken, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path)
        suffix = f" (at {location})" if location else ""
        raise ConfigError(f"config validation failed: {e.message}{suffix}") from e


def config_from_dict(data: dict[str, Any]) -> SheetQLConfig:
    """Build a config from already-parsed data (validated, env overrides applied)."""
    data = dict(data)
    env_source = os.environ.get("SHEETQL_SOURCE_DIR")
    if env_source:
        data["source_directory"] = env_source
    _validate_config_schema(data)
    return SheetQLConfig(
        source_directory=data["source_directory"],
        excluded_columns=frozenset(data.get("excluded_columns", [])),
        parse_json_strings=data.get("parse_json_strings", True),
        keep_na_strings=data.get("keep_na_strings"),
        strict_expressions=data.get("strict_expressions", False),
        validation_rules=list(data.get("validation_rules", [])),
        error_log_dir=data.get("error_log_dir", "logs"),
    )


def load_config(path: Path | None = None) -> SheetQLConfig:
    path = Path(path) if path is not None else default_config_path()
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")
    return config_from_dict(data)
