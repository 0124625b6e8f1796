from __future__ import annotations

import json
import re
import sqlite3
from collections.abc import Callable
from typing import Any

from jsonschema import validators
from jsonschema.exceptions import SchemaError

from ..expression.values import array_length, dumps_compact, maybe_parse_json, parse_json_value, to_text

"""JSON and array functions registered on every engine connection.

Nested cell values (arrays, objects) are stored as compact JSON text, so these
functions accept either JSON text or plain scalars. Registering them as
user functions replaces SQLite's built-in ``json_extract`` so that paths with
array indexes (``$.items[0].sku``) and the loose scalar handling used by
validation rules behave the same inside SQL.
"""

__all__ = [
    "json_path_get",
    "to_sql_value",
    "register_functions",
    "SQL_FUNCTIONS",
]

_SEGMENT = re.compile(r"([^.\[\]]*)((?:\[\d+\])*)")
_INDEX = re.compile(r"\[(\d+)\]")


def json_path_get(data: Any, path: Any) -> Any:
    """Walk ``data`` along a ``$.a.b[0]`` style path; missing steps give None."""
    text = str(path).strip() if path is not None else "$"
    if text.startswith("$"):
        text = text[1:]
    text = text.lstrip(".")
    if not text:
        return data
    current = data
    for segment in text.split("."):
        match = _SEGMENT.fullmatch(segment)
        if match is None:
            return None
        name, indexes = match.group(1), match.group(2)
        if name:
            current = maybe_parse_json(current)
            if not isinstance(current, dict):
                return None
            current = current.get(name.strip("\"'"))
        for index in _INDEX.findall(indexes):
            current = maybe_parse_json(current)
            position = int(index)
            if not isinstance(current, list) or position >= len(current):
                return None
            current = current[position]
        if current is None:
            return None
    return current


def to_sql_value(value: Any) -> Any:
    """Convert a Python value to something sqlite3 can store."""
    if isinstance(value, bool):
        return int(value)
    if value is None or isinstance(value, (int, float, str, bytes)):
        return value
    if isinstance(value, (list, dict, tuple)):
        return dumps_compact(list(value) if isinstance(value, tuple) else value)
    return str(value)


def _json_extract(value: Any, path: Any) -> Any:
    return to_sql_value(json_path_get(maybe_parse_json(value), path))


def _json_value(value: Any, path: Any) -> Any:
    result = json_path_get(maybe_parse_json(value), path)
    if isinstance(result, (list, dict)):
        return None
    return to_sql_value(result)


def _json_extract_filtered(value: Any, key_name: Any, key_value: Any, target: Any) -> str:
    data = maybe_parse_json(value)
    if not isinstance(data, list):
        return "[]"
    expected = to_text(key_value)
    matched = [
        element.get(str(target))
        for element in data
        if isinstance(element, dict) and to_text(element.get(str(key_name))) == expected
    ]
    return dumps_compact(matched)


def _array_length(value: Any) -> int:
    return array_length(value)


def _array_contains(value: Any, candidate: Any) -> int:
    data = maybe_parse_json(value)
    if not isinstance(data, list):
        return 0
    expected = to_text(candidate)
    return int(any(to_text(element) == expected for element in data))


def _contains(target: Any, candidate: Any) -> bool:
    if isinstance(candidate, dict):
        return isinstance(target, dict) and all(
            key in target and _contains(target[key], value) for key, value in candidate.items()
        )
    if isinstance(candidate, list):
        if isinstance(target, list):
            return all(any(_contains(t, c) for t in target) for c in candidate)
        return False
    if isinstance(target, list):
        return any(_contains(t, candidate) for t in target)
    return to_text(target) == to_text(candidate)


def _json_contains(*args: Any) -> int | None:
    if len(args) not in (2, 3):
        raise ValueError("JSON_CONTAINS expects (document, candidate[, path])")
    document = parse_json_value(args[0])
    if len(args) == 3:
        document = json_path_get(document, args[2])
    if document is None or args[1] is None:
        return None
    return int(_contains(document, parse_json_value(args[1])))


def _json_schema_valid(schema: Any, document: Any) -> int:
    schema_obj = parse_json_value(schema)
    if not isinstance(schema_obj, dict):
        return 0
    validator_cls = validators.validator_for(schema_obj)
    try:
        validator_cls.check_schema(schema_obj)
    except SchemaError:
        return 0
    return int(validator_cls(schema_obj).is_valid(parse_json_value(document)))


def _json_object(*args: Any) -> str:
    if len(args) % 2:
        raise ValueError("JSON_OBJECT expects key/value pairs")
    return dumps_compact(
        {str(args[i]): maybe_parse_json(args[i + 1]) for i in range(0, len(args), 2)}
    )


def _json_array(*args: Any) -> str:
    return dumps_compact([maybe_parse_json(a) for a in args])


def _json_valid(value: Any) -> int:
    if not isinstance(value, str):
        return 0
    try:
        json.loads(value)
    except ValueError:
        return 0
    return 1


# name -> (引数の数, 実装)。-1 は可変長
SQL_FUNCTIONS: dict[str, tuple[int, Callable[..., Any]]] = {
    "JSON_EXTRACT": (2, _json_extract),
    "JSON_VALUE": (2, _json_value),
    "JSON_EXTRACT_FILTERED": (4, _json_extract_filtered),
    "ARRAY_LENGTH": (1, _array_length),
    "ARRAY_CONTAINS": (2, _array_contains),
    "JSON_CONTAINS": (-1, _json_contains),
    "JSON_SCHEMA_VALID": (2, _json_schema_valid),
    "JSON_OBJECT": (-1, _json_object),
    "JSON_ARRAY": (-1, _json_array),
    "JSON_VALID": (1, _json_valid),
}


def register_functions(connection: sqlite3.Connection) -> None:
    for name, (narg, function) in SQL_FUNCTIONS.items():
        connection.create_function(name, narg, function, deterministic=True)
