from __future__ import annotations

import json
import re
from collections.abc import Callable
from typing import Any

"""Value coercion helpers shared by the expression evaluator and the SQL functions.

Text forms follow the loose rules validation rules were written against:
integral floats print without a fractional part, booleans print as
``true``/``false``, None prints as ``null`` and arrays/objects print as compact
JSON.
"""

__all__ = [
    "NUMERIC_PATTERN",
    "maybe_parse_json",
    "parse_json_value",
    "to_text",
    "to_number",
    "array_length",
    "dumps_compact",
]

NUMERIC_PATTERN = re.compile(r"^-?\d+(?:\.\d+)?$")


def dumps_compact(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)


def maybe_parse_json(value: Any) -> Any:
    """Parse strings that look like a JSON array/object; keep anything else as is."""
    if not isinstance(value, str):
        return value
    stripped = value.strip()
    if not stripped or stripped[0] not in "[{":
        return value
    try:
        return json.loads(stripped)
    except ValueError:
        return value


def parse_json_value(value: Any) -> Any:
    """Parse any JSON text (scalars included); non-JSON strings come back unchanged."""
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return value


def to_text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, dict)):
        return dumps_compact(value)
    return str(value)


def to_number(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and NUMERIC_PATTERN.match(value.strip()):
        return float(value.strip())
    return None


def array_length(value: Any, on_fallback: Callable[[str], None] | None = None) -> int:
    """Length of an array value, a JSON array string, or a comma separated string.

    Scalars that are not arrays count as 1; ``on_fallback`` is told when that
    happens so strict callers can surface it.
    """
    if value is None:
        return 0
    if isinstance(value, (list, tuple)):
        return len(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0
        try:
            parsed = json.loads(stripped)
        except ValueError:
            return len(stripped.split(","))
        if isinstance(parsed, list):
            return len(parsed)
    if on_fallback is not None:
        on_fallback(f"ARRAY_LENGTH of non-array value {value!r} counted as 1")
    return 1
