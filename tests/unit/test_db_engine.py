from __future__ import annotations

import sqlite3

import pytest

from sheetql.db.batch_insert import BatchInsertError, batch_insert
from sheetql.db.engine import RELATION_PREFIX, SQLiteEngine
from sheetql.db.functions import json_path_get, to_sql_value
from sheetql.errors import QueryExecutionError
from sheetql.models.relation import TableData


@pytest.fixture()
def engine():
    with SQLiteEngine() as e:
        yield e


def _register_orders(engine: SQLiteEngine):
    return engine.register(
        TableData(
            columns=["id", "payload"],
            rows=[
                {"id": 1, "payload": {"type": "x", "items": [{"sku": "A"}, {"sku": "B"}]}},
                {"id": 2, "payload": {"type": "y", "items": []}},
            ],
        ),
        source_key="Orders.2024",
    )


def test_relation_names_are_unique_and_prefixed(engine):
    first = engine.register(TableData(columns=["a"], rows=[{"a": 1}]))
    second = engine.register(TableData(columns=["a"], rows=[]))
    assert first.internal_name.startswith(RELATION_PREFIX)
    assert first.internal_name != second.internal_name
    assert first.row_count == 1 and second.row_count == 0


def test_fresh_engines_do_not_share_relations():
    with SQLiteEngine() as one:
        relation = one.register(TableData(columns=["a"], rows=[{"a": 1}]))
    with SQLiteEngine() as two:
        with pytest.raises(QueryExecutionError):
            two.execute(f"SELECT * FROM {relation.internal_name}")


def test_nested_values_round_trip_as_json(engine):
    relation = _register_orders(engine)
    _, rows = engine.execute(f"SELECT payload FROM {relation.internal_name} ORDER BY id")
    assert rows[0]["payload"]["items"][1] == {"sku": "B"}


def test_json_extract_walks_indexed_paths(engine):
    relation = _register_orders(engine)
    _, rows = engine.execute(
        f"SELECT JSON_EXTRACT(payload, '$.items[1].sku') AS sku, "
        f"ARRAY_LENGTH(JSON_EXTRACT(payload, '$.items')) AS n FROM {relation.internal_name} ORDER BY id"
    )
    assert rows == [{"sku": "B", "n": 2}, {"sku": None, "n": 0}]


def test_json_functions_in_where(engine):
    relation = _register_orders(engine)
    _, rows = engine.execute(
        f"SELECT id FROM {relation.internal_name} "
        f"WHERE JSON_VALUE(payload, '$.type') = ? AND ARRAY_CONTAINS(JSON_EXTRACT_FILTERED("
        f"JSON_EXTRACT(payload, '$.items'), 'sku', 'A', 'sku'), 'A')",
        ("x",),
    )
    assert rows == [{"id": 1}]


def test_json_constructors_and_contains(engine):
    _, rows = engine.execute(
        "SELECT JSON_OBJECT('a', 1, 'b', JSON_ARRAY(1, 'two')) AS obj, "
        "JSON_CONTAINS('[1, 2, 3]', '2') AS has_two, "
        "JSON_CONTAINS('{\"a\": {\"b\": 1}}', '1', '$.a.b') AS nested, "
        "JSON_VALID('{') AS broken"
    )
    assert rows == [{"obj": {"a": 1, "b": [1, "two"]}, "has_two": 1, "nested": 1, "broken": 0}]


def test_json_schema_valid(engine):
    schema = '{"type": "object", "required": ["sku"]}'
    _, rows = engine.execute(
        "SELECT JSON_SCHEMA_VALID(?, '{\"sku\": \"A\"}') AS ok, JSON_SCHEMA_VALID(?, '{}') AS ng",
        (schema, schema),
    )
    assert rows == [{"ok": 1, "ng": 0}]


def test_sql_errors_are_wrapped(engine):
    with pytest.raises(QueryExecutionError) as exc:
        engine.execute("SELECT nope FROM nowhere")
    assert "nowhere" in str(exc.value)


def test_json_path_get_edge_cases():
    data = {"a": [{"b": 1}], "s": '{"t": 2}'}
    assert json_path_get(data, "$") is data
    assert json_path_get(data, "$.a[0].b") == 1
    assert json_path_get(data, "$.a[3].b") is None
    assert json_path_get(data, "$.s.t") == 2
    assert json_path_get([10, 20], "$[1]") == 20


def test_to_sql_value():
    assert to_sql_value(True) == 1
    assert to_sql_value({"a": [1]}) == '{"a":[1]}'
    assert to_sql_value(None) is None


def test_batch_insert_pages_and_metrics():
    conn = sqlite3.connect(":memory:")
    cur = conn.cursor()
    cur.execute('CREATE TABLE "t" ("a", "b")')
    seen = []
    result = batch_insert(cur, "t", ["a", "b"], [(i, str(i)) for i in range(5)], page_size=2, metrics_callback=seen.append)
    assert result.inserted_rows == 5
    assert result.pages == 3
    assert [m.batch_size for m in seen] == [2, 2, 1]
    assert cur.execute('SELECT COUNT(*) FROM "t"').fetchone()[0] == 5


def test_batch_insert_empty_and_failure():
    conn = sqlite3.connect(":memory:")
    cur = conn.cursor()
    seen = []
    assert batch_insert(cur, "missing", ["a"], [], metrics_callback=seen.append).inserted_rows == 0
    assert seen == []
    with pytest.raises(BatchInsertError):
        batch_insert(cur, "missing", ["a"], [(1,)])
