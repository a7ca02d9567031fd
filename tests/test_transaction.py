import json

import pytest

from ovsdblib.atoms import UUID
from ovsdblib.condition import equal, less_than
from ovsdblib.containers import OvsSet
from ovsdblib.db_schema import DbSchema
from ovsdblib.mutation import add, insert
from ovsdblib.transaction import Transaction, TransactionError

SCHEMA = {
    "name": "Test",
    "version": "1.0.0",
    "tables": {
        "Bridge": {
            "columns": {
                "name": {"type": "string"},
                "ports": {
                    "type": {"key": {"type": "uuid"}, "min": 0, "max": "unlimited"}
                },
                "tag": {
                    "type": {
                        "key": {"type": "integer", "minInteger": 0, "maxInteger": 4095},
                        "min": 0,
                        "max": 1,
                    }
                },
            }
        }
    },
}


@pytest.fixture
def schema():
    return DbSchema.from_json(SCHEMA)


@pytest.fixture
def row(schema):
    return schema.tables["Bridge"].new_row({"name": "br0"})


def test_insert_wire_form(schema, row):
    tx = Transaction(schema).insert(row, "__new")
    (op,) = tx.operations()
    assert op.to_json() == {
        "op": "insert",
        "table": "Bridge",
        "row": {"name": "br0"},
        "uuid-name": "__new",
    }


def test_insert_default_uuid_name(schema, row):
    op = Transaction(schema).insert(row).operations()[0]
    assert op.to_json()["uuid-name"] == ""


def test_insert_none_row_fails_validation(schema):
    tx = Transaction(schema).insert(None)
    with pytest.raises(ValueError, match="nil row"):
        tx.validate()


def test_select_wire_form_and_validation(schema):
    tx = Transaction(schema).select("Bridge", [equal("name", "br0")], ["name"])
    tx.validate()
    assert tx.operations()[0].to_json() == {
        "op": "select",
        "table": "Bridge",
        "where": [["name", "==", "br0"]],
        "columns": ["name"],
    }


def test_select_unknown_column(schema):
    tx = Transaction(schema).select("Bridge", [], ["nope"])
    with pytest.raises(ValueError, match="not found in table"):
        tx.validate()


def test_select_unknown_table(schema):
    with pytest.raises(ValueError, match="not found"):
        Transaction(schema).select("Nope", []).validate()


def test_bad_condition_operator(schema):
    tx = Transaction(schema).delete("Bridge", [less_than("name", "x")])
    with pytest.raises(ValueError, match="invalid operation"):
        tx.validate()


def test_select_decodes_rows(schema):
    tx = Transaction(schema).select("Bridge", None)
    tx.decode_result(json.dumps([{"rows": [{"name": "br0"}, {"name": "br1"}]}]))
    rows = tx.result(0).rows
    assert [r.get("name") for r in rows] == ["br0", "br1"]
    tx.check()


def test_insert_result_uuid(schema, row):
    tx = Transaction(schema).insert(row)
    tx.decode_result([{"uuid": ["uuid", "abc-1"]}])
    assert tx.result(0).uuid == UUID("abc-1")


def test_update_result_count(schema, row):
    tx = Transaction(schema).update([equal("tag", 5)], row)
    tx.validate()
    tx.decode_result([{"count": 2}])
    assert tx.result(0).count == 2
    assert tx.operations()[0].to_json()["table"] == "Bridge"


def test_update_none_row(schema):
    with pytest.raises(ValueError):
        Transaction(schema).update([], None).validate()


def test_mutate_validation(schema):
    good = Transaction(schema).mutate(
        "Bridge", [], [insert("ports", OvsSet([UUID("p1")]))]
    )
    good.validate()
    assert good.operations()[0].to_json()["mutations"] == [
        ["ports", "insert", ["uuid", "p1"]]
    ]
    bad = Transaction(schema).mutate("Bridge", [], [add("name", 1)])
    with pytest.raises(ValueError, match="table 'Bridge'"):
        bad.validate()


def test_wait_until_and_timeout(schema, row):
    tx = Transaction(schema).wait("Bridge", [], ["name"], "==", [row])
    tx.validate()
    wire = tx.operations()[0].to_json()
    assert "timeout" not in wire
    assert wire["rows"] == [{"name": "br0"}]
    bad = Transaction(schema).wait("Bridge", [], None, "<", None, 10)
    assert bad.operations()[0].to_json()["timeout"] == 10
    with pytest.raises(ValueError, match="invalid until"):
        bad.validate()


def test_commit_abort_comment(schema):
    tx = Transaction(schema).commit(True).abort().comment("hello")
    assert [op.to_json() for op in tx.operations()] == [
        {"op": "commit", "durable": True},
        {"op": "abort"},
        {"op": "comment", "comment": "hello"},
    ]


def test_operation_error(schema, row):
    tx = Transaction(schema).insert(row)
    tx.decode_result([{"error": "constraint violation", "details": "bad"}])
    with pytest.raises(TransactionError, match=r"operation #0\(insert\): constraint violation \(bad\)"):
        tx.check()


def test_general_error(schema):
    tx = Transaction(schema).commit(False)
    tx.decode_result([{}, {"error": "timed out"}])
    with pytest.raises(TransactionError, match="general transaction error: timed out"):
        tx.check()


def test_null_results_are_skipped(schema):
    tx = Transaction(schema).abort().comment("c")
    tx.decode_result([None, {"error": "aborted"}])
    assert tx.result(0) is None
    with pytest.raises(TransactionError, match=r"operation #1\(comment\)"):
        tx.check()


def test_fewer_results_truncate(schema):
    tx = Transaction(schema).abort().comment("c")
    tx.decode_result([{}])
    with pytest.raises(IndexError):
        tx.result(1)


def test_clone_is_independent(schema):
    tx = Transaction(schema).abort()
    copy = tx.clone()
    copy.comment("x")
    assert len(tx) == 1
    assert len(copy) == 2