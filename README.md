# ovsdblib

A client library for OVSDB, the JSON-RPC database protocol described in
RFC 7047 and used by Open vSwitch. It uses only the standard library.

## What it provides

- `ovsdblib.atoms`: `UUID` (a `str` that encodes as `["uuid", ...]`, or
  `["named-uuid", ...]` when it starts with `__`), `new_named_uuid()`,
  `atom_to_json()` and `atom_from_json()`.
- `ovsdblib.containers`: `OvsSet` (a `list`) and `OvsMap` (a `dict`) with
  their wire forms. A one-element set encodes as the bare element, otherwise
  as `["set", [...]]`; maps encode as `["map", [[key, value], ...]]`.
  `OvsSet.update2()` toggles each given element (removes it if present, adds
  it otherwise); `OvsMap.update2()` removes pairs that are equal and sets the
  others. `encode()` turns nested values holding these objects into plain
  JSON-ready data.
- `ovsdblib.condition`: `Condition` and the helpers `less_than`,
  `less_equal`, `greater_than`, `greater_equal`, `equal`, `not_equal`,
  `includes` and `excludes`. A condition encodes to `[column, function, value]`
  and can be checked locally with `Condition.check()`.
- `ovsdblib.mutation`: `Mutation` and the helpers `insert`, `delete`, `add`,
  `subtract`, `multiply`, `divide` and `modulo`.
- Schemas: `DbSchema` (`ovsdblib.db_schema`), `TableSchema`, `Row` and `Rows`
  (`ovsdblib.table`), `ColumnSchema` (`ovsdblib.column`), `ColumnType`
  (`ovsdblib.column_type`) and `BaseType` (`ovsdblib.base_type`).
  `DbSchema.from_json()` adds the `_uuid` and `_version` columns to every
  table. Columns validate values, conditions and mutations against their
  types, enums and range and size constraints.
- `ovsdblib.monitor_request`: `Select`, `MonReq`, `MonCondReq`, `MonReqSet`
  and `MonCondReqSet`, the request sets of `monitor`, `monitor_cond` and
  `monitor_cond_since`, with `validate()` checking them against the schema.
- `ovsdblib.updates`: `RowUpdate`, `RowUpdate2`, `table_set_update_from_raw()`
  and `table_set_update2_from_raw()`, which decode monitor replies into rows.
- `ovsdblib.transaction`: `Transaction`, built by chained calls to `insert`,
  `select`, `update`, `mutate`, `delete`, `wait`, `commit`, `abort` and
  `comment`; `Result`; and `TransactionError`.
- `ovsdblib.database`: `Database`, an in-memory replica of a database kept
  current with `update2()`, with `find_record()`, `get()`, `table_row()`,
  `table_len()`, update subscriptions and `wait_revision()`, which waits for
  `cur_cfg` of the single `Open_vSwitch` row to reach a given value.
- `ovsdblib.connection`: `Connection`, a JSON-RPC 1.0 peer over a TCP or Unix
  stream socket, and `RpcError`.
- `ovsdblib.client`: `Client`, which connects, fetches the list of databases
  and their schemas, answers the server's `echo` calls, sends keep-alive
  echoes, reconnects when the connection is lost and sets every monitor up
  again after reconnecting.

## Installation

```
pip install ovsdblib
```

For the test suite:

```
pip install "ovsdblib[test]"
pytest
```

## Example

```python
from ovsdblib.client import Client
from ovsdblib.condition import equal
from ovsdblib.monitor_request import MonCondReq, MonCondReqSet

client = Client("unix", "/var/run/openvswitch/db.sock")
try:
    schema = client.get_schema("Open_vSwitch")

    requests = MonCondReqSet(schema).add(
        "Interface",
        MonCondReq(columns=["name", "admin_state"], where=[equal("name", "eth0")]),
    )
    initial, updates = client.set_monitor_cond_since(
        "Open_vSwitch", "interfaces", requests)
    print(initial)
    while True:
        print(updates.get())
finally:
    client.close()
```

The constructor blocks, retrying every `retry_delay` seconds, until a
connection is set up. Further keyword options are `logger`, `jlogger`,
`keep_alive_period`, `keep_alive_timeout` and `connection_factory`. Each
monitor gets a `queue.Queue` of up to ten updates; updates that arrive while
it is full are dropped.

Transactions are built against a schema, validated locally, then sent:

```python
from ovsdblib.condition import equal
from ovsdblib.transaction import Transaction, TransactionError

txn = Transaction(schema)
txn.select("Bridge", [equal("name", "br0")], ["name", "ports"])
try:
    client.transact("Open_vSwitch", txn)
except TransactionError as err:
    print("transaction failed:", err)
else:
    for row in txn.result(0).rows:
        print(row.get("name"))
```

A local replica can be fed with `table-updates2` objects:

```python
from ovsdblib.database import Database

db = Database(schema)
db.update2(initial_updates_json)
for uuid in db.find_record("Bridge", [equal("name", "br0")]):
    print(db.get("Bridge", uuid, "ports"))
```

## Errors

Schema violations and invalid requests raise `ValueError` or `TypeError`.
A server-side error answer raises `RpcError`, a failed transaction operation
`TransactionError`, a call without an answer in time `TimeoutError`, and a
lost connection `ConnectionError`.

## What it does not do

This is a library only: it has no command-line tool and no OVSDB server.
The replica in `Database` lives in memory and is not stored anywhere.