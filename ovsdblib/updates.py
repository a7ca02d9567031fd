"""Table updates delivered by monitor replies and notifications."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable

from ovsdblib.db_schema import DbSchema
from ovsdblib.table import Row


@dataclass
class RowUpdate:
    """The change of one row reported by a ``monitor`` update."""

    new: Row | None = None
    old: Row | None = None


@dataclass
class RowUpdate2:
    """The change of one row reported by a ``monitor_cond`` update2."""

    initial: Row | None = None
    insert: Row | None = None
    delete: Row | None = None
    modify: Row | None = None


TableUpdate = dict[str, RowUpdate]
TableSetUpdate = dict[str, TableUpdate]
TableUpdate2 = dict[str, RowUpdate2]
TableSetUpdate2 = dict[str, TableUpdate2]

_UPDATE_FIELDS = ("old", "new")
_UPDATE2_FIELDS = ("insert", "delete", "modify", "initial")


def _load(raw: Any) -> dict[str, Any]:
    if isinstance(raw, (str, bytes, bytearray)):
        raw = json.loads(raw)
    if not isinstance(raw, dict):
        raise ValueError(f"invalid table updates: {raw!r}")
    return raw


def _decode(
    schema: DbSchema,
    raw: Any,
    fields: tuple[str, ...],
    build: Callable[..., Any],
) -> dict[str, dict[str, Any]]:
    result: dict[str, dict[str, Any]] = {}
    for table_name, rows in _load(raw).items():
        table = schema.tables.get(table_name)
        if table is None:
            raise ValueError(f"table {table_name} not found in schema")
        if not isinstance(rows, dict):
            raise ValueError(f"invalid updates of table {table_name!r}: {rows!r}")
        updates = result[table_name] = {}
        for row_id, row in rows.items():
            if not isinstance(row, dict):
                raise ValueError(f"invalid update of row {row_id!r}: {row!r}")
            # Only the first present part of a row update is taken.
            part = next((name for name in fields if row.get(name) is not None), None)
            if part is None:
                continue
            try:
                decoded = table.new_row().load_json(row[part])
            except (TypeError, ValueError):
                continue
            updates[row_id] = build(**{part: decoded})
    return result


def table_set_update_from_raw(schema: DbSchema, raw: Any) -> TableSetUpdate:
    """Decode the JSON ``table-updates`` of a ``monitor`` reply.

    Rows that cannot be decoded are left out; an unknown table raises ValueError.
    """
    return _decode(schema, raw, _UPDATE_FIELDS, RowUpdate)


def table_set_update2_from_raw(schema: DbSchema, raw: Any) -> TableSetUpdate2:
    """Decode the JSON ``table-updates2`` of a ``monitor_cond`` reply.

    Rows that cannot be decoded are left out; an unknown table raises ValueError.
    """
    return _decode(schema, raw, _UPDATE2_FIELDS, RowUpdate2)