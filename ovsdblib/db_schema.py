"""Database schemas."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from ovsdblib.base_type import BaseType
from ovsdblib.column import ColumnSchema
from ovsdblib.column_type import ColumnType
from ovsdblib.table import TableSchema


def _text(data: dict[str, Any], name: str) -> str:
    value = data.get(name, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string, got {value!r}")
    return value


def _uuid_column(name: str, mutable: bool) -> ColumnSchema:
    return ColumnSchema(
        name=name,
        type=ColumnType(key=BaseType(type="uuid"), min=1, max=1),
        ephemeral=False,
        mutable=mutable,
    )


@dataclass
class DbSchema:
    """The schema of a database: its name, version and tables."""

    name: str
    version: str = ""
    cksum: str = ""
    tables: dict[str, TableSchema] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Any) -> "DbSchema":
        """Decode a schema object, adding the ``_uuid`` and ``_version`` columns."""
        if isinstance(data, (str, bytes, bytearray)):
            data = json.loads(data)
        if not isinstance(data, dict):
            raise ValueError(f"invalid database schema: {data!r}")
        raw_tables = data.get("tables") or {}
        if not isinstance(raw_tables, dict):
            raise ValueError(f"invalid tables: {raw_tables!r}")
        tables = {}
        for table_name, spec in raw_tables.items():
            table = TableSchema.from_json(table_name, spec)
            table.columns["_uuid"] = _uuid_column("_uuid", mutable=False)
            table.columns["_version"] = _uuid_column("_version", mutable=True)
            tables[table_name] = table
        return cls(
            name=_text(data, "name"),
            version=_text(data, "version"),
            cksum=_text(data, "cksum"),
            tables=tables,
        )