"""Table schemas and the rows that belong to them."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping

from ovsdblib.column import ColumnSchema
from ovsdblib.condition import Condition
from ovsdblib.containers import OvsMap, OvsSet, encode


def _parse(data: Any) -> Any:
    if isinstance(data, (str, bytes, bytearray)):
        return json.loads(data)
    return data


def _indexes(name: str, raw: Any) -> list[list[str]]:
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(
        isinstance(index, list) and all(isinstance(column, str) for column in index)
        for index in raw
    ):
        raise ValueError(f"table {name!r}: invalid indexes {raw!r}")
    return [list(index) for index in raw]


@dataclass
class TableSchema:
    """A table of a database schema."""

    name: str
    columns: dict[str, ColumnSchema] = field(default_factory=dict)
    max_rows: int = 0
    is_root: bool = False
    indexes: list[list[str]] = field(default_factory=list)

    @classmethod
    def from_json(cls, name: str, data: Any) -> "TableSchema":
        """Decode a table schema object for the table ``name``."""
        if not isinstance(data, dict) or not isinstance(data.get("columns"), dict):
            raise ValueError(f"table {name!r}: invalid table schema {data!r}")
        max_rows = data.get("maxRows", 0)
        if isinstance(max_rows, bool) or not isinstance(max_rows, int):
            raise ValueError(f"table {name!r}: maxRows must be an integer, got {max_rows!r}")
        is_root = data.get("isRoot", False)
        if not isinstance(is_root, bool):
            raise ValueError(f"table {name!r}: isRoot must be a boolean, got {is_root!r}")
        columns = {
            column: ColumnSchema.from_json(column, spec)
            for column, spec in data["columns"].items()
        }
        return cls(
            name=name,
            columns=columns,
            max_rows=max_rows,
            is_root=is_root,
            indexes=_indexes(name, data.get("indexes")),
        )

    def new_row(self, values: Mapping[str, Any] | None = None) -> "Row":
        """Create a row of this table, checking each given value against the schema."""
        row = Row(self)
        for column, value in (values or {}).items():
            row.set(column, value)
        return row

    def new_rows(self) -> "Rows":
        """Create an empty list of rows of this table."""
        return Rows(self)


class Row:
    """The column values of one row, checked against its table schema."""

    __hash__ = None  # type: ignore[assignment]

    def __init__(self, table: TableSchema) -> None:
        self.table = table
        self._values: dict[str, Any] = {}
        self._lock = threading.RLock()

    @property
    def table_name(self) -> str:
        return self.table.name

    def __len__(self) -> int:
        """The number of columns that hold a value."""
        with self._lock:
            return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Row):
            return NotImplemented
        return self.table.name == other.table.name and self._values == other._values

    def __repr__(self) -> str:
        return f"Row({self.table.name!r}, {self._values!r})"

    def _column(self, name: str) -> ColumnSchema:
        try:
            return self.table.columns[name]
        except KeyError:
            raise KeyError(
                f"schema violated: table {self.table.name!r} doesn't have column {name!r}"
            ) from None

    def to_json(self) -> dict[str, Any]:
        """The row as a JSON object of its set columns."""
        with self._lock:
            return {name: encode(value) for name, value in self._values.items()}

    def load_json(self, data: Any) -> "Row":
        """Merge the columns of a JSON row object into this row."""
        data = _parse(data)
        if not isinstance(data, dict):
            raise ValueError(f"invalid row of table {self.table.name!r}: {data!r}")
        with self._lock:
            for name, raw in data.items():
                column = self.table.columns.get(name)
                if column is None:
                    raise ValueError(f"column {name!r} not in table {self.table.name!r}")
                self._values[name] = column.decode_value(raw)
        return self

    def _get(self, name: str) -> Any:
        if name not in self._values:
            self._values[name] = self._column(name).default_value()
        return self._values[name]

    def get(self, name: str) -> Any:
        """The value of a column; an unset column takes its default value."""
        with self._lock:
            return self._get(name)

    def find(self, name: str) -> Any:
        """The value of a column, or None when it is not set."""
        with self._lock:
            return self._values.get(name)

    def _set(self, name: str, value: Any) -> None:
        column = self._column(name)
        try:
            column.validate_value(value)
        except (TypeError, ValueError) as exc:
            raise type(exc)(f"schema violated: {exc}") from exc
        self._values[name] = value

    def set(self, name: str, value: Any) -> None:
        """Set a column, raising when the value breaks the schema."""
        with self._lock:
            self._set(name, value)

    def update2(self, diff: "Row") -> None:
        """Apply the ``modify`` part of an update2 notification."""
        if not isinstance(diff, Row):
            raise TypeError("diff bad Row implementation")
        with diff._lock:
            changes = list(diff._values.items())
        with self._lock:
            for name, change in changes:
                column = self.table.columns.get(name)
                if column is not None and column.type.min == 0 and column.type.max == 1:
                    self._set(name, change)
                    continue
                current = self._get(name)
                if isinstance(current, (OvsSet, OvsMap)):
                    self._set(name, current.update2(change))
                else:
                    self._set(name, change)

    def match(self, where: Iterable[Condition] | None) -> bool:
        """Tell whether the row satisfies every condition."""
        with self._lock:
            for cond in where or ():
                column = self.table.columns.get(cond.column)
                if column is None:
                    return False
                try:
                    column.validate_cond(cond.op, cond.value)
                except (TypeError, ValueError):
                    return False
                if not cond.check(self._get(cond.column)):
                    return False
            return True


@dataclass
class Rows:
    """A list of rows of one table."""

    table: TableSchema
    rows: list[Row] = field(default_factory=list)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def load_json(self, data: Any) -> "Rows":
        """Append the rows of a JSON array of row objects."""
        data = _parse(data)
        if not isinstance(data, list):
            raise ValueError(f"invalid rows of table {self.table.name!r}: {data!r}")
        for item in data:
            self.rows.append(self.table.new_row().load_json(item))
        return self