"""Transactions: lists of database operations and their results."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterable

from ovsdblib.atoms import UUID
from ovsdblib.condition import Condition
from ovsdblib.db_schema import DbSchema
from ovsdblib.mutation import Mutation
from ovsdblib.table import Row, Rows, TableSchema


class TransactionError(Exception):
    """An operation of a transaction, or the transaction as a whole, failed."""


@dataclass
class Result:
    """The result of one operation of a transaction."""

    error: Any = None
    details: Any = None
    uuid: UUID | None = None
    rows: Rows | None = None
    count: int = 0

    def _merge(self, data: Any) -> "Result":
        if not isinstance(data, dict):
            raise ValueError(f"invalid operation result: {data!r}")
        if data.get("error") is not None:
            self.error = data["error"]
        if data.get("details") is not None:
            self.details = data["details"]
        if data.get("uuid") is not None:
            self.uuid = UUID.from_json(data["uuid"])
        if data.get("rows") is not None:
            if self.rows is None:
                raise ValueError("rows in the result of an operation that selects no table")
            self.rows.load_json(data["rows"])
        count = data.get("count")
        if count is not None:
            if isinstance(count, bool) or not isinstance(count, int):
                raise ValueError(f"invalid count: {count!r}")
            self.count = count
        return self


def _table(schema: DbSchema, name: str) -> TableSchema:
    table = schema.tables.get(name)
    if table is None:
        raise ValueError(f"table {name!r} not found")
    return table


def _check_columns(table: TableSchema, name: str, columns: Iterable[str] | None) -> None:
    for column in columns or ():
        if column not in table.columns:
            raise ValueError(f"column {column!r} not found in table {name!r}")


def _check_where(table: TableSchema, name: str, where: Iterable[Condition] | None) -> None:
    for cond in where or ():
        column = table.columns.get(cond.column)
        if column is None:
            raise ValueError(f"column {cond.column!r} not found in table {name!r}")
        try:
            column.validate_cond(cond.op, cond.value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"table {name!r}: {exc}") from exc


def _where_json(where: list[Condition] | None) -> list[Any] | None:
    return None if where is None else [cond.to_json() for cond in where]


class _Operation:
    op: ClassVar[str]

    def validate(self, schema: DbSchema) -> None:
        """Raise ValueError when the operation does not fit the schema."""

    def to_json(self) -> dict[str, Any]:
        return {"op": self.op}


@dataclass
class _Insert(_Operation):
    op: ClassVar[str] = "insert"
    table: str
    row: Row | None
    uuid_name: str = ""

    def validate(self, schema: DbSchema) -> None:
        if self.row is None:
            raise ValueError("nil row to insert operation")

    def to_json(self) -> dict[str, Any]:
        return {
            "op": self.op,
            "table": self.table,
            "row": None if self.row is None else self.row.to_json(),
            "uuid-name": self.uuid_name,
        }


@dataclass
class _Select(_Operation):
    op: ClassVar[str] = "select"
    table: str
    where: list[Condition] | None
    columns: list[str] | None = None

    def validate(self, schema: DbSchema) -> None:
        table = _table(schema, self.table)
        _check_columns(table, self.table, self.columns)
        _check_where(table, self.table, self.where)

    def to_json(self) -> dict[str, Any]:
        out = {"op": self.op, "table": self.table, "where": _where_json(self.where)}
        if self.columns:
            out["columns"] = list(self.columns)
        return out


@dataclass
class _Update(_Operation):
    op: ClassVar[str] = "update"
    table: str
    where: list[Condition] | None
    row: Row | None

    def validate(self, schema: DbSchema) -> None:
        if self.row is None:
            raise ValueError("nil row to update operation")
        _check_where(self.row.table, self.table, self.where)

    def to_json(self) -> dict[str, Any]:
        return {
            "op": self.op,
            "table": self.table,
            "where": _where_json(self.where),
            "row": None if self.row is None else self.row.to_json(),
        }


@dataclass
class _Mutate(_Operation):
    op: ClassVar[str] = "mutate"
    table: str
    where: list[Condition] | None
    mutations: list[Mutation] | None

    def validate(self, schema: DbSchema) -> None:
        table = _table(schema, self.table)
        _check_where(table, self.table, self.where)
        for mutation in self.mutations or ():
            column = table.columns.get(mutation.column)
            if column is None:
                raise ValueError(
                    f"column {mutation.column!r} not found in table {self.table!r}"
                )
            try:
                column.validate_mutation(mutation.op, mutation.value)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"table {self.table!r}: {exc}") from exc

    def to_json(self) -> dict[str, Any]:
        return {
            "op": self.op,
            "table": self.table,
            "where": _where_json(self.where),
            "mutations": None
            if self.mutations is None
            else [mutation.to_json() for mutation in self.mutations],
        }


@dataclass
class _Delete(_Operation):
    op: ClassVar[str] = "delete"
    table: str
    where: list[Condition] | None

    def validate(self, schema: DbSchema) -> None:
        _check_where(_table(schema, self.table), self.table, self.where)

    def to_json(self) -> dict[str, Any]:
        return {"op": self.op, "table": self.table, "where": _where_json(self.where)}


@dataclass
class _Wait(_Operation):
    op: ClassVar[str] = "wait"
    table: str
    where: list[Condition] | None
    columns: list[str] | None
    until: str
    rows: list[Row] | None
    timeout: int = 0

    def validate(self, schema: DbSchema) -> None:
        table = _table(schema, self.table)
        if self.until not in "==!=":
            raise ValueError(f"invalid until {self.until!r}")
        _check_columns(table, self.table, self.columns)
        _check_where(table, self.table, self.where)

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {"op": self.op}
        if self.timeout:
            out["timeout"] = self.timeout
        out.update(
            table=self.table,
            where=_where_json(self.where),
            columns=None if self.columns is None else list(self.columns),
            until=self.until,
            rows=None if self.rows is None else [row.to_json() for row in self.rows],
        )
        return out


@dataclass
class _Commit(_Operation):
    op: ClassVar[str] = "commit"
    durable: bool

    def to_json(self) -> dict[str, Any]:
        return {"op": self.op, "durable": self.durable}


@dataclass
class _Abort(_Operation):
    op: ClassVar[str] = "abort"


@dataclass
class _Comment(_Operation):
    op: ClassVar[str] = "comment"
    comment: str

    def to_json(self) -> dict[str, Any]:
        return {"op": self.op, "comment": self.comment}


@dataclass
class Transaction:
    """An ordered list of operations on one database, built by chained calls."""

    schema: DbSchema
    _operations: list[_Operation] = field(default_factory=list)
    _results: list[Result | None] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self._operations)

    def _append(self, operation: _Operation, result: Result | None = None) -> "Transaction":
        self._operations.append(operation)
        self._results.append(result or Result())
        return self

    def insert(self, row: Row, uuid_name: str = "") -> "Transaction":
        """Insert a row; ``uuid_name`` names it for use by later operations."""
        table = "" if row is None else row.table_name
        return self._append(_Insert(table, row, uuid_name))

    def select(
        self,
        table: str,
        where: list[Condition] | None,
        columns: list[str] | None = None,
    ) -> "Transaction":
        """Select the rows of a table that satisfy ``where``."""
        schema = self.schema.tables.get(table)
        result = Result(rows=schema.new_rows()) if schema is not None else Result()
        return self._append(_Select(table, where, columns), result)

    def update(self, where: list[Condition] | None, row: Row) -> "Transaction":
        """Set the columns of ``row`` in every row of its table that satisfies ``where``."""
        table = "" if row is None else row.table_name
        return self._append(_Update(table, where, row))

    def mutate(
        self,
        table: str,
        where: list[Condition] | None,
        mutations: list[Mutation] | None,
    ) -> "Transaction":
        """Apply mutations to the rows of a table that satisfy ``where``."""
        return self._append(_Mutate(table, where, mutations))

    def delete(self, table: str, where: list[Condition] | None) -> "Transaction":
        """Delete the rows of a table that satisfy ``where``."""
        return self._append(_Delete(table, where))

    def wait(
        self,
        table: str,
        where: list[Condition] | None,
        columns: list[str] | None,
        until: str,
        rows: list[Row] | None,
        timeout: int = 0,
    ) -> "Transaction":
        """Wait until the selected rows are (``==``) or are not (``!=``) ``rows``."""
        return self._append(_Wait(table, where, columns, until, rows, timeout))

    def commit(self, durable: bool) -> "Transaction":
        return self._append(_Commit(durable))

    def abort(self) -> "Transaction":
        return self._append(_Abort())

    def comment(self, comment: str) -> "Transaction":
        return self._append(_Comment(comment))

    def validate(self) -> None:
        """Raise ValueError when an operation does not fit the schema."""
        for operation in self._operations:
            operation.validate(self.schema)

    def operations(self) -> list[_Operation]:
        """The operations, each with a ``to_json`` method giving its wire form."""
        return list(self._operations)

    def decode_result(self, result: Any) -> None:
        """Store the results of a ``transact`` reply, one per array element."""
        if isinstance(result, (str, bytes, bytearray)):
            result = json.loads(result)
        if not isinstance(result, list):
            raise ValueError(f"invalid transact result: {result!r}")
        decoded: list[Result | None] = []
        for index, item in enumerate(result):
            if item is None:
                decoded.append(None)
                continue
            current = self._results[index] if index < len(self._results) else None
            decoded.append((current or Result())._merge(item))
        self._results = decoded

    def result(self, index: int) -> Result | None:
        """The result of the operation at ``index``; None if it was not executed."""
        return self._results[index]

    def check(self) -> None:
        """Raise TransactionError for the first result that reports an error."""
        for index, result in enumerate(self._results):
            if result is None or result.error is None:
                continue
            if index >= len(self._operations):
                message = f"general transaction error: {result.error}"
            else:
                message = f"operation #{index}({self._operations[index].op}): {result.error}"
            if result.details is not None:
                message += f" ({result.details})"
            raise TransactionError(message)

    def clone(self) -> "Transaction":
        """A copy that can be extended without changing this transaction."""
        return Transaction(self.schema, list(self._operations), list(self._results))