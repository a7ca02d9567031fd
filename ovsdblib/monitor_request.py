"""Monitor requests and the request sets sent with monitor calls."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Iterable

from ovsdblib.condition import Condition
from ovsdblib.db_schema import DbSchema
from ovsdblib.table import TableSchema


@dataclass
class Select:
    """Which kinds of changes a monitor request reports."""

    initial: bool = False
    insert: bool = False
    delete: bool = False
    modify: bool = False

    def to_json(self) -> dict[str, bool]:
        return {
            "initial": self.initial,
            "insert": self.insert,
            "delete": self.delete,
            "modify": self.modify,
        }


def _select_without_initial(select: Select | None) -> Select:
    if select is None:
        return Select(initial=False, insert=True, delete=True, modify=True)
    return replace(select, initial=False)


@dataclass
class MonReq:
    """A request to monitor some columns of a table."""

    columns: list[str] | None = None
    select: Select | None = None

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.columns:
            out["columns"] = list(self.columns)
        if self.select is not None:
            out["select"] = self.select.to_json()
        return out

    def without_initial(self) -> "MonReq":
        """A copy that does not ask for the initial contents."""
        return replace(self, select=_select_without_initial(self.select))


@dataclass
class MonCondReq:
    """A monitor request that also filters rows by conditions."""

    columns: list[str] | None = None
    where: list[Condition] | None = None
    select: Select | None = None

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.columns:
            out["columns"] = list(self.columns)
        if self.where:
            out["where"] = [cond.to_json() for cond in self.where]
        if self.select is not None:
            out["select"] = self.select.to_json()
        return out

    def without_initial(self) -> "MonCondReq":
        """A copy that does not ask for the initial contents."""
        return replace(self, select=_select_without_initial(self.select))


def _flags(requests: Iterable[MonReq | MonCondReq]) -> tuple[bool, bool]:
    has_initial = has_updates = False
    for request in requests:
        sel = request.select
        if sel is None or sel.initial:
            has_initial = True
        if sel is None or sel.insert or sel.delete or sel.modify:
            has_updates = True
    return has_initial, has_updates


def _validate_select(requests: list[MonReq | MonCondReq]) -> None:
    for request in requests:
        sel = request.select
        if sel is not None and not (sel.initial or sel.insert or sel.delete or sel.modify):
            raise ValueError("no select options")


def _validate_columns(table: TableSchema, requests: list[MonReq | MonCondReq]) -> None:
    seen: set[str] = set()
    for request in requests:
        if len(requests) > 1 and request.columns is None:
            raise ValueError(f"non-single all-column request for table {table.name!r}")
        for column in request.columns or ():
            if column not in table.columns:
                raise ValueError(f"no column {column!r} in table {table.name!r}")
            if column in seen:
                raise ValueError(f"duplicate column {column!r} in table {table.name!r}")
            seen.add(column)


@dataclass
class _MonitorRequestSet:
    schema: DbSchema
    requests: dict[str, list[Any]] = field(default_factory=dict)
    has_initial: bool = False
    has_updates: bool = False

    _request_type: ClassVar[type]

    def _add(self, table: str, requests: tuple[Any, ...]) -> Any:
        for request in requests:
            if not isinstance(request, self._request_type):
                raise TypeError(
                    f"expected {self._request_type.__name__}, got {type(request).__name__}"
                )
        has_initial, has_updates = _flags(requests)
        self.has_initial = self.has_initial or has_initial
        self.has_updates = self.has_updates or has_updates
        self.requests.setdefault(table, []).extend(requests)
        return self

    def _without_initial(self) -> Any:
        if not self.has_initial:
            return self
        clone = type(self)(self.schema, has_updates=self.has_updates)
        for table, requests in self.requests.items():
            clone._add(table, tuple(request.without_initial() for request in requests))
        return clone

    def _check_table(self, name: str, requests: list[Any]) -> TableSchema:
        table = self.schema.tables.get(name)
        if table is None:
            raise ValueError(f"non-existent table {name!r}")
        _validate_columns(table, requests)
        _validate_select(requests)
        return table

    def _to_json(self) -> dict[str, list[dict[str, Any]]]:
        return {
            table: [request.to_json() for request in requests]
            for table, requests in self.requests.items()
        }


class MonReqSet(_MonitorRequestSet):
    """The requests of a ``monitor`` call, keyed by table."""

    _request_type = MonReq

    def add(self, table: str, *requests: MonReq) -> "MonReqSet":
        """Add requests for a table and return this set."""
        return self._add(table, requests)

    def without_initial(self) -> "MonReqSet":
        """This set, or a copy of it that asks for no initial contents."""
        return self._without_initial()

    def validate(self) -> None:
        """Raise ValueError when a request does not fit the schema."""
        for name, requests in self.requests.items():
            self._check_table(name, requests)

    def to_json(self) -> dict[str, list[dict[str, Any]]]:
        return self._to_json()


class MonCondReqSet(_MonitorRequestSet):
    """The requests of a ``monitor_cond`` call, keyed by table."""

    _request_type = MonCondReq

    def add(self, table: str, *requests: MonCondReq) -> "MonCondReqSet":
        """Add requests for a table and return this set."""
        return self._add(table, requests)

    def without_initial(self) -> "MonCondReqSet":
        """This set, or a copy of it that asks for no initial contents."""
        return self._without_initial()

    def validate(self) -> None:
        """Raise ValueError when a request or one of its conditions does not fit the schema."""
        for name, requests in self.requests.items():
            table = self._check_table(name, requests)
            for index, request in enumerate(requests):
                for cond in request.where or ():
                    column = table.columns.get(cond.column)
                    if column is None:
                        raise ValueError(
                            f"req #{index}: column {cond.column!r} not in table {name!r}"
                        )
                    try:
                        column.validate_cond(cond.op, cond.value)
                    except (TypeError, ValueError) as exc:
                        raise ValueError(f"req #{index} on table {name!r}: {exc}") from exc

    def to_json(self) -> dict[str, list[dict[str, Any]]]:
        return self._to_json()