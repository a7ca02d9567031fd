"""An in-memory replica of an OVSDB database kept current by update2 notifications."""

from __future__ import annotations

import json
import queue
import secrets
import threading
import time
from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from ovsdblib.condition import Condition
from ovsdblib.db_schema import DbSchema
from ovsdblib.table import Row, TableSchema

_UPDATE_QUEUE_SIZE = 100
_ROOT_TABLE = "Open_vSwitch"


def _load(raw: Any) -> Any:
    if isinstance(raw, (str, bytes, bytearray)):
        return json.loads(raw)
    return raw


class _Table:
    """The rows of one table, keyed by UUID."""

    def __init__(self, schema: TableSchema) -> None:
        self.schema = schema
        self.rows: dict[str, Row] = {}

    def find(self, where: Iterable[Condition] | None) -> list[str]:
        conditions = list(where or ())
        return [
            uuid
            for uuid, row in self.rows.items()
            if not conditions or row.match(conditions)
        ]

    def _decode(self, data: Any) -> Row:
        return self.schema.new_row().load_json({} if data is None else data)

    def update2(self, updates: Any) -> None:
        if not isinstance(updates, dict):
            raise ValueError(f"invalid updates of table {self.schema.name!r}: {updates!r}")
        for uuid, change in updates.items():
            if not isinstance(change, dict):
                raise ValueError(f"invalid update of row {uuid!r}: {change!r}")
            if "initial" in change:
                self.rows[uuid] = self._decode(change["initial"])
            if "insert" in change:
                self.rows[uuid] = self._decode(change["insert"])
            if "delete" in change:
                self.rows.pop(uuid, None)
            if "modify" in change:
                diff = self._decode(change["modify"])
                row = self.rows.get(uuid)
                if row is None:
                    raise KeyError(f"no row {uuid} in table {self.schema.name!r} to modify")
                row.update2(diff)


class Database:
    """The rows of every table of a database, as described by its schema."""

    def __init__(self, schema: DbSchema) -> None:
        self.schema = schema
        self.name = schema.name
        self._lock = threading.RLock()
        self._tables = {name: _Table(table) for name, table in schema.tables.items()}
        self._subscribers: dict[str, queue.Queue] = {}

    def __str__(self) -> str:
        with self._lock:
            lines = [f"DB {json.dumps(self.name)}:\n"]
            for table in self._tables.values():
                if not table.rows:
                    continue
                columns = list(table.schema.columns)
                lines.append(f"  Table {json.dumps(table.schema.name)}:\n    ")
                lines.append("".join(f"| {json.dumps(name)}" for name in columns))
                for uuid, row in table.rows.items():
                    lines.append(f"\n    {uuid}:\n    ")
                    lines.append("".join(f"| {row.get(name)}" for name in columns))
                lines.append("\n")
            return "".join(lines)

    @contextmanager
    def locked(self) -> Iterator["Database"]:
        """Hold the database lock so that several reads see one state."""
        with self._lock:
            yield self

    def table_schema(self, table: str) -> TableSchema:
        """The schema of a table; KeyError if there is no such table."""
        with self._lock:
            try:
                return self.schema.tables[table]
            except KeyError:
                raise KeyError(f"table {table!r} not found") from None

    def table_len(self, table: str) -> int:
        """The number of rows in a table; KeyError if there is no such table."""
        with self._lock:
            try:
                return len(self._tables[table].rows)
            except KeyError:
                raise KeyError(f"table {table!r} does not exist") from None

    def table_row(self, table: str, uuid: str) -> Row | None:
        """The row with the given UUID, or None."""
        with self._lock:
            found = self._tables.get(table)
            if found is None:
                return None
            return found.rows.get(str(uuid))

    def get(self, table: str, uuid: str, column: str) -> Any:
        """The value of a column of a row; KeyError if the row is missing."""
        with self._lock:
            row = self.table_row(table, uuid)
            if row is None:
                raise KeyError(f"no row {uuid} in table {table!r}")
            return row.get(column)

    def find_record(self, table: str, *wheres: Iterable[Condition] | None) -> list[str]:
        """UUIDs of the rows matching each condition list in turn.

        An empty or None condition list matches every row.
        """
        with self._lock:
            found = self._tables.get(table)
            if found is None:
                return []
            result: list[str] = []
            for where in wheres:
                result.extend(found.find(where))
            return result

    def update2(self, upd2: Any) -> None:
        """Apply a ``table-updates2`` object; updates of unknown tables are ignored.

        Subscribers are notified even when the update fails part way.
        """
        upd2 = _load(upd2)
        with self._lock:
            try:
                if not isinstance(upd2, dict):
                    raise ValueError(f"invalid table updates: {upd2!r}")
                for name, updates in upd2.items():
                    table = self._tables.get(name)
                    if table is not None:
                        table.update2(updates)
            finally:
                for subscriber in self._subscribers.values():
                    try:
                        subscriber.put_nowait(None)
                    except queue.Full:
                        pass

    def subscribe_updates(self, uid: str) -> queue.Queue:
        """A queue that receives None after every update2."""
        with self._lock:
            updates: queue.Queue = queue.Queue(maxsize=_UPDATE_QUEUE_SIZE)
            self._subscribers[uid] = updates
            return updates

    def unsubscribe_updates(self, uid: str) -> None:
        """Stop notifying a subscriber; KeyError if it is not subscribed."""
        with self._lock:
            try:
                del self._subscribers[uid]
            except KeyError:
                raise KeyError(f"no subscriber {uid!r}") from None

    def wait_revision(self, rev: int, timeout: float) -> bool:
        """Wait until ``cur_cfg`` of the single root row reaches ``rev``.

        The value is checked after each update; returns False on timeout or
        when the root table does not hold exactly one row.
        """
        uuids = self.find_record(_ROOT_TABLE, None)
        if len(uuids) != 1:
            return False
        uid = secrets.token_hex(16)
        updates = self.subscribe_updates(uid)
        deadline = time.monotonic() + timeout
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                try:
                    updates.get(timeout=remaining)
                except queue.Empty:
                    return False
                if self.get(_ROOT_TABLE, uuids[0], "cur_cfg") >= rev:
                    return True
        finally:
            self.unsubscribe_updates(uid)