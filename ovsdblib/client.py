"""An OVSDB client that keeps its connection, schemas and monitors alive."""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from ovsdblib.atoms import new_named_uuid
from ovsdblib.connection import Connection, RpcError
from ovsdblib.db_schema import DbSchema
from ovsdblib.monitor_request import MonCondReqSet, MonReqSet
from ovsdblib.transaction import Transaction
from ovsdblib.updates import (
    TableSetUpdate,
    TableSetUpdate2,
    table_set_update2_from_raw,
    table_set_update_from_raw,
)

DEFAULT_KEEP_ALIVE_PERIOD = 30.0
DEFAULT_KEEP_ALIVE_TIMEOUT = 5.0
ZERO_UUID = "00000000-0000-0000-0000-000000000000"

_SETUP_TIMEOUT = 15.0
_RESTORE_TIMEOUT = 5.0
_UPDATE_QUEUE_SIZE = 10

ConnectionFactory = Callable[[str, str, logging.Logger], Connection]


def _open_connection(network: str, address: str, logger: logging.Logger) -> Connection:
    return Connection(network, address, logger=logger)


@dataclass
class _Monitor:
    db: str
    name: str
    initial_requests: MonReqSet | MonCondReqSet
    renew_requests: MonCondReqSet | None = None
    updates2: queue.Queue | None = None
    updates: queue.Queue | None = None
    last_txn_id: str = ""


@dataclass
class _CondSinceReply:
    found: bool
    last_txn_id: str
    update2: TableSetUpdate2


class Client:
    """A client of one OVSDB server.

    The constructor blocks until a connection is set up. When the connection
    is lost, a new one is made and every monitor is set up again.
    """

    def __init__(
        self,
        network: str,
        address: str,
        *,
        logger: logging.Logger | None = None,
        jlogger: logging.Logger | None = None,
        keep_alive_period: float = DEFAULT_KEEP_ALIVE_PERIOD,
        keep_alive_timeout: float = DEFAULT_KEEP_ALIVE_TIMEOUT,
        retry_delay: float = 1.0,
        connection_factory: ConnectionFactory | None = None,
    ) -> None:
        self.network = network
        self.address = address
        self.keep_alive_period = keep_alive_period
        self.keep_alive_timeout = keep_alive_timeout
        self.retry_delay = retry_delay
        self._log = logger or logging.getLogger(__name__)
        self._jlog = jlogger or self._log
        self._factory = connection_factory or _open_connection
        self._monitors: dict[str, _Monitor] = {}
        self._mon_lock = threading.RLock()
        self._schemas: dict[str, DbSchema] = {}
        self._schemas_lock = threading.Lock()
        self._dbs: list[str] | None = None
        self._dbs_lock = threading.Lock()
        self._closed = False
        self._conn: Connection | None = None
        self._connect()
        self._loop_thread = threading.Thread(target=self._loop, daemon=True)
        self._loop_thread.start()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # connection management

    def _loop(self) -> None:
        while True:
            conn = self._conn
            if conn is not None:
                conn.wait_closed()
            if self._closed:
                return
            self._connect()

    def _connect(self) -> None:
        self._log.debug("creating new connection net=%s addr=%s", self.network, self.address)
        while not self._closed:
            try:
                conn = self._factory(self.network, self.address, self._jlog)
            except (OSError, ValueError) as exc:
                self._log.warning("fail to connect to server: %s", exc)
                time.sleep(self.retry_delay)
                continue
            self._log.debug("connected to server %s://%s", self.network, self.address)
            try:
                conn.handle_call("echo", self._on_echo)
                conn.handle_notification("update3", self._on_update3)
                conn.handle_notification("update2", self._on_update2)
                conn.handle_notification("update", self._on_update)
                with self._mon_lock:
                    self._conn = conn
                    for db in self.list_dbs(timeout=_SETUP_TIMEOUT):
                        schema = self.get_schema(db, timeout=_SETUP_TIMEOUT)
                        with self._schemas_lock:
                            self._schemas[db] = schema
                    self._restore_monitors()
            except Exception as exc:  # any failure means a fresh connection
                self._log.warning("fail to set up connection: %s", exc)
                conn.close()
                time.sleep(self.retry_delay)
                continue
            break
        else:
            return
        if self._closed:
            conn.close()
            return
        threading.Thread(target=self._keep_alive, args=(conn,), daemon=True).start()
        self._log.debug("connection established")

    def _keep_alive(self, conn: Connection) -> None:
        seq = 0
        while not conn.wait_closed(self.keep_alive_period):
            message = f"keep alive {seq}"
            seq += 1
            try:
                result = conn.call("echo", message, timeout=self.keep_alive_timeout)
            except (ConnectionError, TimeoutError, RpcError) as exc:
                self._log.warning("fail to send keep alive: %s", exc)
                conn.close()
                return
            if not isinstance(result, list) or len(result) != 1 or result[0] != message:
                self._log.warning("fail to send keep alive: unexpected response %r", result)
                conn.close()
                return

    def _restore_monitors(self) -> None:
        self._log.debug("restoring monitors")
        with self._mon_lock:
            for item in self._monitors.values():
                if item.updates2 is not None and item.renew_requests is not None:
                    reply = self._call_monitor_cond_since(
                        item.db, item.name, item.last_txn_id, item.initial_requests,
                        _RESTORE_TIMEOUT,
                    )
                    if not reply.found:
                        item.updates2.put(reply.update2)
                    item.last_txn_id = reply.last_txn_id
                elif item.updates2 is not None:
                    item.updates2.put(
                        self._call_monitor_cond(
                            item.db, item.name, item.initial_requests, _RESTORE_TIMEOUT
                        )
                    )
                elif item.updates is not None:
                    item.updates.put(
                        self._call_monitor(
                            item.db, item.name, item.initial_requests, _RESTORE_TIMEOUT
                        )
                    )

    # handlers of server messages

    def _on_echo(self, *params: Any) -> list[Any]:
        self._log.debug("echo handler: %r", params)
        return list(params)

    def _schema_of(self, item: _Monitor) -> DbSchema | None:
        with self._schemas_lock:
            schema = self._schemas.get(item.db)
        if schema is None:
            self._log.warning("db schema not found: %s", item.db)
        return schema

    def _find_monitor(self, mon_name: Any) -> _Monitor | None:
        item = self._monitors.get(mon_name) if isinstance(mon_name, str) else None
        if item is None:
            self._log.warning("monitor not found: %r", mon_name)
        return item

    @staticmethod
    def _offer(target: queue.Queue | None, update: Any) -> None:
        if target is None:
            return
        try:
            target.put_nowait(update)
        except queue.Full:
            pass

    def _on_update3(self, mon_name: Any, txn_id: str, raw: Any) -> None:
        item = self._find_monitor(mon_name)
        if item is None:
            return
        item.last_txn_id = txn_id
        schema = self._schema_of(item)
        if schema is None:
            return
        self._offer(item.updates2, table_set_update2_from_raw(schema, raw))

    def _on_update2(self, mon_name: Any, raw: Any) -> None:
        item = self._find_monitor(mon_name)
        if item is None:
            return
        schema = self._schema_of(item)
        if schema is None:
            return
        self._offer(item.updates2, table_set_update2_from_raw(schema, raw))

    def _on_update(self, mon_name: Any, raw: Any) -> None:
        item = self._find_monitor(mon_name)
        if item is None:
            return
        schema = self._schema_of(item)
        if schema is None:
            return
        self._offer(item.updates, table_set_update_from_raw(schema, raw))

    # requests

    @property
    def _connection(self) -> Connection:
        if self._conn is None:
            raise ConnectionError("not connected")
        return self._conn

    def echo(self, timeout: float | None = None) -> None:
        """Check that the server echoes a fresh token back; ValueError if not."""
        token = new_named_uuid()
        result = self._connection.call("echo", token, timeout=timeout)
        if not isinstance(result, list):
            raise ValueError(f"fail parse echo resp: {result!r}")
        if len(result) != 1 or result[0] != token:
            raise ValueError(f"unexpected echo resp: {result!r}")

    def get_schema(self, db: str, timeout: float | None = None) -> DbSchema:
        """The schema of a database, fetched once and then kept."""
        with self._schemas_lock:
            schema = self._schemas.get(db)
        if schema is not None:
            return schema
        result = self._connection.call("get_schema", db, timeout=timeout)
        schema = DbSchema.from_json(result)
        with self._schemas_lock:
            self._schemas[db] = schema
        return schema

    def list_dbs(self, timeout: float | None = None) -> list[str]:
        """The names of the server's databases, fetched once and then kept."""
        with self._dbs_lock:
            if self._dbs is not None:
                return list(self._dbs)
        result = self._connection.call("list_dbs", timeout=timeout)
        if not isinstance(result, list) or not all(isinstance(name, str) for name in result):
            self._log.debug("list dbs: fail unmarshal response %r", result)
            raise ValueError(f"invalid list_dbs response: {result!r}")
        with self._dbs_lock:
            self._dbs = list(result)
        return list(result)

    def _monitor_call(
        self,
        method: str,
        db: str,
        mon_name: str,
        requests: MonReqSet | MonCondReqSet,
        since: str | None,
        timeout: float | None,
    ) -> Any:
        if requests is None:
            raise ValueError("nil monitor requests")
        requests.validate()
        args: list[Any] = [db, mon_name, requests.to_json()]
        if since is not None:
            args.append(since)
        return self._connection.call(method, *args, timeout=timeout)

    def _db_schema(self, db: str) -> DbSchema:
        with self._schemas_lock:
            schema = self._schemas.get(db)
        if schema is None:
            raise ValueError(f"db {db} not found in schemas")
        return schema

    def _call_monitor(
        self, db: str, mon_name: str, requests: MonReqSet, timeout: float | None
    ) -> TableSetUpdate:
        result = self._monitor_call("monitor", db, mon_name, requests, None, timeout)
        return table_set_update_from_raw(self._db_schema(db), result)

    def _call_monitor_cond(
        self, db: str, mon_name: str, requests: MonCondReqSet, timeout: float | None
    ) -> TableSetUpdate2:
        result = self._monitor_call("monitor_cond", db, mon_name, requests, None, timeout)
        return table_set_update2_from_raw(self._db_schema(db), result)

    def _call_monitor_cond_since(
        self,
        db: str,
        mon_name: str,
        last_txn_id: str,
        requests: MonCondReqSet,
        timeout: float | None,
    ) -> _CondSinceReply:
        result = self._monitor_call(
            "monitor_cond_since", db, mon_name, requests, last_txn_id, timeout
        )
        if not isinstance(result, list) or len(result) != 3:
            raise ValueError("wrong number of param in Update3 notification")
        found, txn_id, raw = result
        if not isinstance(found, bool):
            raise ValueError(f"unmarshal found: {found!r}")
        if not isinstance(txn_id, str):
            raise ValueError(f"unmarshal lastTxnID: {txn_id!r}")
        return _CondSinceReply(found, txn_id, table_set_update2_from_raw(self._db_schema(db), raw))

    def set_monitor(
        self, db: str, mon_name: str, requests: MonReqSet, timeout: float | None = None
    ) -> tuple[TableSetUpdate, queue.Queue]:
        """Start a ``monitor``; returns the initial contents and a queue of updates."""
        with self._mon_lock:
            update = self._call_monitor(db, mon_name, requests, timeout)
            updates: queue.Queue = queue.Queue(maxsize=_UPDATE_QUEUE_SIZE)
            self._monitors[mon_name] = _Monitor(
                db=db, name=mon_name, initial_requests=requests, updates=updates
            )
            return update, updates

    def set_monitor_cond(
        self, db: str, mon_name: str, requests: MonCondReqSet, timeout: float | None = None
    ) -> tuple[TableSetUpdate2, queue.Queue]:
        """Start a ``monitor_cond``; returns the initial contents and a queue of updates."""
        with self._mon_lock:
            update2 = self._call_monitor_cond(db, mon_name, requests, timeout)
            updates: queue.Queue = queue.Queue(maxsize=_UPDATE_QUEUE_SIZE)
            self._monitors[mon_name] = _Monitor(
                db=db, name=mon_name, initial_requests=requests, updates2=updates
            )
            return update2, updates

    def set_monitor_cond_since(
        self, db: str, mon_name: str, requests: MonCondReqSet, timeout: float | None = None
    ) -> tuple[TableSetUpdate2, queue.Queue]:
        """Start a ``monitor_cond_since``; after a reconnect it resumes from the last transaction."""
        with self._mon_lock:
            reply = self._call_monitor_cond_since(db, mon_name, ZERO_UUID, requests, timeout)
            updates: queue.Queue = queue.Queue(maxsize=_UPDATE_QUEUE_SIZE)
            self._monitors[mon_name] = _Monitor(
                db=db,
                name=mon_name,
                initial_requests=requests,
                renew_requests=requests.without_initial(),
                updates2=updates,
                last_txn_id=reply.last_txn_id,
            )
            return reply.update2, updates

    def cancel_monitor(self, mon_name: str, timeout: float | None = None) -> None:
        """Ask the server to stop a monitor."""
        self._connection.call("monitor_cancel", mon_name, timeout=timeout)

    def transact(self, db: str, transaction: Transaction, timeout: float | None = None) -> None:
        """Run a transaction; its results are stored in it.

        Raises TransactionError when an operation reports an error.
        """
        transaction.validate()
        operations = [operation.to_json() for operation in transaction.operations()]
        result = self._connection.call("transact", db, *operations, timeout=timeout)
        transaction.decode_result(result)
        transaction.check()

    def cancel_transact(self, txn_id: Any) -> None:
        """Ask the server to cancel a transaction still in progress."""
        self._connection.notify("cancel", txn_id)

    def close(self) -> None:
        """Close the connection and stop reconnecting."""
        self._closed = True
        if self._conn is not None:
            self._conn.close()