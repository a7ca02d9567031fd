import queue
import socket
import threading
import time

import pytest

from ovsdblib.client import ZERO_UUID, Client
from ovsdblib.connection import Connection, RpcError
from ovsdblib.monitor_request import MonCondReq, MonCondReqSet, MonReq, MonReqSet
from ovsdblib.transaction import Transaction, TransactionError

SCHEMA = {
    "name": "Open_vSwitch",
    "version": "1.0.0",
    "tables": {
        "Bridge": {
            "columns": {
                "name": {"type": "string"},
                "ports": {"type": {"key": "uuid", "min": 0, "max": "unlimited"}},
            }
        },
        "Open_vSwitch": {"columns": {"cur_cfg": {"type": "integer"}}},
    },
}


class FakeServer:
    def __init__(self, handlers=None):
        self.handlers = {
            "list_dbs": lambda: ["Open_vSwitch"],
            "get_schema": lambda db: SCHEMA,
            "echo": lambda *params: list(params),
        }
        self.handlers.update(handlers or {})
        self.calls = []
        self.notifications = queue.Queue()
        self.peers = []
        self.lock = threading.Lock()

    def _wrap(self, method, handler):
        def serve(*params):
            with self.lock:
                self.calls.append((method, list(params)))
            return handler(*params)

        return serve

    def factory(self, network, address, logger):
        client_sock, server_sock = socket.socketpair()
        peer = Connection(sock=server_sock)
        for method, handler in self.handlers.items():
            peer.handle_call(method, self._wrap(method, handler))
        peer.handle_notification(
            "cancel", lambda *params: self.notifications.put(("cancel", list(params)))
        )
        self.peers.append(peer)
        return Connection(sock=client_sock, logger=logger)

    def params(self, method):
        with self.lock:
            return [params for name, params in self.calls if name == method]


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def make_client():
    clients = []

    def make(server, **options):
        options.setdefault("connection_factory", server.factory)
        client = Client("unix", "/run/ovsdb.sock", **options)
        clients.append(client)
        return client

    yield make
    for client in clients:
        client.close()


def test_list_dbs_is_fetched_once(make_client):
    server = FakeServer()
    client = make_client(server)
    dbs = client.list_dbs(timeout=5)
    assert dbs == ["Open_vSwitch"]
    dbs.append("other")
    assert client.list_dbs(timeout=5) == ["Open_vSwitch"]
    assert server.params("list_dbs") == [[]]


def test_get_schema_is_loaded_on_connect(make_client):
    server = FakeServer()
    client = make_client(server)
    schema = client.get_schema("Open_vSwitch", timeout=5)
    assert schema.name == "Open_vSwitch"
    assert set(schema.tables) == {"Bridge", "Open_vSwitch"}
    assert server.params("get_schema") == [["Open_vSwitch"]]


def test_echo_round_trip(make_client):
    server = FakeServer()
    client = make_client(server)
    client.echo(timeout=5)
    sent = server.params("echo")
    assert len(sent) == 1
    assert sent[0][0].startswith("__")


def test_echo_rejects_other_answer(make_client):
    server = FakeServer({"echo": lambda *params: ["other"]})
    client = make_client(server)
    with pytest.raises(ValueError):
        client.echo(timeout=5)


def test_server_echo_is_answered(make_client):
    server = FakeServer()
    make_client(server)
    assert server.peers[0].call("echo", "hello", timeout=5) == ["hello"]


def test_set_monitor_and_update_notification(make_client):
    server = FakeServer(
        {"monitor": lambda db, name, reqs: {"Bridge": {"u1": {"new": {"name": "br0"}}}}}
    )
    client = make_client(server)
    schema = client.get_schema("Open_vSwitch")
    requests = MonReqSet(schema).add("Bridge", MonReq(columns=["name"]))
    initial, updates = client.set_monitor("Open_vSwitch", "mon1", requests, timeout=5)
    assert initial["Bridge"]["u1"].new.get("name") == "br0"
    assert server.params("monitor") == [
        ["Open_vSwitch", "mon1", {"Bridge": [{"columns": ["name"]}]}]
    ]
    server.peers[0].notify("update", "mon1", {"Bridge": {"u2": {"new": {"name": "br1"}}}})
    update = updates.get(timeout=5)
    assert update["Bridge"]["u2"].new.get("name") == "br1"


def test_set_monitor_validates_before_calling(make_client):
    server = FakeServer({"monitor": lambda *params: {}})
    client = make_client(server)
    schema = client.get_schema("Open_vSwitch")
    requests = MonReqSet(schema).add("NoSuchTable", MonReq())
    with pytest.raises(ValueError):
        client.set_monitor("Open_vSwitch", "mon1", requests, timeout=5)
    assert server.params("monitor") == []


def test_set_monitor_cond_and_update2(make_client):
    server = FakeServer(
        {"monitor_cond": lambda db, name, reqs: {"Bridge": {"u1": {"initial": {"name": "br0"}}}}}
    )
    client = make_client(server)
    schema = client.get_schema("Open_vSwitch")
    requests = MonCondReqSet(schema).add("Bridge", MonCondReq(columns=["name"]))
    initial, updates = client.set_monitor_cond("Open_vSwitch", "mon2", requests, timeout=5)
    assert initial["Bridge"]["u1"].initial.get("name") == "br0"
    server.peers[0].notify("update2", "mon2", {"Bridge": {"u1": {"modify": {"name": "br9"}}}})
    update = updates.get(timeout=5)
    assert update["Bridge"]["u1"].modify.get("name") == "br9"


def test_monitor_cond_since_resumes_after_reconnect(make_client):
    reply = [False, "txn-1", {"Bridge": {"u1": {"initial": {"name": "br0"}}}}]
    server = FakeServer({"monitor_cond_since": lambda db, name, reqs, since: reply})
    client = make_client(server, retry_delay=0.01)
    schema = client.get_schema("Open_vSwitch")
    requests = MonCondReqSet(schema).add("Bridge", MonCondReq(columns=["name"]))
    initial, updates = client.set_monitor_cond_since("Open_vSwitch", "mon", requests, timeout=5)
    assert initial["Bridge"]["u1"].initial.get("name") == "br0"
    assert server.params("monitor_cond_since")[0][3] == ZERO_UUID

    server.peers[0].notify(
        "update3", "mon", "txn-2", {"Bridge": {"u2": {"insert": {"name": "br1"}}}}
    )
    update = updates.get(timeout=5)
    assert update["Bridge"]["u2"].insert.get("name") == "br1"

    server.peers[0].close()
    restored = updates.get(timeout=5)
    assert restored["Bridge"]["u1"].initial.get("name") == "br0"
    assert len(server.peers) == 2
    assert server.params("monitor_cond_since")[-1][3] == "txn-2"


def test_monitor_cond_since_rejects_malformed_reply(make_client):
    server = FakeServer({"monitor_cond_since": lambda *params: [True, "txn"]})
    client = make_client(server)
    schema = client.get_schema("Open_vSwitch")
    requests = MonCondReqSet(schema).add("Bridge", MonCondReq())
    with pytest.raises(ValueError):
        client.set_monitor_cond_since("Open_vSwitch", "mon", requests, timeout=5)


def test_cancel_monitor(make_client):
    server = FakeServer({"monitor_cancel": lambda name: {}})
    client = make_client(server)
    client.cancel_monitor("mon1", timeout=5)
    assert server.params("monitor_cancel") == [["mon1"]]


def test_cancel_monitor_error(make_client):
    def refuse(name):
        raise RuntimeError("unknown monitor")

    server = FakeServer({"monitor_cancel": refuse})
    client = make_client(server)
    with pytest.raises(RpcError):
        client.cancel_monitor("mon1", timeout=5)


def test_transact_sends_operations(make_client):
    server = FakeServer({"transact": lambda db, *ops: [{}]})
    client = make_client(server)
    schema = client.get_schema("Open_vSwitch")
    row = schema.tables["Bridge"].new_row({"name": "br0"})
    transaction = Transaction(schema).insert(row)
    client.transact("Open_vSwitch", transaction, timeout=5)
    sent = server.params("transact")
    assert len(sent) == 1
    assert sent[0][0] == "Open_vSwitch"
    assert sent[0][1]["op"] == "insert"
    assert sent[0][1]["row"] == {"name": "br0"}


def test_transact_reports_operation_error(make_client):
    server = FakeServer(
        {"transact": lambda db, *ops: [{"error": "constraint violation", "details": "bad"}]}
    )
    client = make_client(server)
    schema = client.get_schema("Open_vSwitch")
    row = schema.tables["Bridge"].new_row({"name": "br0"})
    with pytest.raises(TransactionError, match=r"operation #0\(insert\)"):
        client.transact("Open_vSwitch", Transaction(schema).insert(row), timeout=5)


def test_transact_validates_first(make_client):
    server = FakeServer({"transact": lambda db, *ops: []})
    client = make_client(server)
    schema = client.get_schema("Open_vSwitch")
    with pytest.raises(ValueError):
        client.transact("Open_vSwitch", Transaction(schema).delete("Nope", []), timeout=5)
    assert server.params("transact") == []


def test_cancel_transact_notifies(make_client):
    server = FakeServer()
    client = make_client(server)
    client.cancel_transact("txn-7")
    assert server.notifications.get(timeout=5) == ("cancel", ["txn-7"])


def test_keep_alive_sends_echo(make_client):
    server = FakeServer()
    make_client(server, keep_alive_period=0.05)
    assert wait_for(lambda: server.params("echo"))
    assert server.params("echo")[0] == ["keep alive 0"]


def test_keep_alive_failure_reconnects(make_client):
    server = FakeServer({"echo": lambda *params: ["wrong"]})
    make_client(server, keep_alive_period=0.05, retry_delay=0.01)
    assert wait_for(lambda: len(server.peers) >= 2)
    assert server.peers[0].wait_closed(5)


def test_connect_retries_after_failure(make_client):
    server = FakeServer()
    attempts = []

    def flaky(network, address, logger):
        attempts.append((network, address))
        if len(attempts) == 1:
            raise OSError("connection refused")
        return server.factory(network, address, logger)

    client = make_client(server, connection_factory=flaky, retry_delay=0.01)
    assert attempts == [("unix", "/run/ovsdb.sock")] * 2
    assert client.list_dbs() == ["Open_vSwitch"]


def test_close_stops_reconnecting(make_client):
    server = FakeServer()
    client = make_client(server, retry_delay=0.01)
    client.close()
    assert server.peers[0].wait_closed(5)
    time.sleep(0.1)
    assert len(server.peers) == 1