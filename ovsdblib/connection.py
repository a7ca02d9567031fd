"""A JSON-RPC 1.0 connection over a stream socket, as spoken by OVSDB servers."""

from __future__ import annotations

import codecs
import itertools
import json
import logging
import socket
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Callable

from ovsdblib.containers import encode

_RECV_SIZE = 65536


class RpcError(Exception):
    """The server answered a call with an error."""

    def __init__(self, error: Any) -> None:
        self.error = error
        if isinstance(error, dict) and "error" in error:
            message = str(error["error"])
            if error.get("details") is not None:
                message += f" ({error['details']})"
        else:
            message = str(error)
        super().__init__(message)


class _Framer:
    """Splits a stream of concatenated JSON texts into messages."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self._pos = 0
        self._depth = 0
        self._in_string = False
        self._escape = False

    def feed(self, data: bytes) -> list[Any]:
        buffer = self._buffer + self._decoder.decode(data)
        messages = []
        pos = self._pos
        while pos < len(buffer):
            char = buffer[pos]
            pos += 1
            if self._in_string:
                if self._escape:
                    self._escape = False
                elif char == "\\":
                    self._escape = True
                elif char == '"':
                    self._in_string = False
            elif self._depth == 0 and char not in "{[":
                if not char.isspace():
                    raise ValueError(f"unexpected {char!r} between messages")
            elif char == '"':
                self._in_string = True
            elif char in "{[":
                self._depth += 1
            elif char in "}]":
                self._depth -= 1
                if self._depth == 0:
                    messages.append(json.loads(buffer[:pos]))
                    buffer = buffer[pos:]
                    pos = 0
        self._buffer = buffer
        self._pos = pos
        return messages


def _open_socket(network: str, address: str, timeout: float | None) -> socket.socket:
    if network == "unix":
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.settimeout(timeout)
            sock.connect(address)
        except OSError:
            sock.close()
            raise
    elif network in ("tcp", "tcp4", "tcp6"):
        host, _, port = address.rpartition(":")
        sock = socket.create_connection((host.strip("[]"), int(port)), timeout)
    else:
        raise ValueError(f"unsupported network {network!r}")
    sock.settimeout(None)
    return sock


class Connection:
    """A JSON-RPC 1.0 peer: calls and notifies, and serves calls from the other side.

    Incoming calls and notifications are handled on the reading thread, in
    the order they arrive; handlers get the params as positional arguments.
    """

    def __init__(
        self,
        network: str | None = None,
        address: str | None = None,
        *,
        sock: socket.socket | None = None,
        logger: logging.Logger | None = None,
        connect_timeout: float | None = None,
    ) -> None:
        self._log = logger or logging.getLogger(__name__)
        if sock is None:
            if network is None or address is None:
                raise ValueError("a network and an address, or a socket, are required")
            sock = _open_socket(network, address, connect_timeout)
        self._sock = sock
        self._lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._ids = itertools.count(1)
        self._pending: dict[Any, Future] = {}
        self._call_handlers: dict[str, Callable[..., Any]] = {}
        self._notification_handlers: dict[str, Callable[..., Any]] = {}
        self._closed = False
        self._done = threading.Event()
        self._reader = threading.Thread(target=self._read_loop, daemon=True)
        self._reader.start()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._done.is_set()

    def _send(self, message: dict[str, Any]) -> None:
        data = json.dumps(message, separators=(",", ":")).encode("utf-8")
        with self._send_lock:
            self._sock.sendall(data)

    def call(self, method: str, *args: Any, timeout: float | None = None) -> Any:
        """Call a remote method and return its result.

        Raises RpcError when the server reports an error, TimeoutError when no
        answer comes in time and ConnectionError when the connection is lost.
        """
        future: Future = Future()
        with self._lock:
            if self._closed:
                raise ConnectionError("connection closed")
            msg_id = next(self._ids)
            self._pending[msg_id] = future
        message = {"method": method, "params": [encode(arg) for arg in args], "id": msg_id}
        try:
            self._send(message)
        except OSError as exc:
            with self._lock:
                self._pending.pop(msg_id, None)
            self.close()
            raise ConnectionError(f"fail to send {method!r}: {exc}") from exc
        try:
            return future.result(timeout)
        except FutureTimeout:
            with self._lock:
                self._pending.pop(msg_id, None)
            raise TimeoutError(f"no answer to {method!r} in time") from None

    def notify(self, method: str, *args: Any) -> None:
        """Send a notification, which gets no answer."""
        if self._closed:
            raise ConnectionError("connection closed")
        message = {"method": method, "params": [encode(arg) for arg in args], "id": None}
        try:
            self._send(message)
        except OSError as exc:
            self.close()
            raise ConnectionError(f"fail to send {method!r}: {exc}") from exc

    def _register(self, table: dict[str, Callable[..., Any]], method: str, handler: Callable[..., Any]) -> None:
        with self._lock:
            if self._closed:
                raise ConnectionError("connection closed")
            if method in table:
                raise ValueError(f"handler for {method!r} already set")
            table[method] = handler

    def handle_call(self, method: str, handler: Callable[..., Any]) -> None:
        """Serve calls of ``method``; the handler's return value is the result."""
        self._register(self._call_handlers, method, handler)

    def handle_notification(self, method: str, handler: Callable[..., Any]) -> None:
        """Pass notifications of ``method`` to a handler."""
        self._register(self._notification_handlers, method, handler)

    def wait_closed(self, timeout: float | None = None) -> bool:
        """Wait until the connection is closed; False if still open after ``timeout``."""
        return self._done.wait(timeout)

    def close(self) -> None:
        """Close the connection and fail the calls still waiting for answers."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending = list(self._pending.values())
            self._pending.clear()
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()
        for future in pending:
            if not future.done():
                future.set_exception(ConnectionError("connection closed"))
        self._done.set()

    def _read_loop(self) -> None:
        framer = _Framer()
        try:
            while True:
                data = self._sock.recv(_RECV_SIZE)
                if not data:
                    break
                for message in framer.feed(data):
                    self._dispatch(message)
        except (OSError, ValueError) as exc:
            if not self._closed:
                self._log.warning("connection failed: %s", exc)
        finally:
            self.close()

    def _dispatch(self, message: Any) -> None:
        if not isinstance(message, dict):
            raise ValueError(f"invalid message: {message!r}")
        method = message.get("method")
        if method is None:
            self._on_response(message)
            return
        params = message.get("params")
        if params is None:
            params = []
        elif not isinstance(params, list):
            params = [params]
        msg_id = message.get("id")
        if msg_id is None:
            self._on_notification(method, params)
        else:
            self._on_request(method, params, msg_id)

    def _on_response(self, message: dict[str, Any]) -> None:
        msg_id = message.get("id")
        try:
            with self._lock:
                future = self._pending.pop(msg_id, None)
        except TypeError:
            future = None
        if future is None:
            self._log.debug("answer to unknown call %r", msg_id)
            return
        if message.get("error") is not None:
            future.set_exception(RpcError(message["error"]))
        else:
            future.set_result(message.get("result"))

    def _on_notification(self, method: str, params: list[Any]) -> None:
        handler = self._notification_handlers.get(method)
        if handler is None:
            self._log.debug("no handler for notification %r", method)
            return
        try:
            handler(*params)
        except Exception:
            self._log.warning("notification handler for %r failed", method, exc_info=True)

    def _on_request(self, method: str, params: list[Any], msg_id: Any) -> None:
        handler = self._call_handlers.get(method)
        result: Any = None
        error: Any = None
        if handler is None:
            error = f"unknown method {method}"
        else:
            try:
                result = encode(handler(*params))
            except Exception as exc:
                error = str(exc)
        self._send({"id": msg_id, "result": result, "error": error})