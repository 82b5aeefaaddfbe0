"""
Unit tests for UserServer connection handling.

Each test wires one end of a socketpair into a Connection and drives the
server's per-connection code directly, without a listening socket.
"""

import logging
import socket
import threading
import time

import pytest

from userservice import ServerConfig, UserServer
from userservice.core.connection import Connection, ConnectionState
from userservice.http.request import HTTPRequest
from userservice.http.status_codes import HTTPStatus


def read_all(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


def status_of(raw: bytes) -> int:
    return int(raw.split(b" ", 2)[1])


@pytest.fixture
def server(config: ServerConfig) -> UserServer:
    return UserServer(config)


@pytest.fixture
def socket_pair():
    server_side, client_side = socket.socketpair()
    client_side.settimeout(5.0)
    yield server_side, client_side
    server_side.close()
    client_side.close()


def exchange(server: UserServer, socket_pair, data: bytes, timeout: float = 5.0) -> bytes:
    """Send data, let the server process the connection, return its answer."""
    server_side, client_side = socket_pair
    conn = Connection(socket=server_side, address=("127.0.0.1", 4242), timeout=timeout)

    client_side.sendall(data)
    server._process_connection(conn)

    assert conn.state == ConnectionState.CLOSED
    return read_all(client_side)


class TestProcessConnection:
    def test_create_user(self, server: UserServer, socket_pair):
        raw = exchange(server, socket_pair, b"POST /user/ HTTP/1.1\r\nHost: x\r\n\r\n")

        head, body = raw.split(b"\r\n\r\n", 1)
        assert status_of(raw) == 200
        assert body == b"0"
        assert b"Connection: close" in head
        assert b"X-Request-ID: " in head
        assert server.store.list() == [0]

    def test_method_not_allowed_carries_allow(self, server: UserServer, socket_pair):
        raw = exchange(server, socket_pair, b"PATCH /users HTTP/1.1\r\n\r\n")

        assert status_of(raw) == 405
        assert b"Allow: GET\r\n" in raw

    def test_malformed_request_is_400(self, server: UserServer, socket_pair):
        raw = exchange(server, socket_pair, b"NONSENSE\r\n\r\n")

        assert status_of(raw) == 400
        assert b'"error"' in raw

    def test_unsupported_version_is_505(self, server: UserServer, socket_pair):
        raw = exchange(server, socket_pair, b"GET / HTTP/3.0\r\n\r\n")
        assert status_of(raw) == 505

    def test_oversized_request_is_413(self, socket_pair):
        server = UserServer(ServerConfig(max_request_size=1024, log_level="WARNING"))
        data = b"GET / HTTP/1.1\r\nX-Big: " + b"a" * 4096 + b"\r\n\r\n"

        raw = exchange(server, socket_pair, data)

        assert status_of(raw) == 413

    def test_slow_client_is_408(self, server: UserServer, socket_pair):
        raw = exchange(server, socket_pair, b"GET / HTTP/1.1\r\n", timeout=0.2)
        assert status_of(raw) == 408

    def test_client_hang_up_gets_nothing(self, server: UserServer, socket_pair):
        server_side, client_side = socket_pair
        client_side.shutdown(socket.SHUT_WR)
        conn = Connection(socket=server_side, address=("127.0.0.1", 4242))

        server._process_connection(conn)

        assert read_all(client_side) == b""

    def test_handler_exception_is_500(self, server: UserServer, socket_pair, monkeypatch):
        def broken(request):
            raise RuntimeError("boom")

        monkeypatch.setattr(server.dispatcher, "handle", broken)

        raw = exchange(server, socket_pair, b"GET / HTTP/1.1\r\n\r\n")

        assert status_of(raw) == 500
        assert b"Connection: close" in raw


class TestHandleConnection:
    def test_rejected_when_pool_unavailable(self, server: UserServer, socket_pair):
        """A pool that will not take the connection means 503."""
        server_side, client_side = socket_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 4242))

        server._handle_connection(conn)  # Pool never started

        raw = read_all(client_side)
        assert status_of(raw) == HTTPStatus.SERVICE_UNAVAILABLE
        assert b"Server overloaded" in raw


class TestShutdown:
    def test_logs_pool_counters(self, server: UserServer, caplog):
        server._thread_pool.start()
        done = threading.Event()
        server._thread_pool.submit(done.set)
        assert done.wait(timeout=2.0)
        time.sleep(0.1)

        with caplog.at_level(logging.INFO, logger="userservice.server"):
            server._shutdown()

        messages = [r.getMessage() for r in caplog.records if r.name == "userservice.server"]
        assert any("1 connections served, 0 failed, 0 queued, 0/2 workers busy" in m for m in messages)
        assert messages[-1] == "Server stopped"
        assert not server._thread_pool.is_running


class TestHandle:
    def test_handle_runs_pipeline(self, server: UserServer):
        response = server.handle(HTTPRequest(method="GET", path="/users"))

        assert response.status == HTTPStatus.OK
        assert "X-Request-ID" in response.headers

    def test_without_access_log(self, config: ServerConfig):
        server = UserServer(config, access_log=False)
        response = server.handle(HTTPRequest(method="GET", path="/"))

        assert "X-Request-ID" not in response.headers

    def test_shared_store(self, config: ServerConfig, store):
        server = UserServer(config, store=store)
        server.handle(HTTPRequest(method="POST", path="/user/"))

        assert server.store is store
        assert store.list() == [0]

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError):
            UserServer(ServerConfig(port=70000))
