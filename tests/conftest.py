"""
pytest configuration and fixtures.
"""

import http.client
import socket
import threading
from typing import Generator, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from userservice import ServerConfig, UserServer, UserStore


@pytest.fixture
def store() -> UserStore:
    """Fresh, empty store."""
    return UserStore()


@pytest.fixture
def sample_get_request() -> bytes:
    """GET for an existing-looking user."""
    return (
        b"GET /user/0?verbose=1 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/plain\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """POST creating a user, with a body the service ignores."""
    body = b'{"name": "ignored"}'
    return (
        b"POST /user/ HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class RunningServer:
    """A UserServer serving from a background thread."""

    def __init__(self, server: UserServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Tuple[str, int]:
        return self.server.address

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def request(self, method: str, path: str, body: Optional[bytes] = None) -> "Reply":
        """Send one request over a fresh connection."""
        host, port = self.address
        conn = http.client.HTTPConnection(host, port, timeout=5.0)
        try:
            conn.request(method, path, body=body)
            response = conn.getresponse()
            return Reply(response.status, dict(response.getheaders()), response.read())
        finally:
            conn.close()

    def raw(self, data: bytes) -> bytes:
        """Send raw bytes and return everything the server answers."""
        with socket.create_connection(self.address, timeout=5.0) as s:
            s.sendall(data)
            s.shutdown(socket.SHUT_WR)
            chunks = []
            while True:
                chunk = s.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
            return b"".join(chunks)


class Reply:
    """Status, headers and body of a response seen by the test client."""

    def __init__(self, status: int, headers: dict, body: bytes):
        self.status = status
        self.headers = headers
        self.body = body

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


@pytest.fixture
def running_server(config: ServerConfig) -> Generator[RunningServer, None, None]:
    """A live server on a free port with an empty store."""
    srv = RunningServer(UserServer(config))
    srv.start()

    yield srv

    srv.stop()
