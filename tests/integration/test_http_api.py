"""
End-to-end tests against a real listening server.

Every test gets its own server on an OS-assigned port and talks to it over
http.client, one connection per request.
"""

import json
import socket
import threading

import pytest

from userservice import ServerConfig, UserServer


class TestIndex:
    def test_index_page(self, running_server):
        reply = running_server.request("GET", "/")

        assert reply.status == 200
        assert reply.headers["Content-Type"].startswith("text/html")
        assert "<title>User Service</title>" in reply.text

    def test_index_html(self, running_server):
        assert running_server.request("GET", "/index.html").status == 200

    def test_index_post_not_allowed(self, running_server):
        reply = running_server.request("POST", "/")

        assert reply.status == 405
        assert reply.headers["Allow"] == "GET"


class TestUserLifecycle:
    def test_create_read_delete_reuse(self, running_server):
        assert running_server.request("POST", "/user/").text == "0"

        reply = running_server.request("GET", "/user/0")
        assert reply.status == 200
        assert reply.text == "{}"

        assert running_server.request("DELETE", "/user/0").status == 200
        assert running_server.request("GET", "/user/0").status == 404

        assert running_server.request("POST", "/user/").text == "0"

    def test_list_users(self, running_server):
        assert running_server.request("GET", "/users").text == ""

        running_server.request("POST", "/user/")
        running_server.request("POST", "/user/")

        reply = running_server.request("GET", "/users/")
        assert reply.status == 200
        assert reply.text == "0,1"

    def test_update(self, running_server):
        running_server.request("POST", "/user/")

        reply = running_server.request("PUT", "/user/0", body=b'{"ignored": true}')

        assert reply.status == 200
        assert reply.body == b""

    def test_query_string_ignored(self, running_server):
        running_server.request("POST", "/user/")
        assert running_server.request("GET", "/user/0?fields=all").text == "{}"


class TestErrors:
    def test_post_with_id(self, running_server):
        reply = running_server.request("POST", "/user/5")

        assert reply.status == 400
        assert reply.body == b""

    def test_put_missing(self, running_server):
        assert running_server.request("PUT", "/user/99").status == 404

    def test_patch_not_allowed(self, running_server):
        running_server.request("POST", "/user/")
        reply = running_server.request("PATCH", "/user/0")

        assert reply.status == 405
        assert reply.headers["Allow"] == "GET, PUT, DELETE"

    def test_unknown_path(self, running_server):
        assert running_server.request("GET", "/unknown/path").status == 404

    @pytest.mark.parametrize("target", ["//users", "//", "/user/%30", "/user/1;x"])
    def test_lookalike_paths_not_normalized(self, running_server, target: str):
        running_server.request("POST", "/user/")
        running_server.request("POST", "/user/")

        raw = running_server.raw(f"GET {target} HTTP/1.1\r\nHost: test\r\n\r\n".encode())

        assert raw.startswith(b"HTTP/1.1 404 Not Found\r\n")

    def test_malformed_bytes(self, running_server):
        raw = running_server.raw(b"this is not http\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 400 Bad Request\r\n")
        body = raw.split(b"\r\n\r\n", 1)[1]
        assert "error" in json.loads(body)


class TestTransport:
    def test_connection_close_on_every_response(self, running_server):
        reply = running_server.request("GET", "/users")

        assert reply.headers["Connection"] == "close"
        assert reply.headers["Server"] == "userservice/1.0"
        assert "Date" in reply.headers
        assert len(reply.headers["X-Request-ID"]) == 8

    def test_concurrent_creates_get_unique_ids(self, running_server):
        ids = []
        lock = threading.Lock()

        def create(count):
            for _ in range(count):
                reply = running_server.request("POST", "/user/")
                with lock:
                    ids.append(int(reply.text))

        threads = [threading.Thread(target=create, args=(10,)) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30.0)

        assert sorted(ids) == list(range(50))
        assert running_server.request("GET", "/users").text == ",".join(str(i) for i in range(50))


class TestStartup:
    def test_bind_failure_raises(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
            blocker.bind(("127.0.0.1", 0))
            blocker.listen(1)
            port = blocker.getsockname()[1]

            server = UserServer(ServerConfig(port=port, min_workers=1, max_workers=1, log_level="WARNING"))

            with pytest.raises(OSError):
                server.run()

            assert not server.is_running
