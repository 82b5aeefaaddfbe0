"""
Unit tests for HTTP response building.
"""

import json
from datetime import datetime, timezone

from userservice.http.response import (
    APPLICATION_JSON,
    TEXT_PLAIN,
    HTTPResponse,
    ResponseBuilder,
    error_response,
    format_http_date,
)
from userservice.http.status_codes import HTTPStatus


class TestHTTPResponse:
    """Tests for HTTPResponse class."""

    def test_status_line(self):
        """Test status line generation."""
        assert HTTPResponse(status=HTTPStatus.OK).status_line == "HTTP/1.1 200 OK"
        assert HTTPResponse(status=HTTPStatus.NOT_FOUND).status_line == "HTTP/1.1 404 Not Found"

    def test_to_bytes_includes_headers(self):
        """Test serialization includes custom and default headers."""
        response = HTTPResponse(
            status=HTTPStatus.OK,
            headers={"Content-Type": TEXT_PLAIN},
            body=b"0,1",
        )

        raw = response.to_bytes(server_name="test/1.0")
        head, body = raw.split(b"\r\n\r\n", 1)

        assert head.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Content-Type: text/plain; charset=utf-8" in head
        assert b"Content-Length: 3" in head
        assert b"Server: test/1.0" in head
        assert b"Date: " in head
        assert body == b"0,1"

    def test_to_bytes_empty_body(self):
        raw = HTTPResponse(status=HTTPStatus.NOT_FOUND).to_bytes()

        assert b"Content-Length: 0" in raw
        assert raw.endswith(b"\r\n\r\n")

    def test_to_bytes_does_not_mutate_headers(self):
        response = HTTPResponse()
        response.to_bytes()
        assert response.headers == {}

    def test_set_header_chaining(self):
        """Test that set_header returns self."""
        response = HTTPResponse()
        result = response.set_header("X-One", "1").set_header("X-Two", "2")

        assert result is response
        assert response.headers == {"X-One": "1", "X-Two": "2"}


class TestResponseBuilder:
    """Tests for ResponseBuilder class."""

    def test_defaults(self):
        response = ResponseBuilder().build()

        assert response.status == HTTPStatus.OK
        assert response.body == b""
        assert response.headers == {}

    def test_status_accepts_int(self):
        response = ResponseBuilder().status(405).build()
        assert response.status is HTTPStatus.METHOD_NOT_ALLOWED

    def test_text_body(self):
        response = ResponseBuilder().text("0,1,2").build()

        assert response.body == b"0,1,2"
        assert response.headers["Content-Type"] == TEXT_PLAIN

    def test_json_body(self):
        response = ResponseBuilder().json({"error": "nope"}).build()

        assert json.loads(response.body) == {"error": "nope"}
        assert response.headers["Content-Type"] == APPLICATION_JSON

    def test_raw_body_string_encoded(self):
        assert ResponseBuilder().body("é").build().body == "é".encode("utf-8")

    def test_allow_header(self):
        """Test the Allow header sent with 405 responses."""
        response = ResponseBuilder().allow(["GET", "PUT", "DELETE"]).build()
        assert response.headers["Allow"] == "GET, PUT, DELETE"

    def test_close_connection(self):
        response = ResponseBuilder().close_connection().build()
        assert response.headers["Connection"] == "close"

    def test_builds_are_independent(self):
        builder = ResponseBuilder().header("X-A", "1")
        first = builder.build()
        builder.header("X-B", "2")

        assert "X-B" not in first.headers


class TestErrorResponse:
    def test_error_response(self):
        response = error_response(HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")

        assert response.status == HTTPStatus.SERVICE_UNAVAILABLE
        assert json.loads(response.body) == {"error": "Server overloaded"}
        assert response.headers["Connection"] == "close"


class TestHTTPStatus:
    """Tests for HTTPStatus enum."""

    def test_status_phrases(self):
        """Test that all statuses have phrases."""
        for status in HTTPStatus:
            assert status.phrase != "Unknown"
        assert HTTPStatus.METHOD_NOT_ALLOWED.phrase == "Method Not Allowed"

    def test_status_categories(self):
        """Test status category helpers."""
        assert HTTPStatus.OK.is_success
        assert HTTPStatus.NOT_FOUND.is_client_error
        assert HTTPStatus.INTERNAL_SERVER_ERROR.is_server_error

        assert HTTPStatus.BAD_REQUEST.is_error
        assert HTTPStatus.SERVICE_UNAVAILABLE.is_error
        assert not HTTPStatus.OK.is_error

    def test_compares_to_int(self):
        assert HTTPStatus.NOT_FOUND == 404


class TestFormatHTTPDate:
    """Tests for HTTP date formatting."""

    def test_format(self):
        dt = datetime(2026, 1, 15, 12, 30, 45, tzinfo=timezone.utc)
        assert format_http_date(dt) == "Thu, 15 Jan 2026 12:30:45 GMT"
