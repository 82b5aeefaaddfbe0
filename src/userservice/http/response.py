"""
=============================================================================
HTTP RESPONSE BUILDING
=============================================================================

HTTPResponse holds a status, headers and a body; to_bytes() serializes it
for the socket. ResponseBuilder is the fluent way to construct one.

    HTTP/1.1 200 OK\r\n                       ← status line
    Content-Type: text/plain; charset=utf-8\r\n
    Content-Length: 3\r\n                     ← added automatically
    Date: Fri, 16 Oct 2026 09:00:00 GMT\r\n   ← added automatically
    Server: userservice/1.0\r\n               ← added automatically
    Connection: close\r\n
    \r\n
    0,1                                       ← body

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, Union
import json

from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "userservice/1.0"

TEXT_PLAIN = "text/plain; charset=utf-8"
TEXT_HTML = "text/html; charset=utf-8"
APPLICATION_JSON = "application/json; charset=utf-8"


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized.

    Use ResponseBuilder for a more convenient way to construct responses.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header; returns self for chaining."""
        self.headers[name] = value
        return self

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize the response for socket.sendall().

        Content-Length, Date and Server are filled in when the handler
        did not set them. The response's own headers are left untouched.
        """
        response_headers = dict(self.headers)

        # Without Content-Length the client cannot tell where the body ends
        response_headers.setdefault("Content-Length", str(len(self.body)))
        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", server_name)

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

    Every method except build() returns self:

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .text("0,1")
            .close_connection()
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    # =========================================================================
    # STATUS & HEADERS
    # =========================================================================

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def allow(self, methods: Iterable[str]) -> "ResponseBuilder":
        """
        Set the Allow header.

        RFC 7231 requires it on every 405 response so the client learns
        which methods the resource does accept.
        """
        return self.header("Allow", ", ".join(methods))

    def close_connection(self) -> "ResponseBuilder":
        """Tell the client the connection closes after this response."""
        return self.header("Connection", "close")

    # =========================================================================
    # BODY
    # =========================================================================

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Raw body; strings are encoded as UTF-8."""
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body
        return self

    def text(self, text: str) -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = TEXT_PLAIN
        return self

    def json(self, data) -> "ResponseBuilder":
        self._body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = APPLICATION_JSON
        return self

    # =========================================================================
    # BUILD
    # =========================================================================

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Example: "Fri, 16 Oct 2026 09:00:00 GMT". HTTP dates are always GMT.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def error_response(status: HTTPStatus, message: str) -> HTTPResponse:
    """
    JSON error response for failures raised by the transport layer
    (parse errors, timeouts, overload). Always closes the connection.
    """
    return (ResponseBuilder()
        .status(status)
        .json({"error": message})
        .close_connection()
        .build())
