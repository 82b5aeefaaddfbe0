"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this service can put on the wire, with reason phrases.

    ┌──────┬──────────────────────────┬───────────────────────────────────┐
    │ Code │ Phrase                   │ Produced by                       │
    ├──────┼──────────────────────────┼───────────────────────────────────┤
    │ 200  │ OK                       │ every successful operation        │
    │ 400  │ Bad Request              │ POST /user/{id}, malformed request│
    │ 404  │ Not Found                │ unknown id, unmatched path        │
    │ 405  │ Method Not Allowed       │ known resource, wrong verb        │
    │ 408  │ Request Timeout          │ client too slow to send a request │
    │ 413  │ Payload Too Large        │ request over max_request_size     │
    │ 500  │ Internal Server Error    │ unexpected handler failure        │
    │ 503  │ Service Unavailable      │ worker queue full                 │
    │ 505  │ HTTP Version Not Sup...  │ anything but HTTP/1.0 or 1.1      │
    └──────┴──────────────────────────┴───────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 2xx SUCCESS
    OK = 200

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase used in the status line ("HTTP/1.1 404 Not Found")."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        """4xx or 5xx. Used by the access log to pick a level."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
