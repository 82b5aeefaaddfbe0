"""
HTTP protocol components: request parsing, response building, status codes
and path classification.
"""

from .status_codes import HTTPStatus
from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import HTTPResponse, ResponseBuilder, error_response, format_http_date
from .router import Router, Route, RouteMatch, RouteIntent

__all__ = [
    "HTTPStatus",
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",
    "HTTPResponse",
    "ResponseBuilder",
    "error_response",
    "format_http_date",
    "Router",
    "Route",
    "RouteMatch",
    "RouteIntent",
]
