"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

Times every request, writes one access log line for it and tags the
response with an X-Request-ID header so a client can quote it back.

Two formats:

    text (Apache-like, for humans):
        127.0.0.1 - - [16/Oct/2026:10:12:01 +0000] "GET /user/0" 200 2 0.41ms

    json (for log aggregators):
        {"request_id": "9f1c2a7b", "method": "GET", "path": "/user/0", ...}

Lines go to the "userservice.access" logger, separate from the
module loggers, so deployments can route or silence them on their own:

    logging.getLogger("userservice.access").setLevel(logging.WARNING)

Successful requests log at the configured level (INFO by default); 4xx
and 5xx answers log at WARNING so they stand out.

=============================================================================
"""

import time
import json
import uuid
import logging
from typing import Iterable, Optional
from dataclasses import dataclass, asdict

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus


ACCESS_LOGGER_NAME = "userservice.access"

logger = logging.getLogger(ACCESS_LOGGER_NAME)


@dataclass
class RequestLog:
    """One access log entry."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Access logging. Add it first so it also sees requests other middleware
    answers on its own.

        pipeline.add(LoggingMiddleware(log_format="json"))
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        """
        Args:
            log_format: "text" or "json".
            include_request_id: Add X-Request-ID to every response.
            log_level: Level for successful requests. Error answers use
                at least WARNING.
            skip_paths: Paths never logged.

        Raises:
            ValueError: On an unknown log_format.
        """
        if log_format not in ("text", "json"):
            raise ValueError(f"Unknown log format: {log_format}")

        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = frozenset(skip_paths or ())

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"[{request_id}] Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if self.include_request_id:
            response.set_header("X-Request-ID", request_id)

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query="&".join(
                f"{key}={value}"
                for key, values in request.query_params.items()
                for value in values
            ),
            client_ip=request.client_address[0] or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        line = json.dumps(entry.to_dict()) if self.log_format == "json" else entry.to_text()
        logger.log(self._level_for(response.status), line)

        return response

    def _level_for(self, status: int) -> int:
        if HTTPStatus(status).is_error:
            return max(self.log_level, logging.WARNING)
        return self.log_level
