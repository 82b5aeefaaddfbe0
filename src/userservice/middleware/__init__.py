"""
Request/response middleware wrapped around the dispatcher.

    pipeline = MiddlewarePipeline()
    pipeline.add(LoggingMiddleware(log_format="json"))
    handler = pipeline.wrap(dispatcher.handle)
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
]
