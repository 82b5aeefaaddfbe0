"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

Networking plumbing under the user service:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  SocketServer   listening socket, accept() loop, signal handling    │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ Connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  ThreadPool     bounded queue of connections, worker threads        │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  Connection     read one request, send one response, close          │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
