"""
=============================================================================
USERSERVICE
=============================================================================

A small HTTP service keeping a registry of users in memory.

    ┌────────┬──────────────┬──────────────────────────────────────────┐
    │ Method │ Path         │ Effect                                   │
    ├────────┼──────────────┼──────────────────────────────────────────┤
    │ GET    │ /            │ HTML index page                          │
    │ GET    │ /users       │ comma-separated ids, ascending           │
    │ POST   │ /user/       │ create a user, body is the new id        │
    │ GET    │ /user/<id>   │ "{}" or 404                              │
    │ PUT    │ /user/<id>   │ replace the record, or 404               │
    │ DELETE │ /user/<id>   │ remove the record, or 404                │
    └────────┴──────────────┴──────────────────────────────────────────┘

Ids are small integers handed out by the store. A deleted id may be
handed out again by a later POST.

Quick start:

    from userservice import UserServer, ServerConfig

    UserServer(ServerConfig(port=8080)).run()

Or without a socket at all:

    from userservice import UserStore, dispatch

    store = UserStore()
    dispatch(store, "POST", "/user/")   # Reply(status=200, body=b"0", ...)

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .dispatch import Dispatcher, Reply, dispatch
from .server import UserServer
from .store import UserNotFound, UserRecord, UserStore

__all__ = [
    "UserServer",
    "ServerConfig",
    "UserStore",
    "UserRecord",
    "UserNotFound",
    "Dispatcher",
    "Reply",
    "dispatch",
    "__version__",
]
