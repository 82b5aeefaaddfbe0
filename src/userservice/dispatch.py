"""
=============================================================================
REQUEST DISPATCH
=============================================================================

The whole API in one function:

    dispatch(store, method, path) -> Reply(status, body)

The path is classified by the Router; the resulting intent, the method and
whether an id was present select exactly one store operation or an error.

=============================================================================
DISPATCH TABLE (USER_BY_ID)
=============================================================================

    ┌──────────┬─────────────┬────────────────────────────┬────────────────┐
    │ Method   │ id in path? │ Action                     │ Result         │
    ├──────────┼─────────────┼────────────────────────────┼────────────────┤
    │ POST     │ no          │ store.insert(UserRecord()) │ 200 "<new id>" │
    │ POST     │ yes         │ -                          │ 400            │
    │ GET      │ yes         │ store.get(id)              │ 200 "{}" / 404 │
    │ PUT      │ yes         │ store.update(id, ...)      │ 200 "" / 404   │
    │ DELETE   │ yes         │ store.remove(id)           │ 200 "" / 404   │
    │ GET/PUT/ │ no          │ -                          │ 405            │
    │ DELETE   │             │                            │                │
    │ other    │ either      │ -                          │ 405            │
    └──────────┴─────────────┴────────────────────────────┴────────────────┘

INDEX and LIST_USERS answer GET only (405 otherwise). UNMATCHED is 404 for
every method.

Ids are allocated by the store, never chosen by the client. That is why
POST with an id is a client error while every other verb needs one.

=============================================================================
LOCKING
=============================================================================

The store lock is held for the entire action: lookup, mutation AND
building the reply body. It is released before the reply goes back to
the transport layer. Nothing inside the lock blocks on I/O.

=============================================================================
"""

import logging
from typing import Callable, Dict, NamedTuple, Optional, Tuple

from .http.request import HTTPRequest
from .http.response import HTTPResponse, ResponseBuilder, TEXT_HTML, TEXT_PLAIN
from .http.router import Router, RouteIntent
from .http.status_codes import HTTPStatus
from .store import UserNotFound, UserRecord, UserStore


logger = logging.getLogger(__name__)


INDEX_PAGE = """
<!doctype html>
<html>
    <head>
        <title>User Service</title>
    </head>
    <body>
        <h3>User Service</h3>
    </body>
</html>
"""


class Reply(NamedTuple):
    """
    Outcome of one dispatch.

    Attributes:
        status:       HTTP status to answer with
        body:         Response body (empty for most non-GET answers)
        content_type: Content-Type of the body, None when there is none
        allow:        Methods the resource accepts; set on 405 replies
    """

    status: HTTPStatus
    body: bytes = b""
    content_type: Optional[str] = None
    allow: Tuple[str, ...] = ()


# Methods accepted by each resource, reported in the Allow header on 405
INDEX_METHODS = ("GET",)
LIST_USERS_METHODS = ("GET",)
NEW_USER_METHODS = ("POST",)
EXISTING_USER_METHODS = ("GET", "PUT", "DELETE")


def _text(status: HTTPStatus, text: str) -> Reply:
    return Reply(status, text.encode("utf-8"), TEXT_PLAIN)


def _method_not_allowed(allow: Tuple[str, ...]) -> Reply:
    return Reply(HTTPStatus.METHOD_NOT_ALLOWED, allow=allow)


# =============================================================================
# INTENT HANDLERS
# =============================================================================
#
# Each handler receives (store, method, user_id) and returns a Reply.
#
# =============================================================================

def _index(store: UserStore, method: str, user_id: Optional[int]) -> Reply:
    if method != "GET":
        return _method_not_allowed(INDEX_METHODS)
    return Reply(HTTPStatus.OK, INDEX_PAGE.encode("utf-8"), TEXT_HTML)


def _list_users(store: UserStore, method: str, user_id: Optional[int]) -> Reply:
    if method != "GET":
        return _method_not_allowed(LIST_USERS_METHODS)

    with store.locked():
        return _text(HTTPStatus.OK, ",".join(str(i) for i in store.list()))


def _unmatched(store: UserStore, method: str, user_id: Optional[int]) -> Reply:
    return Reply(HTTPStatus.NOT_FOUND)


# ─────────────────────────────────────────────────────────────────────────────
# USER_BY_ID actions, keyed by (method, id present?)
# ─────────────────────────────────────────────────────────────────────────────

def _create_user(store: UserStore, user_id: Optional[int]) -> Reply:
    new_id = store.insert(UserRecord())
    return _text(HTTPStatus.OK, str(new_id))


def _reject_client_id(store: UserStore, user_id: Optional[int]) -> Reply:
    return Reply(HTTPStatus.BAD_REQUEST)


def _read_user(store: UserStore, user_id: Optional[int]) -> Reply:
    record = store.get(user_id)
    return _text(HTTPStatus.OK, record.to_text())


def _replace_user(store: UserStore, user_id: Optional[int]) -> Reply:
    store.update(user_id, UserRecord())
    return Reply(HTTPStatus.OK)


def _delete_user(store: UserStore, user_id: Optional[int]) -> Reply:
    store.remove(user_id)
    return Reply(HTTPStatus.OK)


UserAction = Callable[[UserStore, Optional[int]], Reply]

USER_ACTIONS: Dict[Tuple[str, bool], UserAction] = {
    ("POST", False): _create_user,
    ("POST", True): _reject_client_id,
    ("GET", True): _read_user,
    ("PUT", True): _replace_user,
    ("DELETE", True): _delete_user,
}


def _user_by_id(store: UserStore, method: str, user_id: Optional[int]) -> Reply:
    has_id = user_id is not None
    action = USER_ACTIONS.get((method, has_id))

    if action is None:
        return _method_not_allowed(EXISTING_USER_METHODS if has_id else NEW_USER_METHODS)

    with store.locked():
        try:
            return action(store, user_id)
        except UserNotFound:
            return Reply(HTTPStatus.NOT_FOUND)


INTENT_HANDLERS: Dict[RouteIntent, Callable[[UserStore, str, Optional[int]], Reply]] = {
    RouteIntent.INDEX: _index,
    RouteIntent.LIST_USERS: _list_users,
    RouteIntent.USER_BY_ID: _user_by_id,
    RouteIntent.UNMATCHED: _unmatched,
}


# =============================================================================
# ENTRY POINTS
# =============================================================================

_DEFAULT_ROUTER = Router()


def dispatch(
    store: UserStore,
    method: str,
    path: str,
    router: Router = _DEFAULT_ROUTER
) -> Reply:
    """
    Evaluate one request against the store.

    A pure function of (method, path) and the current store contents.
    Never raises for any method/path combination.

    Args:
        store: The shared user store.
        method: HTTP method, case-sensitive ("GET", not "get").
        path: Request path without the query string.
        router: Route table used to classify the path.

    Returns:
        Reply with the status and body to send.
    """
    match = router.classify(path)
    reply = INTENT_HANDLERS[match.intent](store, method, match.user_id)
    # The store lock is released by now; logging never runs under it
    logger.debug(f"{method} {path} → {match.intent.value} → {int(reply.status)}")
    return reply


def to_response(reply: Reply) -> HTTPResponse:
    """Convert a Reply into an HTTPResponse for the transport layer."""
    builder = ResponseBuilder().status(reply.status).body(reply.body)

    if reply.content_type:
        builder.content_type(reply.content_type)
    if reply.allow:
        builder.allow(reply.allow)

    return builder.build()


class Dispatcher:
    """
    Binds dispatch() to one store, in the request → response shape the
    server's middleware pipeline expects.

        dispatcher = Dispatcher(store)
        response = dispatcher.handle(request)
    """

    def __init__(self, store: UserStore, router: Optional[Router] = None):
        self.store = store
        self.router = router or _DEFAULT_ROUTER

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        reply = dispatch(self.store, request.method, request.path, self.router)
        return to_response(reply)
