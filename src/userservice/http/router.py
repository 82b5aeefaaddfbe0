"""
=============================================================================
PATH CLASSIFICATION
=============================================================================

Maps a request path onto one of a fixed set of ROUTE INTENTS and pulls the
user id out of it when there is one.

=============================================================================
ROUTE TABLE
=============================================================================

Routes are checked top to bottom; the first predicate that accepts the
path wins. Anything left over is UNMATCHED, so classification is total.

    ┌────┬─────────────┬──────────────────────────────────┬──────────────┐
    │ #  │ Intent      │ Accepted paths                   │ Extracts     │
    ├────┼─────────────┼──────────────────────────────────┼──────────────┤
    │ 1  │ INDEX       │ / /index /index.htm /index.html  │ -            │
    │ 2  │ LIST_USERS  │ /users  /users/                  │ -            │
    │ 3  │ USER_BY_ID  │ /user/  /user/{digits}  ... /    │ user id      │
    │ -  │ UNMATCHED   │ everything else                  │ -            │
    └────┴─────────────┴──────────────────────────────────┴──────────────┘

=============================================================================
ID EXTRACTION
=============================================================================

    /user/       → USER_BY_ID, user_id=None
    /user/42     → USER_BY_ID, user_id=42
    /user/42/    → USER_BY_ID, user_id=42
    /user/99999999999999999999
                 → USER_BY_ID, user_id=None  (does not fit in 64 bits)
    /user        → UNMATCHED  (prefix needs its trailing slash)
    /user/abc    → UNMATCHED

A digit run that does not fit the UserId range is treated as "no id" and
the path stays USER_BY_ID. That is the leniency policy, not an error.

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence
import re

from ..store import USER_ID_MAX


class RouteIntent(Enum):
    """The resource groups a path can belong to."""

    INDEX = "index"
    LIST_USERS = "list_users"
    USER_BY_ID = "user_by_id"
    UNMATCHED = "unmatched"


# Predicate: does this route accept the path?
PathPredicate = Callable[[str], bool]

# Extractor: pull the user id (or None) out of an accepted path
IdExtractor = Callable[[str], Optional[int]]


@dataclass(frozen=True)
class RouteMatch:
    """Result of classifying a path."""

    intent: RouteIntent
    user_id: Optional[int] = None

    @property
    def has_id(self) -> bool:
        return self.user_id is not None


@dataclass(frozen=True)
class Route:
    """One row of the route table."""

    intent: RouteIntent
    accepts: PathPredicate
    extract_id: Optional[IdExtractor] = None

    def match(self, path: str) -> Optional[RouteMatch]:
        if not self.accepts(path):
            return None
        user_id = self.extract_id(path) if self.extract_id else None
        return RouteMatch(self.intent, user_id)


# =============================================================================
# PREDICATES & EXTRACTORS
# =============================================================================

INDEX_PATHS = frozenset({"/", "/index", "/index.htm", "/index.html"})
USERS_PATHS = frozenset({"/users", "/users/"})

# [0-9] rather than \d: \d also matches non-ASCII digits
USER_PATH_PATTERN = re.compile(r"/user/(?:(?P<user_id>[0-9]+)/?)?")


def is_index_path(path: str) -> bool:
    return path in INDEX_PATHS


def is_users_path(path: str) -> bool:
    return path in USERS_PATHS


def is_user_path(path: str) -> bool:
    return USER_PATH_PATTERN.fullmatch(path) is not None


def parse_user_id(segment: Optional[str]) -> Optional[int]:
    """
    Convert a digit run to a UserId.

    Returns None for a missing segment or a value outside 0..2**64-1.
    """
    if not segment:
        return None
    value = int(segment)
    if value > USER_ID_MAX:
        return None
    return value


def extract_user_id(path: str) -> Optional[int]:
    match = USER_PATH_PATTERN.fullmatch(path)
    if match is None:
        return None
    return parse_user_id(match.group("user_id"))


DEFAULT_ROUTES: tuple[Route, ...] = (
    Route(RouteIntent.INDEX, is_index_path),
    Route(RouteIntent.LIST_USERS, is_users_path),
    Route(RouteIntent.USER_BY_ID, is_user_path, extract_user_id),
)


class Router:
    """
    Ordered route table.

    Usage:
        router = Router()
        router.classify("/user/7")    # RouteMatch(USER_BY_ID, user_id=7)
        router.classify("/nope")      # RouteMatch(UNMATCHED)

    Classification has no side effects and never raises.
    """

    def __init__(self, routes: Sequence[Route] = DEFAULT_ROUTES):
        self._routes = tuple(routes)

    @property
    def routes(self) -> tuple[Route, ...]:
        return self._routes

    def classify(self, path: str) -> RouteMatch:
        for route in self._routes:
            match = route.match(path)
            if match is not None:
                return match
        return RouteMatch(RouteIntent.UNMATCHED)
