"""
=============================================================================
USER STORE
=============================================================================

In-memory, thread-safe collection of user records addressed by small
integer ids.

=============================================================================
SLAB LAYOUT
=============================================================================

Records live in a flat list of SLOTS. A slot is either occupied (holds a
UserRecord) or free (holds None). The id of a record IS its slot index.

    insert(a)   insert(b)   insert(c)   remove(1)   insert(d)

    ┌───┐       ┌───┬───┐   ┌───┬───┬───┐ ┌───┬───┬───┐ ┌───┬───┬───┐
    │ a │       │ a │ b │   │ a │ b │ c │ │ a │ · │ c │ │ a │ d │ c │
    └───┘       └───┴───┘   └───┴───┴───┘ └───┴───┴───┘ └───┴───┴───┘
      0           0   1       0   1   2     0   1   2     0   1   2
                                            free: [1]     free: []

Freed indices go on a min-heap, so insert always takes the LOWEST free
slot before growing the list. The list never grows past the peak number
of live records, no matter how much churn it sees.

=============================================================================
ID REUSE
=============================================================================

Ids are unique among LIVE records only. After remove(1), the next insert
may hand out 1 again. A client holding a stale id cannot tell "my record"
from "a newer record in the same slot". There is no generation counter.

=============================================================================
LOCKING
=============================================================================

One re-entrant lock guards the whole store. Every public operation takes
it for its full duration. Callers that need several operations to appear
atomic (a dispatch action, for instance) hold it across them:

    with store.locked():
        ids = store.list()
        body = ",".join(map(str, ids))

=============================================================================
"""

import heapq
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional


# Largest value representable as a UserId (unsigned 64-bit)
USER_ID_MAX = 2 ** 64 - 1


class UserNotFound(LookupError):
    """
    Raised when an id does not name an occupied slot.

    Carries the offending id so callers can report it.
    """

    def __init__(self, user_id: int):
        super().__init__(f"No user with id {user_id}")
        self.user_id = user_id


class UserRecord:
    """
    Placeholder user payload.

    Holds no fields yet; its text form is the empty object "{}". Fields can
    be added here without touching how the store indexes records.
    """

    __slots__ = ()

    def to_text(self) -> str:
        """Canonical text representation sent to clients."""
        return "{}"

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return "UserRecord()"


class UserStore:
    """
    Slot-reusing store of UserRecord objects.

    Operations:
        insert(record) -> id     Lowest free slot, or a new one
        get(id) -> record        UserNotFound if slot is free
        update(id, record)       Replace in place, UserNotFound if free
        remove(id)               Free the slot, UserNotFound if free
        list() -> [id, ...]      Occupied ids in slot order

    The store is created once by the server and shared by reference with
    every request handler.
    """

    def __init__(self):
        self._slots: List[Optional[UserRecord]] = []
        self._free: List[int] = []  # min-heap of vacant slot indices
        self._count = 0
        self._lock = threading.RLock()

    # =========================================================================
    # LOCKING
    # =========================================================================

    @contextmanager
    def locked(self) -> Iterator["UserStore"]:
        """
        Hold the store lock across several operations.

        The lock is re-entrant, so store methods called inside the block
        acquire it again without deadlocking.
        """
        with self._lock:
            yield self

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def insert(self, record: UserRecord) -> int:
        """
        Store a record and return its new id.

        Reuses the lowest previously freed slot; grows the slot list only
        when nothing is free. Always succeeds.
        """
        if record is None:
            raise TypeError("record must not be None")

        with self._lock:
            if self._free:
                user_id = heapq.heappop(self._free)
                self._slots[user_id] = record
            else:
                user_id = len(self._slots)
                self._slots.append(record)
            self._count += 1

        return user_id

    def get(self, user_id: int) -> UserRecord:
        """
        Return the record stored under user_id.

        Raises:
            UserNotFound: If the slot is free or out of range.
        """
        with self._lock:
            return self._occupied(user_id)

    def update(self, user_id: int, record: UserRecord) -> None:
        """
        Replace the record at user_id.

        The id and slot stay the same; nothing is allocated.

        Raises:
            UserNotFound: If the slot is free or out of range.
        """
        if record is None:
            raise TypeError("record must not be None")

        with self._lock:
            self._occupied(user_id)
            self._slots[user_id] = record

    def remove(self, user_id: int) -> None:
        """
        Free the slot at user_id, making the id available for reuse.

        Raises:
            UserNotFound: If the slot is already free or out of range.
        """
        with self._lock:
            self._occupied(user_id)
            self._slots[user_id] = None
            heapq.heappush(self._free, user_id)
            self._count -= 1

    def list(self) -> List[int]:
        """
        Return every occupied id, in slot order (low to high).

        After reuse this is neither insertion order nor anything else; it
        reflects physical slot position only.
        """
        with self._lock:
            return [i for i, record in enumerate(self._slots) if record is not None]

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def __len__(self) -> int:
        """Number of live records."""
        with self._lock:
            return self._count

    def __contains__(self, user_id: object) -> bool:
        if not isinstance(user_id, int):
            return False
        with self._lock:
            return self._is_occupied(user_id)

    def _is_occupied(self, user_id: int) -> bool:
        return 0 <= user_id < len(self._slots) and self._slots[user_id] is not None

    def _occupied(self, user_id: int) -> UserRecord:
        # caller holds the lock
        if not self._is_occupied(user_id):
            raise UserNotFound(user_id)
        return self._slots[user_id]
