import threading
from contextlib import contextmanager
from typing import Dict, Hashable, List


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.RLock()
        self.holders = 0


class KeyedLocks:
    """One re-entrant lock per key, created on first use.

    A key's lock is dropped once nobody holds or waits on it, so the map only
    keeps keys that are in use.
    """

    def __init__(self):
        self._locks: Dict[Hashable, _Entry] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: Hashable) -> _Entry:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _Entry()
            entry.holders += 1
            return entry

    def _checkin(self, key: Hashable, entry: _Entry) -> None:
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    @contextmanager
    def hold(self, *keys: Hashable):
        # siempre el mismo orden de adquisición
        ordered = sorted(set(keys), key=repr)
        acquired: List[tuple] = []
        try:
            for k in ordered:
                entry = self._checkout(k)
                try:
                    entry.lock.acquire()
                except BaseException:
                    self._checkin(k, entry)
                    raise
                acquired.append((k, entry))
            yield
        finally:
            for k, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(k, entry)


# (product_id, unit_id) -> lock
STOCK_LOCKS = KeyedLocks()
# register_id -> lock
REGISTER_LOCKS = KeyedLocks()
# coupon_id -> lock
COUPON_LOCKS = KeyedLocks()
