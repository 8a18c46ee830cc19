"""Keyed mutual exclusion for work that shares per-slot state.

Offer creation, acceptance and re-queueing for one (business, service)
pair run one at a time; different pairs proceed in parallel. Locks are
re-entrant so an operation can cascade into another under the same key.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLocks:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._holders: dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.RLock())
            self._holders[key] = self._holders.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    del self._holders[key]
                    del self._locks[key]

    def active_keys(self) -> list[str]:
        with self._guard:
            return list(self._locks)


def queue_key(business_id, service_id) -> str:
    return f"queue:{business_id}:{service_id}"


def job_key(idempotency_key: str) -> str:
    return f"job:{idempotency_key}"


def address_key(channel: str, hashed_address: str) -> str:
    return f"address:{channel}:{hashed_address}"


_locks = KeyedLocks()


def get_locks() -> KeyedLocks:
    return _locks
