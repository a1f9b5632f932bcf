"""Per-order locks, widened to the listings an operation touches.

Every state-changing operation on an order runs while holding that order's
lock, so a second caller always reads the first caller's committed state.
Operations that move stock also hold a lock per listing. Locks are always
taken in sorted key order, so two callers can never wait on each other.

An entry lives only while some caller holds or waits on it.
"""

import threading
from contextlib import contextmanager

_locks: dict[str, threading.Lock] = {}
_users: dict[str, int] = {}
_registry_lock = threading.Lock()


def _checkout(key: str) -> threading.Lock:
    with _registry_lock:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.Lock()
        _users[key] = _users.get(key, 0) + 1
        return lock


def _checkin(key: str) -> None:
    with _registry_lock:
        _users[key] -= 1
        if _users[key] == 0:
            del _users[key]
            del _locks[key]


@contextmanager
def held(*keys: str):
    """Hold the lock for every key, acquired in sorted order."""
    ordered = sorted(set(keys))
    locks = [_checkout(key) for key in ordered]
    acquired = []
    try:
        for lock in locks:
            lock.acquire()
            acquired.append(lock)
        yield
    finally:
        for lock in reversed(acquired):
            lock.release()
        for key in ordered:
            _checkin(key)


def order_lock(order_id, listing_ids=()):
    keys = [f"order:{order_id}"] + [f"listing:{listing_id}" for listing_id in listing_ids]
    return held(*keys)


def active_lock_count() -> int:
    with _registry_lock:
        return len(_locks)


def reset_locks() -> None:
    with _registry_lock:
        _locks.clear()
        _users.clear()
