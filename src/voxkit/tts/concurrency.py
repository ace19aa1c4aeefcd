"""
Per-key mutual exclusion for the clone-prompt cache.

Lookups for different ``(voice, variant)`` keys run in parallel; lookups
for the same key queue on one lock, so at most one cold derivation per key
is ever in flight. Locks are reference counted and dropped once nobody
holds or waits on them, keeping the arena as small as the set of keys
currently in use.

Usage:
    locks = KeyedLocks()
    with locks.hold("narrator:1.7b"):
        ...
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator

from voxkit.core.logging import get_logger, trace

_LOG = get_logger("voxkit.concurrency")


@dataclass
class KeyedLockStats:
    active_keys: int
    waiting: int
    total_acquired: int


class _Slot:
    __slots__ = ("lock", "refs")

    def __init__(self):
        self.lock = threading.Lock()
        self.refs = 0


class KeyedLocks:
    """Arena of exclusive locks keyed by string."""

    def __init__(self):
        self._guard = threading.Lock()
        self._slots: Dict[str, _Slot] = {}
        self._total_acquired = 0

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """
        Hold the lock for ``key`` for the duration of the ``with`` block.

        Slots are created on first use and dropped once no holder or waiter
        remains, so the arena only grows with the number of keys in flight.

        Example:
            with locks.hold("narrator:1.7b"):
                ...  # at most one thread per key in here
        """
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = _Slot()
            slot.refs += 1

        slot.lock.acquire()
        try:
            with self._guard:
                self._total_acquired += 1
            trace(_LOG, "key_lock_acquired", key=key)
            yield
        finally:
            slot.lock.release()
            with self._guard:
                slot.refs -= 1
                if slot.refs == 0:
                    del self._slots[key]

    def stats(self) -> KeyedLockStats:
        """Snapshot of keys in use, threads waiting and total acquisitions."""
        with self._guard:
            waiting = sum(max(slot.refs - 1, 0) for slot in self._slots.values())
            return KeyedLockStats(
                active_keys=len(self._slots),
                waiting=waiting,
                total_acquired=self._total_acquired,
            )
