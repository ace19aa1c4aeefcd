"""
In-memory tier of the clone-prompt cache.

A bounded LRU map from ``"<voice>:<variant>"`` to clone-prompt bytes.
Entries evicted for capacity are still on disk, so eviction only costs a
tier-2 read on the next lookup.

Example:
    >>> mem = ClonePromptMemory(max_items=8)
    >>> mem.set(cache_key("narrator", "1.7b"), b"...")
    >>> mem.get(cache_key("narrator", "1.7b"))
    b'...'
"""
from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Dict, Optional

from voxkit.core.config import Defaults
from voxkit.core.logging import debug, get_logger

_LOG = get_logger("voxkit.cache.memory")


def cache_key(voice_name: str, variant: str) -> str:
    """
    Memory-tier key for one (voice, variant) pair.

    >>> cache_key("narrator", "1.7b")
    'narrator:1.7b'
    """
    return f"{voice_name}:{variant}"


class ClonePromptMemory:
    """
    Thread-safe LRU map of clone-prompt blobs.

    Attributes:
        max_items: Capacity before least-recently-used entries are dropped.
    """

    def __init__(self, max_items: int = Defaults.CACHE_MEMORY_MAX_ITEMS):
        self.max_items = int(max_items)
        self._d: "OrderedDict[str, bytes]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[bytes]:
        """Return the blob for ``key`` and mark it most recently used, or None."""
        with self._lock:
            blob = self._d.get(key)
            if blob is None:
                self._misses += 1
                return None
            self._d.move_to_end(key)
            self._hits += 1
            return blob

    def set(self, key: str, blob: bytes) -> None:
        """Store ``blob`` under ``key``, replacing any previous entry."""
        with self._lock:
            self._d[key] = blob
            self._d.move_to_end(key)
            while len(self._d) > self.max_items:
                evicted, _ = self._d.popitem(last=False)
                self._evictions += 1
                debug(_LOG, "memory_evicted", key=evicted)

    def delete(self, key: str) -> bool:
        """Remove ``key``; returns whether it was present."""
        with self._lock:
            return self._d.pop(key, None) is not None

    def evict_voice(self, voice_name: str) -> int:
        """Drop every variant cached for ``voice_name``; returns how many went."""
        prefix = f"{voice_name}:"
        with self._lock:
            keys = [k for k in self._d if k.startswith(prefix) and ":" not in k[len(prefix):]]
            for k in keys:
                del self._d[k]
        return len(keys)

    def clear(self) -> None:
        """Drop every entry. Counters are kept."""
        with self._lock:
            self._d.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._d

    def __len__(self) -> int:
        with self._lock:
            return len(self._d)

    def stats(self) -> Dict[str, int]:
        """Size, capacity and hit/miss/eviction counters, for /health."""
        with self._lock:
            return {
                "size": len(self._d),
                "max_items": self.max_items,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }
