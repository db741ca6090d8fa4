"""
WordCleanse Content Cache

Two tiers sharing one key space:

- ``MemoryCache``: process-local, bounded, thread-safe. When full, the oldest
  20% of entries by insertion time are evicted before inserting.
- an external store with ``get/set/delete/flush``. It is only an
  accelerator; every failure there counts as a miss.
"""

import hashlib
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from debug_log import DebugSink, NullSink

KEY_PREFIX = "wordcleanse_content_"
PREFIX_BYTES = 50
EVICTION_FRACTION = 0.2
DEFAULT_MAX_ENTRIES = 100
DEFAULT_TTL = 3600


def _md5(data: bytes) -> str:
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


def make_cache_key(content: str, policy, content_type: str, version: str) -> str:
    """
    Derive the cache key for one clean operation.

    Every input takes part, so a policy change or version bump never reuses
    old entries.
    """
    data = content.encode("utf-8")
    prefix = data[:PREFIX_BYTES].decode("utf-8", "ignore")
    material = f"{prefix}_{len(data)}_{_md5(data)}_{policy.digest()}_{content_type}_{version}"
    return KEY_PREFIX + _md5(material.encode("utf-8"))


@dataclass
class CacheEntry:
    content: str
    inserted_at: float


class ExternalCache(Protocol):
    """Opaque key-value service."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str, ttl: int) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def flush(self) -> None:
        ...


class NullCache:
    """External tier that stores nothing."""

    def get(self, key: str) -> Optional[str]:
        return None

    def set(self, key: str, value: str, ttl: int) -> None:
        pass

    def delete(self, key: str) -> None:
        pass

    def flush(self) -> None:
        pass


class MemoryCache:
    """Bounded insertion-ordered map guarded by a single lock."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, clock: Callable[[], float] = time.time):
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            return entry.content if entry is not None else None

    def set(self, key: str, content: str):
        with self._lock:
            self._entries.pop(key, None)
            if len(self._entries) >= self.max_entries:
                self._evict_oldest()
            self._entries[key] = CacheEntry(content=content, inserted_at=self.clock())

    def delete(self, key: str):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def evict_expired(self, max_age: float) -> int:
        """Drop entries older than ``max_age`` seconds. Returns how many were dropped."""
        cutoff = self.clock() - max_age
        with self._lock:
            stale = [k for k, e in self._entries.items() if e.inserted_at < cutoff]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def _evict_oldest(self):
        # Caller holds the lock
        count = max(1, int(self.max_entries * EVICTION_FRACTION),
                    len(self._entries) - self.max_entries + 1)
        oldest = sorted(self._entries.items(), key=lambda item: item[1].inserted_at)[:count]
        for key, _ in oldest:
            del self._entries[key]


class ContentCache:
    """
    Memory tier in front of an external tier.

    Lookups try memory, then the external store; an external hit is copied
    into memory. Stores go to both tiers.
    """

    def __init__(self, external: ExternalCache = None, max_entries: int = DEFAULT_MAX_ENTRIES,
                 ttl: int = DEFAULT_TTL, enabled: bool = True, version: str = "",
                 sink: DebugSink = None, clock: Callable[[], float] = time.time):
        self.memory = MemoryCache(max_entries, clock=clock)
        self.external = external or NullCache()
        self.ttl = ttl
        self.enabled = enabled
        self.version = version
        self.sink = sink or NullSink()
        self.hits = 0
        self.misses = 0
        self._stats_lock = threading.Lock()

    def _count(self, hit: bool):
        with self._stats_lock:
            if hit:
                self.hits += 1
            else:
                self.misses += 1

    def lookup(self, key: str) -> Optional[str]:
        """Cached content for ``key``, or None."""
        if not self.enabled:
            return None

        content = self.memory.get(key)
        if content is not None:
            self._count(True)
            self.sink.log(f"Memory cache hit: {key}")
            return content

        try:
            content = self.external.get(key)
        except Exception as e:
            self.sink.log(f"External cache get failed, treated as miss: {e}")
            content = None

        if isinstance(content, str):
            self._count(True)
            self.memory.set(key, content)
            self.sink.log(f"External cache hit, promoted to memory: {key}")
            return content

        self._count(False)
        return None

    def store(self, key: str, content: str):
        if not self.enabled:
            return
        self.memory.set(key, content)
        try:
            self.external.set(key, content, self.ttl)
        except Exception as e:
            self.sink.log(f"External cache set failed, ignored: {e}")

    def delete(self, key: str):
        self.memory.delete(key)
        try:
            self.external.delete(key)
        except Exception as e:
            self.sink.log(f"External cache delete failed, ignored: {e}")

    def clear(self):
        """Empty the memory tier and flush the external tier."""
        self.memory.clear()
        try:
            self.external.flush()
        except Exception as e:
            self.sink.log(f"External cache flush failed, ignored: {e}")

    def cleanup(self, max_age: float) -> int:
        removed = self.memory.evict_expired(max_age)
        if removed:
            self.sink.log(f"Removed {removed} expired cache entries")
        return removed

    def set_max_entries(self, max_entries: int):
        self.memory.max_entries = max_entries

    def stats(self) -> dict:
        total = self.hits + self.misses
        return {
            "enabled": self.enabled,
            "max_entries": self.memory.max_entries,
            "current_entries": len(self.memory),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / total * 100, 2) if total else 0,
            "version": self.version,
        }
