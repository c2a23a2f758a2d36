"""Per-process request cache for Steam responses."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    fetched_at: float

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return self.age(now) < ttl_seconds


class RequestCache:
    """Keyed cache that keeps expired entries around for stale fallback.

    Freshness is decided by the caller through ``CacheEntry.is_fresh`` so an
    entry past its TTL can still be served when Steam is down. Entries are
    never dropped on expiry, only replaced by ``set`` or removed by ``evict``.
    """

    def __init__(self, ttl_seconds: float = 3600, clock: Clock = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    def get(self, key: Hashable) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def get_fresh(self, key: Hashable) -> Optional[CacheEntry]:
        entry = self.get(key)
        if entry and entry.is_fresh(self.now(), self.ttl_seconds):
            return entry
        return None

    def set(self, key: Hashable, value: Any) -> CacheEntry:
        entry = CacheEntry(value=value, fetched_at=self.now())
        with self._lock:
            self._entries[key] = entry
        return entry

    def evict(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
