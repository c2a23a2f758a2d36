"""Fixed-size trailing-window rate limiter keyed by player."""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Callable, Deque, Dict, Hashable, Iterator, Optional

from .errors import RateLimited

Clock = Callable[[], float]


class _Slot:
    __slots__ = ("window", "lock", "users")

    def __init__(self):
        self.window: Deque[float] = deque()
        self.lock = threading.Lock()
        self.users = 0


class RateLimiter:
    """Allow at most ``max_requests`` per key inside the trailing ``window_seconds``.

    Accepted requests are recorded; rejected ones are not, so a caller that
    keeps retrying does not extend its own lockout. A key's window and lock
    are dropped once the window is empty and no caller holds them, and idle
    keys are swept at most once per window.
    """

    def __init__(self, max_requests: int = 10, window_seconds: float = 60, clock: Clock = time.time):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._slots: Dict[Hashable, _Slot] = {}
        self._registry_lock = threading.Lock()
        self._last_sweep = clock()

    def acquire(self, key: Hashable) -> None:
        """Record one request for ``key`` or raise ``RateLimited``."""
        self._maybe_sweep()
        with self._slot(key) as window:
            now = self._clock()
            self._prune(window, now)
            if len(window) >= self.max_requests:
                retry_after = window[0] + self.window_seconds - now
                raise RateLimited(math.ceil(retry_after))
            window.append(now)

    def remaining(self, key: Hashable) -> int:
        with self._registry_lock:
            if key not in self._slots:
                return self.max_requests
        with self._slot(key) as window:
            self._prune(window, self._clock())
            return max(self.max_requests - len(window), 0)

    def reset(self, key: Optional[Hashable] = None) -> None:
        with self._registry_lock:
            if key is None:
                self._slots.clear()
            else:
                self._slots.pop(key, None)

    def tracked_keys(self) -> int:
        with self._registry_lock:
            return len(self._slots)

    def sweep(self) -> int:
        """Drop every idle key whose window has emptied; return how many were dropped."""
        now = self._clock()
        dropped = 0
        with self._registry_lock:
            self._last_sweep = now
            for key, slot in list(self._slots.items()):
                if slot.users:
                    continue
                self._prune(slot.window, now)
                if not slot.window:
                    del self._slots[key]
                    dropped += 1
        return dropped

    def _maybe_sweep(self) -> None:
        if self._clock() - self._last_sweep >= self.window_seconds:
            self.sweep()

    @contextmanager
    def _slot(self, key: Hashable) -> Iterator[Deque[float]]:
        with self._registry_lock:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = _Slot()
            slot.users += 1
        try:
            with slot.lock:
                yield slot.window
        finally:
            with self._registry_lock:
                slot.users -= 1
                if not slot.users and not slot.window and self._slots.get(key) is slot:
                    del self._slots[key]

    def _prune(self, window: Deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while window and window[0] <= cutoff:
            window.popleft()
