"""Transient, thread-safe name sets shared between sync tasks."""

import threading
import time
from typing import Callable


class NameSet:
    """A lock-guarded set of keys.

    Used for names queued for remote deletion and names whose local
    deletion is in flight.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: set[str] = set()

    def add(self, key: str) -> None:
        with self._lock:
            self._items.add(key)

    def discard(self, key: str) -> None:
        with self._lock:
            self._items.discard(key)

    def snapshot(self) -> set[str]:
        with self._lock:
            return set(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class ExpiringNameSet:
    """A set whose members expire a fixed time after being added.

    Shields freshly uploaded files from per-file sync checks while the
    remote metadata catches up.

    Examples:
        >>> now = [0.0]
        >>> recent = ExpiringNameSet(10.0, clock=lambda: now[0])
        >>> recent.add("a.txt")
        >>> now[0] = 5.0
        >>> "a.txt" in recent
        True
        >>> now[0] = 10.0
        >>> "a.txt" in recent
        False
    """

    def __init__(
        self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic
    ):
        """Initialize the set.

        Args:
            ttl_seconds: How long a key stays a member after ``add``
            clock: Monotonic time source in seconds
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._expiry: dict[str, float] = {}

    def add(self, key: str) -> None:
        """Add a key, restarting its expiry window."""
        with self._lock:
            self._expiry[key] = self._clock() + self.ttl_seconds

    def discard(self, key: str) -> None:
        with self._lock:
            self._expiry.pop(key, None)

    def _purge(self, now: float) -> None:
        for key in [k for k, deadline in self._expiry.items() if deadline <= now]:
            del self._expiry[key]

    def __contains__(self, key: object) -> bool:
        with self._lock:
            self._purge(self._clock())
            return key in self._expiry

    def __len__(self) -> int:
        with self._lock:
            self._purge(self._clock())
            return len(self._expiry)
