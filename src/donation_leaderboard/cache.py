"""In-memory key/value store with per-key expiry."""

import time
from threading import Lock
from typing import Any, Callable, Protocol


class CacheStore(Protocol):
    """Anything with single-key get/set/delete and a remaining-TTL lookup."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: float) -> None: ...

    def delete(self, key: str) -> bool: ...

    def remaining_ttl(self, key: str) -> float | None: ...


class TTLStore:
    """Thread-safe in-memory cache; expired entries are dropped on access."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._data: dict[str, tuple[float, Any]] = {}
        self._lock = Lock()
        self._clock = clock

    def _live(self, key: str) -> tuple[float, Any] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[0] <= self._clock():
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._live(key)
            return None if entry is None else entry[1]

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            self._data[key] = (self._clock() + ttl, value)

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._data:
                del self._data[key]
                return True
            return False

    def remaining_ttl(self, key: str) -> float | None:
        """Seconds until ``key`` expires, or None when it is absent."""
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return None
            return entry[0] - self._clock()

    def clear(self) -> int:
        """Remove all entries; return count of cleared entries."""
        with self._lock:
            n = len(self._data)
            self._data.clear()
            return n


# Singleton used by the service
order_cache = TTLStore()
