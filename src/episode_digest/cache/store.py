"""Key-value cache contract and the in-process implementation.

The cache is an accelerator, never a source of truth: ``SafeCache`` turns
backend failures into misses so a broken cache cannot fail a request.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheStore(Protocol):
    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, ttl: int) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryCache:
    """Thread-safe TTL cache.

    Values are deep-copied in and out so callers cannot mutate cached entries.
    ``clock`` is injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return copy.deepcopy(value)

    def set(self, key: str, value: Any, ttl: int) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + ttl, copy.deepcopy(value))

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for expires_at, _ in self._entries.values() if expires_at > now)


class SafeCache:
    """Wraps a ``CacheStore``; backend errors are logged and treated as misses."""

    def __init__(self, backend: CacheStore, log: Optional[logging.Logger] = None) -> None:
        self.backend = backend
        self.log = log or logger

    def get(self, key: str) -> Optional[Any]:
        try:
            value = self.backend.get(key)
        except Exception as exc:
            self.log.warning("Cache get failed for %s: %s", key, exc)
            return None
        self.log.debug("Cache %s: %s", "hit" if value is not None else "miss", key)
        return value

    def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            self.backend.set(key, value, ttl)
        except Exception as exc:
            self.log.warning("Cache set failed for %s: %s", key, exc)

    def delete(self, key: str) -> None:
        try:
            self.backend.delete(key)
        except Exception as exc:
            self.log.warning("Cache delete failed for %s: %s", key, exc)
