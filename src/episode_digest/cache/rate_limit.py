"""Per-caller sliding-window request quota."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from ..config_constants import DEFAULT_QUOTA_MAX_REQUESTS, DEFAULT_QUOTA_WINDOW_SECONDS
from ..exceptions import QuotaExceededError

logger = logging.getLogger(__name__)


class QuotaLimiter:
    """Allows at most ``max_requests`` per identifier in any ``window_seconds`` span."""

    def __init__(
        self,
        max_requests: int = DEFAULT_QUOTA_MAX_REQUESTS,
        window_seconds: int = DEFAULT_QUOTA_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self.log = log or logger

    def _prune(self, hits: Deque[float], now: float) -> None:
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()

    def remaining(self, identifier: str) -> int:
        with self._lock:
            hits = self._hits.get(identifier)
            if not hits:
                return self.max_requests
            self._prune(hits, self._clock())
            return max(0, self.max_requests - len(hits))

    def check(self, identifier: str) -> bool:
        """Record one request and return whether it is allowed."""
        with self._lock:
            now = self._clock()
            hits = self._hits.setdefault(identifier, deque())
            self._prune(hits, now)
            if len(hits) >= self.max_requests:
                return False
            hits.append(now)
            return True

    def acquire(self, identifier: str) -> None:
        """Record one request.

        Raises:
            QuotaExceededError: If the identifier has no quota left in the window
        """
        if not self.check(identifier):
            self.log.warning("Quota exceeded for %s", identifier)
            raise QuotaExceededError(identifier, self.max_requests, self.window_seconds)

    def release(self, identifier: str) -> None:
        """Give back the most recent request recorded for ``identifier``."""
        with self._lock:
            hits = self._hits.get(identifier)
            if hits:
                hits.pop()
