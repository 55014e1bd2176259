"""
Per-account sliding-window rate limiting.

The counter store sits behind ``RateLimitStore`` so a shared cache can replace
the in-process store when the API runs as several workers.
"""
import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Tuple

from mdmc_crm.core.exceptions import TooManyRequestsError

logger = logging.getLogger(__name__)


class RateLimitStore(ABC):
    """Keeps request timestamps per key."""

    @abstractmethod
    def hit(self, key: str, limit: int, window_seconds: float) -> Tuple[bool, int]:
        """
        Record a request for ``key`` if it fits the window.

        Returns:
            (allowed, retry_after_seconds)
        """

    @abstractmethod
    def reset(self, key: str = None) -> None:
        """Forget one key, or every key."""


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local store. Stale timestamps are dropped on every hit."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: Dict[str, List[float]] = {}

    def hit(self, key: str, limit: int, window_seconds: float) -> Tuple[bool, int]:
        now = self._clock()
        with self._lock:
            window_start = now - window_seconds
            hits = [ts for ts in self._hits.get(key, []) if ts > window_start]

            if len(hits) >= limit:
                self._hits[key] = hits
                retry_after = max(1, math.ceil(hits[0] + window_seconds - now))
                return False, retry_after

            hits.append(now)
            self._hits[key] = hits
            return True, 0

    def reset(self, key: str = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)


class UserRateLimiter:
    """Allows ``max_requests`` per account within a sliding ``window_seconds``."""

    def __init__(
        self,
        store: RateLimitStore = None,
        max_requests: int = 100,
        window_seconds: int = 15 * 60,
        enabled: bool = True
    ):
        self.store = store or InMemoryRateLimitStore()
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.enabled = enabled

    def check(self, user_id) -> None:
        if not self.enabled:
            return
        allowed, retry_after = self.store.hit(str(user_id), self.max_requests, self.window_seconds)
        if not allowed:
            logger.warning("Rate limit exceeded for user %s, retry in %ss", user_id, retry_after)
            raise TooManyRequestsError(retry_after)

    def reset(self, user_id=None) -> None:
        self.store.reset(str(user_id) if user_id is not None else None)
