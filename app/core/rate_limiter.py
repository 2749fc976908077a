"""
Per-user sliding window rate limiter for the /v1/plans routes.

The window is one hour and the limit comes from RATE_LIMIT_PER_HOUR. Users are
keyed by a truncated SHA-256 of their id, so raw ids are never held in memory.
State is process-local; each worker enforces its own window.
"""
import hashlib
import threading
import time
from collections import deque
from typing import Deque, Dict, NamedTuple

from app.core.config import get_settings

WINDOW_SECONDS = 3600
# Drop idle keys once this many are tracked
PRUNE_THRESHOLD = 10000


class RateLimitDecision(NamedTuple):
    allowed: bool
    remaining: int


class RateLimiter:
    """Process-wide singleton; see get_rate_limiter()."""

    _instance: "RateLimiter | None" = None
    _lock = threading.Lock()

    def __new__(cls) -> "RateLimiter":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._windows: Dict[str, Deque[float]] = {}
                    instance._data_lock = threading.Lock()
                    instance._requests_per_hour = get_settings().rate_limit_per_hour
                    cls._instance = instance
        return cls._instance

    @staticmethod
    def _key(user_id: str) -> str:
        return hashlib.sha256(user_id.encode()).hexdigest()[:16]

    @staticmethod
    def _expire(window: Deque[float], now: float) -> None:
        cutoff = now - WINDOW_SECONDS
        while window and window[0] <= cutoff:
            window.popleft()

    def _prune(self, now: float) -> None:
        # Caller holds _data_lock
        for key in list(self._windows):
            window = self._windows[key]
            self._expire(window, now)
            if not window:
                del self._windows[key]

    def check_and_record(self, user_id: str) -> RateLimitDecision:
        """
        Count one request for user_id if it fits in the window.

        Returns:
            (allowed, remaining requests in the window after this one)
        """
        key = self._key(user_id)
        now = time.time()

        with self._data_lock:
            if len(self._windows) >= PRUNE_THRESHOLD:
                self._prune(now)

            window = self._windows.setdefault(key, deque())
            self._expire(window, now)

            if len(window) >= self._requests_per_hour:
                return RateLimitDecision(False, 0)

            window.append(now)
            return RateLimitDecision(True, self._requests_per_hour - len(window))

    def get_remaining(self, user_id: str) -> int:
        """Remaining requests without recording one."""
        with self._data_lock:
            window = self._windows.get(self._key(user_id))
            if window is None:
                return self._requests_per_hour
            self._expire(window, time.time())
            return max(0, self._requests_per_hour - len(window))

    def get_reset_time(self, user_id: str) -> int:
        """Seconds until the oldest counted request leaves the window (0 if none)."""
        now = time.time()
        with self._data_lock:
            window = self._windows.get(self._key(user_id))
            if not window:
                return 0
            self._expire(window, now)
            if not window:
                return 0
            return max(0, int(window[0] + WINDOW_SECONDS - now))

    def reset(self) -> None:
        """Forget all windows (for testing)."""
        with self._data_lock:
            self._windows.clear()

    def set_limit(self, requests_per_hour: int) -> None:
        """Override the per-hour limit (for testing)."""
        with self._data_lock:
            self._requests_per_hour = requests_per_hour


def get_rate_limiter() -> RateLimiter:
    """Get the singleton rate limiter instance."""
    return RateLimiter()
