import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float

    def headers(self) -> Dict[str, str]:
        headers = {
            'X-RateLimit-Limit': str(self.limit),
            'X-RateLimit-Remaining': str(self.remaining),
            'X-RateLimit-Reset': str(math.ceil(self.reset_after)),
        }
        if not self.allowed:
            headers['Retry-After'] = str(max(1, math.ceil(self.reset_after)))
        return headers


class FixedWindowRateLimiter:
    """Per-key request counter that resets every `window` seconds."""

    def __init__(self, limit: int, window: float, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        expired = [key for key, (started, _) in self._windows.items() if now - started >= self.window]
        for key in expired:
            del self._windows[key]

    def hit(self, key: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            self._prune(now)
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window:
                started, count = now, 0
            reset_after = self.window - (now - started)
            if count >= self.limit:
                return RateLimitDecision(False, self.limit, 0, reset_after)
            count += 1
            self._windows[key] = (started, count)
            return RateLimitDecision(True, self.limit, self.limit - count, reset_after)

    def __len__(self) -> int:
        return len(self._windows)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
