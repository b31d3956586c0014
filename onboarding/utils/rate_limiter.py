from __future__ import annotations

import re
import threading
import time

from onboarding.utils.errors import ApiError

_LIMIT_RE = re.compile(r"^\s*(\d+)\s+per\s+(second|minute|hour)\s*$", re.IGNORECASE)
_WINDOWS = {"second": 1, "minute": 60, "hour": 3600}


class InMemoryRateLimiter:
    """Fixed-window counter keyed by caller; process-local only."""

    def __init__(self, *, max_keys: int = 50_000):
        self._max_keys = max_keys
        self._lock = threading.Lock()
        self._store: dict[str, tuple[int, int]] = {}

    @staticmethod
    def parse_limit(limit: str) -> tuple[int, int]:
        m = _LIMIT_RE.match(str(limit or ""))
        if not m:
            return 300, 60
        return max(1, int(m.group(1))), _WINDOWS[m.group(2).lower()]

    def check(self, key: str, limit: str) -> None:
        max_hits, window_seconds = self.parse_limit(limit)
        now = time.time()
        window_id = int(now // window_seconds)
        bucket = f"{key}:{window_seconds}"

        with self._lock:
            if len(self._store) > self._max_keys:
                self._store.clear()

            current_window, current_count = self._store.get(bucket, (window_id, 0))
            if current_window != window_id:
                current_window, current_count = window_id, 0
            current_count += 1
            self._store[bucket] = (current_window, current_count)

        if current_count > max_hits:
            retry_after = int((window_id + 1) * window_seconds - now) + 1
            raise ApiError(
                "RATE_LIMITED", "Rate limit exceeded", status=429, details={"retryAfterSeconds": retry_after}
            )

    def reset(self) -> None:
        with self._lock:
            self._store.clear()
