"""In-memory sliding-window rate limiting for contact submissions."""

import math
from collections import OrderedDict, deque
from threading import Lock
from typing import Optional

RATE_LIMIT_WINDOW_SECONDS = 60
RATE_LIMIT_MAX_REQUESTS = 5  # per source per window
RATE_LIMIT_MAX_SOURCES = 10_000


class RateLimitLedger:
    """
    Per-source request timestamps over a trailing window.

    Only admitted requests are recorded. Sources are kept in order of last
    activity so idle ones can be evicted from the front once the ledger grows
    past `max_sources`. Counts are per process.
    """

    def __init__(
        self,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        max_requests: int = RATE_LIMIT_MAX_REQUESTS,
        max_sources: int = RATE_LIMIT_MAX_SOURCES,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.max_sources = max_sources
        self._store: "OrderedDict[str, deque]" = OrderedDict()
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, source_id: str) -> bool:
        return source_id in self._store

    def _prune(self, request_times: deque, now: float) -> None:
        while request_times and now - request_times[0] >= self.window_seconds:
            request_times.popleft()

    def check_and_record(self, source_id: str, now: float) -> Optional[int]:
        """
        Admit and record a request, or refuse it.

        Returns None when the request is admitted, otherwise the number of
        seconds until the oldest counted request leaves the window.
        """
        with self._lock:
            request_times = self._store.get(source_id)
            if request_times is not None:
                self._prune(request_times, now)
                if len(request_times) >= self.max_requests:
                    retry_after = math.ceil(request_times[0] + self.window_seconds - now)
                    return max(retry_after, 1)
            else:
                request_times = deque()
                self._store[source_id] = request_times

            request_times.append(now)
            self._store.move_to_end(source_id)
            if len(self._store) > self.max_sources:
                self._evict(now)
            return None

    def count(self, source_id: str, now: float) -> int:
        """Requests currently counted against a source."""
        with self._lock:
            request_times = self._store.get(source_id)
            if not request_times:
                return 0
            return sum(1 for t in request_times if now - t < self.window_seconds)

    def _evict(self, now: float) -> None:
        # Sources are ordered by last admission, so idle ones sit at the front
        while self._store:
            source_id, request_times = next(iter(self._store.items()))
            self._prune(request_times, now)
            if request_times and len(self._store) <= self.max_sources:
                break
            del self._store[source_id]
